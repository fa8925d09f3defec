"""Example: deploy the content contract, verify it on test networks and notify."""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from aa_pipeline import DeploymentOrchestrator, WebhookNotifier, load_config

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("deploy_contract")


async def main(dry_run: bool) -> int:
    config = load_config(os.environ)
    orchestrator = DeploymentOrchestrator(
        config.deployment, config.explorer, WebhookNotifier(config.notifier)
    )
    report = await orchestrator.deploy(dry_run=dry_run)

    summary = report.as_dict()
    for key, value in summary.items():
        logger.info("  %s: %s", key, value)

    if report.result is not None:
        logger.info("Contract address: %s", report.result.contract_address)
    return 0 if report.success else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main("--dry" in sys.argv[1:])))
