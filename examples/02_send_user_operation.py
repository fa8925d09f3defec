"""Example: send a zero-value UserOperation from the smart account to itself."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from aa_pipeline import (
    PipelineError,
    SubmissionClient,
    WebhookNotifier,
    build_operation,
    load_config,
    parse_ether,
    provision_account,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("send_user_operation")

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"


async def main() -> None:
    config = load_config(os.environ)
    client = await provision_account(config.account)
    try:
        envelope = build_operation(
            os.getenv("USEROP_TARGET") or client.address(),
            os.getenv("USEROP_DATA", "0x"),
            parse_ether(os.getenv("USEROP_VALUE", "0")),
        )
        submission = SubmissionClient(
            config.submission,
            client,
            network=config.account.network,
            notifier=WebhookNotifier(config.notifier),
        )
        if DRY_RUN:
            result = await submission.preview(envelope)
        else:
            result = await submission.submit(envelope)
    except PipelineError as exc:
        logger.error("User operation failed: %s", exc)
        if exc.details:
            logger.debug("  details: %s", exc.details)
        raise
    finally:
        await client.close()

    for key, value in result.as_dict().items():
        logger.info("  %s: %s", key, value)


if __name__ == "__main__":
    asyncio.run(main())
