"""Example: derive the smart account bound to PRIVATE_KEY and report its status."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from aa_pipeline import describe_account, load_config, provision_account
from aa_pipeline.utils import format_ether

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("init_smart_account")


async def main() -> None:
    config = load_config(os.environ)
    client = await provision_account(config.account)
    try:
        summary = await describe_account(client)
        balance = await client.balance()
    finally:
        await client.close()

    logger.info("Smart account ready")
    for key, value in summary.items():
        logger.info("  %s: %s", key, value)
    logger.info("  balance: %s ETH", format_ether(balance))
    if balance == 0:
        logger.warning("Fund %s before sending user operations", summary["address"])


if __name__ == "__main__":
    asyncio.run(main())
