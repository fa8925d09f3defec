"""Command line entry point: ``aa-pipeline deploy|account|send-op``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from collections.abc import Sequence
from typing import Any

from dotenv import load_dotenv

from .account import describe_account, provision_account
from .config import PipelineConfig, load_config
from .deploy import DeploymentOrchestrator
from .exceptions import InsufficientBalanceError, PipelineError
from .notifier import WebhookNotifier
from .operations import build_operation, parse_ether
from .submission import SubmissionClient
from .utils import format_ether

logger = logging.getLogger("aa_pipeline.cli")


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOGLEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aa-pipeline",
        description="Gasless UserOperation submission and contract deployment",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    deploy = commands.add_parser("deploy", help="Deploy the content contract")
    deploy.add_argument(
        "--dry", action="store_true", help="Estimate gas only; send nothing"
    )

    commands.add_parser("account", help="Show the smart account bound to PRIVATE_KEY")

    send_op = commands.add_parser("send-op", help="Send a UserOperation via the bundler")
    send_op.add_argument("--data", default="0x", help="Call data as hex (default: 0x)")
    send_op.add_argument("--value", default="0", help="Value in ETH (default: 0)")
    send_op.add_argument(
        "--target", default=None, help="Target address (default: the smart account itself)"
    )
    send_op.add_argument(
        "--dryrun", action="store_true", help="Check balance and show the operation only"
    )
    return parser


async def _run_account(config: PipelineConfig, args: argparse.Namespace) -> dict[str, Any]:
    client = await provision_account(config.account)
    try:
        summary = await describe_account(client)
        balance = await client.balance()
    finally:
        await client.close()
    logger.info("Smart account balance: %s ETH", format_ether(balance))
    return {"success": True, **summary, "balance": format_ether(balance)}


async def _run_send_op(config: PipelineConfig, args: argparse.Namespace) -> dict[str, Any]:
    value = parse_ether(args.value)
    client = await provision_account(config.account)
    try:
        envelope = build_operation(args.target or client.address(), args.data, value)
        submission = SubmissionClient(
            config.submission,
            client,
            network=config.account.network,
            notifier=WebhookNotifier(config.notifier),
        )
        if args.dryrun:
            result = await submission.preview(envelope)
        else:
            result = await submission.submit(envelope)
    finally:
        await client.close()
    return {"success": True, "dryRun": args.dryrun, **result.as_dict()}


async def _run_deploy(config: PipelineConfig, args: argparse.Namespace) -> dict[str, Any]:
    orchestrator = DeploymentOrchestrator(
        config.deployment, config.explorer, WebhookNotifier(config.notifier)
    )
    report = await orchestrator.deploy(dry_run=args.dry)
    return report.as_dict()


_COMMANDS = {
    "account": _run_account,
    "send-op": _run_send_op,
    "deploy": _run_deploy,
}


def failure_summary(exc: BaseException) -> dict[str, Any]:
    """Structured description of an unrecovered failure."""
    summary: dict[str, Any] = {
        "success": False,
        "error": type(exc).__name__,
        "message": exc.message if isinstance(exc, PipelineError) else str(exc),
    }
    if isinstance(exc, InsufficientBalanceError):
        summary["required"] = format_ether(exc.required)
        summary["available"] = format_ether(exc.available)
        summary["shortfall"] = format_ether(exc.shortfall)
    if isinstance(exc, PipelineError) and exc.details:
        summary["details"] = exc.details
    return summary


def _print(summary: dict[str, Any]) -> None:
    print(json.dumps(summary, indent=2, default=str))


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    _configure_logging()
    args = build_parser().parse_args(argv)

    try:
        config = load_config(os.environ)
        summary = asyncio.run(_COMMANDS[args.command](config, args))
    except PipelineError as exc:
        logger.error("%s failed: %s", args.command, exc)
        _print(failure_summary(exc))
        return 1
    except Exception as exc:
        logger.exception("%s failed unexpectedly", args.command)
        _print(failure_summary(exc))
        return 1

    _print(summary)
    return 0 if summary.get("success") else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
