"""CLI entrypoints for operational tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

from lumo.config import configure_structlog, get_settings
from lumo.db.session import dispose_engine, get_session_factory
from lumo.services.registry import build_service_registry


async def _run_purge_expired_resets() -> int:
    """Clear password reset tokens whose expiry has passed."""
    settings = get_settings()
    configure_structlog(settings)
    services = build_service_registry(settings)
    session_factory = get_session_factory()

    try:
        async with session_factory() as db_session:
            cleared = await services.password_resets.purge_expired(db_session)
    finally:
        await dispose_engine()

    print(json.dumps({"cleared_resets": cleared}))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported operational commands."""
    parser = argparse.ArgumentParser(prog="python -m lumo.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser(
        "purge-expired-resets",
        help="Clear password reset tokens whose expiry has passed.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "purge-expired-resets":
        return asyncio.run(_run_purge_expired_resets())
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
