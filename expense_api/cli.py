"""Command-line interface for running and provisioning the expense API."""

from __future__ import annotations

import argparse
import os
from collections.abc import Sequence

from . import __version__
from .config import get_settings
from .logging import JSON_ENV_FLAG, LEVEL_ENV_FLAG, get_stream_logger, reset_logging_cache

DESCRIPTION = "Expense Tracker API"
LOG = get_stream_logger(__name__)


def _add_serve_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", help="Bind address (default: settings host)")
    serve.add_argument("--port", type=int, help="Bind port (default: settings port)")
    serve.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="expense-api", description=DESCRIPTION)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override EXPENSE_LOG_LEVEL for this run",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit one JSON object per log line",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create the database tables")
    _add_serve_subparser(subparsers)
    return parser


def _run_init_db() -> int:
    from . import database

    database.init_db()
    url = database.engine.url.render_as_string(hide_password=True)
    LOG.info("Database tables ready at %s", url)
    print(f"[expense-api] init-db url={url}")
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port
    LOG.info("Serving expense API on %s:%d", host, port)
    uvicorn.run("expense_api.server:app", host=host, port=port, reload=args.reload)
    return 0


def _configure_logging(args: argparse.Namespace) -> None:
    # Exported so uvicorn reload workers inherit the same logging setup.
    if args.log_level:
        os.environ[LEVEL_ENV_FLAG] = args.log_level
    if args.json_logs:
        os.environ[JSON_ENV_FLAG] = "1"
    reset_logging_cache()
    get_stream_logger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)

    if args.command == "init-db":
        return _run_init_db()
    if args.command == "serve":
        return _run_serve(args)
    parser.error(f"unknown command {args.command}")  # pragma: no cover - argparse guards choices
    return 2


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
