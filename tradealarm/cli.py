#!/usr/bin/env python3
"""tradealarm command line.

`serve` runs the tracker (poller, reminders, HTTP control API). The other
commands print JSON for one user's session straight from the database.
"""

import argparse
import asyncio
import json
import sys

from .config import AlarmConfig
from .database.connection import create_db_engine, create_session_factory, init_db
from .database.repositories import SessionRepository
from .exceptions import ConfigurationError, StorageError
from .logging_config import get_logger, setup_logging
from .service import AlarmService
from .utils.shutdown import GracefulShutdownHandler
from .validation import ValidationError, validate_limit, validate_user_identifier

logger = get_logger(__name__)


def json_output(data):
    """Print JSON output."""
    print(json.dumps(data, indent=2))


def _repository(config: AlarmConfig) -> SessionRepository:
    db_engine = create_db_engine(
        config.database_url,
        connect_timeout=config.db_connect_timeout_seconds,
        statement_timeout_ms=config.db_statement_timeout_ms,
    )
    init_db(db_engine)
    return SessionRepository(create_session_factory(db_engine))


async def cmd_serve(config: AlarmConfig, args):
    """Run the service until SIGINT/SIGTERM."""
    service = AlarmService(config)

    handler = GracefulShutdownHandler(on_shutdown=service.request_stop)
    handler.register(asyncio.get_running_loop())
    try:
        await service.run(serve_http=not args.no_http)
    finally:
        handler.unregister()


def cmd_summary(config: AlarmConfig, args):
    """Print start balance, net and current balance for a user."""
    repo = _repository(config)
    identifier = validate_user_identifier(args.telegram_id)

    result = repo.summarize(identifier)
    if result is None:
        json_output({"success": False, "error": f"No session for {identifier}"})
        sys.exit(1)

    json_output({"success": True, "summary": result.to_dict()})


def cmd_history(config: AlarmConfig, args):
    """Print a user's ledger entries, most recent first."""
    repo = _repository(config)
    identifier = validate_user_identifier(args.telegram_id)
    entries = repo.list_entries(identifier, limit=validate_limit(args.limit))
    json_output({"success": True, "entries": [entry.to_dict() for entry in entries]})


def cmd_clear(config: AlarmConfig, args):
    """Delete a user's ledger entries.

    Only safe while the service is not processing messages for this user;
    the running service serializes clears itself through the HTTP API.
    """
    repo = _repository(config)
    identifier = validate_user_identifier(args.telegram_id)
    json_output({"success": True, "deleted": repo.delete_entries(identifier)})


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="tradealarm",
        description="Trading session tracker with reminders and auto-stop",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--text-logs", action="store_true", help="Plain text instead of JSON logs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run poller, reminders and HTTP API")
    serve_parser.add_argument("--no-http", action="store_true", help="Do not start the HTTP API")

    summary_parser = subparsers.add_parser("summary", help="Show a user's session summary")
    summary_parser.add_argument("telegram_id", help="Telegram chat id")

    history_parser = subparsers.add_parser("history", help="Show a user's ledger entries")
    history_parser.add_argument("telegram_id", help="Telegram chat id")
    history_parser.add_argument("--limit", type=int, default=50, help="Limit results")

    clear_parser = subparsers.add_parser("clear", help="Delete a user's ledger entries")
    clear_parser.add_argument("telegram_id", help="Telegram chat id")

    args = parser.parse_args()

    try:
        config = AlarmConfig.from_env()
        setup_logging(
            level=args.log_level or config.log_level,
            use_json=config.log_json and not args.text_logs,
        )

        if args.command == "serve":
            config.require_valid()
            asyncio.run(cmd_serve(config, args))
        elif args.command == "summary":
            cmd_summary(config, args)
        elif args.command == "history":
            cmd_history(config, args)
        elif args.command == "clear":
            cmd_clear(config, args)
        else:
            parser.print_help()
            sys.exit(1)

    except ConfigurationError as e:
        logger.error("cli_configuration_error", extra={"command": args.command, "error": str(e)})
        json_output({"success": False, "error": f"Configuration error: {e}"})
        sys.exit(1)
    except ValidationError as e:
        json_output({"success": False, "error": f"Invalid input: {e}"})
        sys.exit(2)
    except StorageError as e:
        logger.error("cli_storage_error", extra={"command": args.command, "error": str(e)})
        json_output({"success": False, "error": f"Storage error: {e}"})
        sys.exit(1)


if __name__ == "__main__":
    main()
