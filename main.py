"""Command-line entry point for serving the AnswerDesk HTTP API."""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

import uvicorn

from answerdesk.config import config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

APP_IMPORT_PATH = "answerdesk.api:app"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Serve the AnswerDesk answer API.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Bind address for the HTTP server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP server (default: 8000).",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server on code changes (development only).",
    )
    return parser.parse_args(argv)


def run_server(args: argparse.Namespace, logger: Logger) -> int:
    """Run uvicorn until it stops and return an exit code."""  # noqa: DOC201
    try:
        uvicorn.run(
            APP_IMPORT_PATH,
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=config.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        logger.info("AnswerDesk stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to start the HTTP server")
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and serve the API."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if args.reload and config.is_production():
        logger.error("--reload is not allowed in production")
        return 1

    logger.info(
        "Starting AnswerDesk API at http://%s:%s (backend=%s)",
        args.host,
        args.port,
        config.VECTOR_BACKEND,
    )
    return run_server(args, logger)


if __name__ == "__main__":
    sys.exit(main())
