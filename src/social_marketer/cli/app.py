"""Typer app configuration and logging setup."""

from __future__ import annotations

import logging
import warnings
from pathlib import Path

import typer
from dotenv import load_dotenv

from ..config import MarketerSettings

# Load environment variables from .env file
load_dotenv()

# httpx cleanup warnings at interpreter exit
warnings.filterwarnings("ignore", message=".*Event loop is closed.*")
warnings.filterwarnings("ignore", category=ResourceWarning)

app = typer.Typer(
    name="marketer",
    help="Daily wisdom distribution to social platforms",
    add_completion=False,
)

_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def register_commands() -> None:
    """Register all commands from feature modules."""
    from .auth import auth_app

    app.add_typer(auth_app, name="auth")

    from .run import process_queue_command, run

    app.command(name="run")(run)
    app.command(name="process-queue")(process_queue_command)

    from .queue import queue_app

    app.add_typer(queue_app, name="queue")

    from .schedule import schedule_app

    app.add_typer(schedule_app, name="schedule")


def _file_handler(path: Path, level: int) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT))
    return handler


def _attach(name: str, handler: logging.Handler) -> None:
    logger = logging.getLogger(name)
    logger.setLevel(handler.level)
    logger.propagate = False
    logger.handlers = [handler]


def setup_logging() -> None:
    """Configure logging for CLI.

    - Suppresses console output from libraries
    - platform_api calls go to platform_api.log, everything else to marketer.log
    """
    log_dir = MarketerSettings().logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(logging.CRITICAL)

    for logger_name in ["httpx", "httpcore", "asyncio", "PIL"]:
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.WARNING)
        logger.propagate = False

    _attach("platform_api", _file_handler(log_dir / "platform_api.log", logging.DEBUG))

    shared = _file_handler(log_dir / "marketer.log", logging.INFO)
    for name in ["oauth", "scheduler", "secret_store", "content"]:
        _attach(name, shared)


# Initialize logging on module import
setup_logging()

# Register all commands
register_commands()


def main() -> None:
    """CLI entry point."""
    app()
