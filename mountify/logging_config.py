import logging
import logging.handlers
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from .config import Settings

FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(filename)s:%(lineno)d - %(message)s"

# Third-party loggers that only matter when something is wrong
QUIET_LOGGERS = ("uvicorn.access", "urllib3", "asyncio", "watchfiles")


def _console_handler(level: str) -> logging.Handler:
    handler = RichHandler(
        console=Console(width=120, stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    handler.setLevel(level)
    return handler


def _file_handler(path: Path, level: str, retention_days: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=path,
        when="midnight",
        backupCount=retention_days,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def setup_logging(settings: Settings) -> None:
    """
    Route all controller logging to the console and a nightly rotated file.

    Subprocess command lines reach the log only after ``redact_secrets`` has
    masked the password, so the file handler needs no filtering of its own.
    Safe to call again: existing root handlers are replaced, not stacked.
    """
    settings.log_directory.mkdir(parents=True, exist_ok=True)
    level = settings.log_level.upper()

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(level)
    root_logger.addHandler(_console_handler(level))
    root_logger.addHandler(
        _file_handler(Path(settings.log_file_path), level, settings.log_retention_days)
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(
        f"Mountify logging to {settings.log_file_path} at {level} "
        f"(keeping {settings.log_retention_days} days)"
    )
