"""Logger facade.

Modules log through ``logging.getLogger(__name__)``; the process entrypoint
calls :func:`configure_logging` once to install the console and file handlers.
"""

import logging

from rich.logging import RichHandler

__all__ = ["get_logger", "configure_logging"]

LOG_FILE = "spa_booking.log"

# Libraries that are too chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "asyncpg", "alembic", "uvicorn.access")


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or __name__)


def configure_logging(level_name: str = "INFO", log_file: str | None = LOG_FILE) -> None:
    """Install a Rich console handler and a WARNING+ file handler on the root logger."""
    console_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_level=True,
        show_path=False,
        log_time_format="%H:%M:%S",
    )
    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.WARNING)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        handlers.append(file_handler)

    level = getattr(logging, str(level_name).strip().upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
