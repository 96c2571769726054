"""Structured JSON logging: structlog events rendered by python-json-logger."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Iterable

import structlog

from .config.loader import resolve_home

APP_LOGGER = "roadmap_tracker"
PROVIDER_LOGGER_PREFIX = f"{APP_LOGGER}.provider"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def log_dir() -> Path:
    return resolve_home() / "logs"


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def _dict_config(level: str, directory: Path) -> dict[str, Any]:
    files = ["tracker_file", "error_file"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT}
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "tracker_file": _file_handler(directory / "tracker.log", "INFO"),
            "error_file": _file_handler(directory / "error.log", "ERROR"),
        },
        "loggers": {
            APP_LOGGER: {"handlers": ["console", *files], "level": level, "propagate": False},
            "apscheduler": {"handlers": files, "level": "WARNING", "propagate": False},
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install handlers and the structlog pipeline once per process."""

    global _configured
    if not _configured:
        directory = log_dir()
        (directory / "providers").mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(_dict_config("DEBUG" if verbose else "INFO", directory))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _configured = True
    return structlog.get_logger(APP_LOGGER)


def provider_logger(provider: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``provider`` that also writes ``logs/providers/<provider>.log``.

    The file follows the current home; a handler left over from an earlier
    home is closed and replaced.
    """

    configure_logging(verbose)
    path = log_dir() / "providers" / f"{provider}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    std_logger = logging.getLogger(f"{PROVIDER_LOGGER_PREFIX}.{provider}")
    current = [h for h in std_logger.handlers if isinstance(h, logging.FileHandler)]
    if not any(h.baseFilename == str(path) for h in current):
        for stale in current:
            std_logger.removeHandler(stale)
            stale.close()
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(logging.INFO)
        app_handlers = logging.getLogger(APP_LOGGER).handlers
        if app_handlers:
            handler.setFormatter(app_handlers[0].formatter)
        std_logger.addHandler(handler)

    return structlog.get_logger(std_logger.name).bind(provider=provider)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Last ``line_count`` lines of ``path``; empty when the file does not exist."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return stream.readlines()[-line_count:]


def available_provider_logs() -> Iterable[Path]:
    providers_dir = log_dir() / "providers"
    if not providers_dir.exists():
        return []
    return sorted(providers_dir.glob("*.log"))


__all__ = [
    "available_provider_logs",
    "configure_logging",
    "log_dir",
    "provider_logger",
    "tail_log",
]
