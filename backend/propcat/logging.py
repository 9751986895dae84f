"""structlog setup for the catalog API.

Development gets colored console lines; every other environment gets one JSON
object per line with the traceback rendered into the ``exception`` key, so
store failures logged with ``exc_info`` stay machine-readable.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

from propcat.config import settings

SERVICE_NAME = "propcat"


class _FileMirror:
    """Copy every rendered log line to stdout and to an append-only file.

    If the file can't be opened, or a later write fails, the mirror drops the
    file and keeps writing to stdout.
    """

    def __init__(self, file_path: str) -> None:
        self._path = file_path
        self._file: IO[str] | None = None
        try:
            self._file = open(file_path, "a")  # noqa: SIM115
        except OSError as exc:
            # structlog is not configured yet at this point
            print(f"WARNING: log file {file_path!r} unavailable ({exc}); stdout only", file=sys.stderr)

    def _drop_file(self) -> None:
        self._file = None
        print(f"WARNING: writing to {self._path!r} failed; stdout only", file=sys.stderr)

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._drop_file()

    def flush(self) -> None:
        sys.stdout.flush()
        if self._file is None:
            return
        try:
            self._file.flush()
        except (OSError, ValueError):
            self._drop_file()


def _add_service(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _processors(development: bool) -> list:
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if development:
        return [*shared, structlog.dev.ConsoleRenderer()]
    return [
        *shared,
        _add_service,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_logging() -> None:
    """Configure structlog from settings (ENVIRONMENT, LOG_LEVEL, LOG_FILE).

    Unknown LOG_LEVEL values fall back to INFO. Setting LOG_FILE mirrors the
    same lines into that file.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.log_file:
        # PrintLoggerFactory only needs write() and flush()
        logger_factory = structlog.PrintLoggerFactory(file=_FileMirror(settings.log_file))  # type: ignore[arg-type]
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=_processors(settings.environment == "development"),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )
