"""Structured lifecycle logging for interview sessions.

Lifecycle events (session started, warning escalated, turn saved, ...) go to
stdout as one human-readable line and, when file logging is enabled, to two
rotating files: JSON lines for machines and the same human lines for people.
Module loggers of the service packages share those handlers once
:func:`configure_logging` has run.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import threading
import time
import uuid
from typing import Any, Iterable, List

from config.settings import settings

EVENT_LOGGER = "interview.events"
PACKAGE_LOGGERS = (
    "api",
    "api_server",
    "assessment",
    "interview_session",
    "llm_gateway",
    "session_reports",
    "storage",
)
HUMAN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Event fields promoted onto the human line, in this order.
HUMAN_FIELDS = (
    "status",
    "directive",
    "event_type",
    "severity",
    "warning_count",
    "job_id",
    "candidate_id",
    "company_id",
    "title",
    "name",
    "ms",
    "outcome",
)

_events = logging.getLogger(EVENT_LOGGER)
_events.propagate = False
_configured = False
_configure_guard = threading.Lock()


class _JsonOnly(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "is_json", False) is True


class _HumanOnly(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "is_json", False) is not True


def _human_formatter() -> logging.Formatter:
    return logging.Formatter(HUMAN_FORMAT, datefmt=DATE_FORMAT)


def _rotating(path: str) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )


def human_log_path(path: str) -> str:  # logs/interview.log -> logs/interview-human.log
    root, ext = os.path.splitext(path)
    return f"{root}-human{ext or '.log'}"


def _build_handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(stream=sys.stdout)
    console.setFormatter(_human_formatter())
    console.addFilter(_HumanOnly())
    handlers: List[logging.Handler] = [console]
    if not settings.ENABLE_FILE_LOGS:
        return handlers

    directory = os.path.dirname(settings.LOG_FILE)
    if directory:
        os.makedirs(directory, exist_ok=True)
    json_file = _rotating(settings.LOG_FILE)
    json_file.setFormatter(logging.Formatter("%(message)s"))
    json_file.addFilter(_JsonOnly())
    human_file = _rotating(human_log_path(settings.LOG_FILE))
    human_file.setFormatter(_human_formatter())
    human_file.addFilter(_HumanOnly())
    handlers.extend([json_file, human_file])
    return handlers


def configure_logging(extra_loggers: Iterable[str] = ()) -> None:
    """Attach the shared handlers to the event and package loggers once."""

    global _configured
    with _configure_guard:
        if _configured:
            return
        level = settings.LOG_LEVEL.upper()
        handlers = _build_handlers()
        for name in (EVENT_LOGGER, *PACKAGE_LOGGERS, *extra_loggers):
            target = logging.getLogger(name)
            target.setLevel(level)
            target.propagate = False
            for handler in handlers:
                target.addHandler(handler)
        _configured = True


def format_human(evt: dict[str, Any]) -> str:
    base = f"session={evt.get('session_id')} kind={evt.get('kind')}"
    extras = [f"{key}={evt[key]}" for key in HUMAN_FIELDS if key in evt]
    return base + (" " + " ".join(extras) if extras else "")


def _emit(message: str, *, is_json: bool) -> None:
    record = _events.makeRecord(
        _events.name,
        logging.INFO,
        fn="",
        lno=0,
        msg=message,
        args=(),
        exc_info=None,
        extra={"is_json": is_json},
    )
    _events.handle(record)


def log_event(kind: str, session_id: str, **fields: Any) -> None:
    """Record one lifecycle event; ``session_id`` is "-" for events outside a session."""

    configure_logging()
    payload: dict[str, Any] = {
        "ts": time.time(),
        "trace": uuid.uuid4().hex,
        "kind": kind,
        "session_id": session_id,
    }
    payload.update(fields)
    _emit(format_human(payload), is_json=False)
    if settings.ENABLE_FILE_LOGS:
        _emit(json.dumps(payload, ensure_ascii=False, default=str), is_json=True)


__all__ = ["configure_logging", "format_human", "human_log_path", "log_event"]
