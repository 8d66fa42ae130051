"""Audit event log: one ``[timestamp] [TYPE] {json}`` line per event.

Events are routed through a dedicated loguru sink. With ``enqueue=True``
loguru hands records to a background worker, so writing the file never
blocks the event loop and a failing sink never raises into the caller.
"""

import json
from pathlib import Path
from typing import Any

from loguru import logger

AUDIT_FORMAT = "[{time:YYYY-MM-DD[T]HH:mm:ss.SSSZ}] [{extra[audit]}] {message}"


def _is_audit_record(record: dict) -> bool:
    return "audit" in record["extra"]


def add_audit_sink(path: Path, enqueue: bool = True) -> int:
    """Attach the audit file sink. Returns the loguru handler id."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return logger.add(
        str(path),
        format=AUDIT_FORMAT,
        filter=_is_audit_record,
        level="DEBUG",
        enqueue=enqueue,
        catch=True,
        encoding="utf-8",
    )


def audit(event_type: str, **details: Any) -> None:
    """Record an audit event of *event_type* with JSON-serialized *details*."""
    payload = json.dumps(details, ensure_ascii=False, default=str)
    logger.bind(audit=event_type.upper()).info(payload)
