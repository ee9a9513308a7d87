"""NDJSON telemetry for failed API requests."""
from __future__ import annotations

import json
import os
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from feedback_flow.errors import ErrorType

__all__ = ["error_counts", "log_error", "recent_errors"]

DEFAULT_LOG_PATH = Path("var") / "log" / "telemetry.ndjson"
ERROR_LOOKBACK = timedelta(hours=24)

Event = Dict[str, object]


@dataclass(frozen=True)
class EventLog:
    """Append-only newline-delimited JSON file."""

    path: Path

    def append(self, event: Event) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as stream:
            stream.write(json.dumps(event, ensure_ascii=False, separators=(",", ":")) + "\n")

    def __iter__(self) -> Iterator[Event]:
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as stream:
            for raw in stream:
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    event = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if isinstance(event, dict):
                    yield event


def current_log() -> EventLog:
    """Log at ``TELEMETRY_LOG_PATH`` or ``var/log`` beside the package."""

    override = os.getenv("TELEMETRY_LOG_PATH")
    if override:
        return EventLog(Path(override).expanduser())
    return EventLog(Path(__file__).resolve().parents[2] / DEFAULT_LOG_PATH)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_error_type(err_type: Union[ErrorType, str]) -> ErrorType:
    if isinstance(err_type, ErrorType):
        return err_type
    if not ErrorType.has_value(err_type):
        raise ValueError(f"Unknown error type: {err_type}")
    return ErrorType(err_type)


def log_error(request_id: str, err_type: Union[ErrorType, str], details: Dict[str, object]) -> Event:
    """Record a failed request and return the stored event."""

    if not isinstance(request_id, str) or not request_id:
        raise ValueError("request_id must be a non-empty string")
    error_type = _to_error_type(err_type)
    if not isinstance(details, dict):
        raise TypeError("details must be a dict")
    try:
        json.dumps(details)
    except TypeError as exc:
        raise TypeError("details must be JSON serialisable") from exc

    event: Event = {
        "type": "error",
        "timestamp": _utc_now().isoformat().replace("+00:00", "Z"),
        "request_id": request_id,
        "error_type": error_type.value,
        "details": details,
    }
    current_log().append(event)
    return event


def _event_time(event: Event) -> Optional[datetime]:
    raw = event.get("timestamp")
    if not isinstance(raw, str):
        return None
    try:
        moment = datetime.fromisoformat(raw[:-1] + "+00:00" if raw.endswith("Z") else raw)
    except ValueError:
        return None
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def recent_errors(
    *,
    window: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> List[Event]:
    """Error events logged within *window* (24h by default), oldest first."""

    cutoff = (now or _utc_now()) - (window or ERROR_LOOKBACK)
    found: List[Event] = []
    for event in current_log():
        if event.get("type") != "error":
            continue
        moment = _event_time(event)
        if moment is not None and moment >= cutoff:
            found.append(event)
    return found


def error_counts(*, window: Optional[timedelta] = None, now: Optional[datetime] = None) -> Dict[str, int]:
    """Number of recent errors per error type."""

    return dict(Counter(str(event.get("error_type")) for event in recent_errors(window=window, now=now)))
