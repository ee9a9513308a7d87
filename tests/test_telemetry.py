from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from feedback_flow.errors import ErrorType
from feedback_flow.telemetry import events


def test_log_error_writes_ndjson(tmp_path, monkeypatch):
    log_path = tmp_path / "events" / "telemetry.ndjson"
    monkeypatch.setenv("TELEMETRY_LOG_PATH", str(log_path))

    details = {"path": "/api/purchase-status", "status": 500, "message": "disk unavailable"}
    event = events.log_error("req-123", ErrorType.STORAGE_ERROR, details)

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    stored = json.loads(lines[0])
    assert stored["type"] == "error"
    assert stored["request_id"] == "req-123"
    assert stored["error_type"] == "storage_error"
    assert stored["details"] == details
    assert stored["timestamp"].endswith("Z")
    assert event == stored


def test_log_error_validates_arguments():
    with pytest.raises(ValueError):
        events.log_error("", ErrorType.UNKNOWN, {})
    with pytest.raises(ValueError):
        events.log_error("req-1", "exploded", {})
    with pytest.raises(TypeError):
        events.log_error("req-1", ErrorType.UNKNOWN, {"when": object()})


def test_error_type_accepts_string_values():
    assert ErrorType.has_value("invalid_request")
    assert not ErrorType.has_value("exploded")
    assert events.log_error("req-2", "unauthorized", {})["error_type"] == "unauthorized"


def test_recent_errors_filters_by_window(tmp_path, monkeypatch):
    log_path = tmp_path / "telemetry.ndjson"
    monkeypatch.setenv("TELEMETRY_LOG_PATH", str(log_path))
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    old = {
        "type": "error",
        "timestamp": "2024-05-30T12:00:00Z",
        "request_id": "old",
        "error_type": "unknown",
        "details": {},
    }
    fresh = dict(old, timestamp="2024-06-01T11:00:00Z", request_id="fresh")
    other = {"type": "feedback", "timestamp": "2024-06-01T11:30:00Z"}
    log_path.write_text(
        "\n".join(json.dumps(row) for row in (old, fresh, other)) + "\nnot json\n",
        encoding="utf-8",
    )

    assert [e["request_id"] for e in events.recent_errors(now=now)] == ["fresh"]
    assert len(events.recent_errors(window=timedelta(days=3), now=now)) == 2


def test_recent_errors_without_log_file(tmp_path, monkeypatch):
    monkeypatch.setenv("TELEMETRY_LOG_PATH", str(tmp_path / "missing.ndjson"))
    assert events.recent_errors() == []


def test_error_counts_group_by_type():
    events.log_error("req-a", ErrorType.STORAGE_ERROR, {})
    events.log_error("req-b", ErrorType.STORAGE_ERROR, {})
    events.log_error("req-c", ErrorType.INVALID_REQUEST, {})

    assert events.error_counts() == {"storage_error": 2, "invalid_request": 1}


def test_error_types_cover_what_the_api_reports():
    assert {member.value for member in ErrorType} == {
        "invalid_request",
        "unauthorized",
        "storage_error",
        "unknown",
    }
