"""
Unit tests for the Audit Log.
"""

import json
from datetime import UTC, datetime

import pytest

from slotpool.modules.audit import AuditLog
from slotpool.modules.models import AuditEventType


@pytest.mark.asyncio
async def test_record_pushes_and_trims(mock_redis):
    audit = AuditLog(mock_redis, max_entries=100)

    await audit.record(AuditEventType.SESSION_ENDED, "u1", "api1", "Session ended")

    key, payload = mock_redis.lpush.call_args[0]
    assert key == "audit:events"
    event = json.loads(payload)
    assert event["type"] == "session_ended"
    assert event["requester_id"] == "u1"
    assert event["backend_id"] == "api1"
    assert event["message"] == "Session ended"
    assert "timestamp" in event
    mock_redis.ltrim.assert_called_once_with("audit:events", 0, 99)


@pytest.mark.asyncio
async def test_record_swallows_store_errors(mock_redis):
    mock_redis.lpush.side_effect = ConnectionError("redis down")
    audit = AuditLog(mock_redis)

    await audit.record(AuditEventType.SESSION_STARTED, "u1", "api1")

    mock_redis.ltrim.assert_not_called()


@pytest.mark.asyncio
async def test_record_swallows_unknown_event_type(mock_redis):
    audit = AuditLog(mock_redis)

    await audit.record("not_an_event", "u1", "api1")

    mock_redis.lpush.assert_not_called()


@pytest.mark.asyncio
async def test_read_newest_first_and_bounded(fake_redis):
    audit = AuditLog(fake_redis, max_entries=1000)
    for i in range(150):
        await audit.record(AuditEventType.SESSION_STARTED, f"u{i}", "api1")

    events = await audit.read(100)

    assert len(events) == 100
    assert events[0]["requester_id"] == "u149"
    assert events[-1]["requester_id"] == "u50"


@pytest.mark.asyncio
async def test_log_is_capped(fake_redis):
    audit = AuditLog(fake_redis, max_entries=5)
    for i in range(8):
        await audit.record(AuditEventType.SESSION_STARTED, f"u{i}", "api1")

    events = await audit.read(100)

    assert [e["requester_id"] for e in events] == ["u7", "u6", "u5", "u4", "u3"]


@pytest.mark.asyncio
async def test_corrupt_entries_become_placeholders(fake_redis):
    audit = AuditLog(fake_redis)
    await audit.record(AuditEventType.SESSION_STARTED, "u1", "api1")
    await fake_redis.lpush("audit:events", "{not json")
    await audit.record(AuditEventType.SESSION_ENDED, "u1", "api1")

    events = await audit.read(10)

    assert [e["type"] for e in events] == ["session_ended", "corrupt_data", "session_started"]


@pytest.mark.asyncio
async def test_clear(fake_redis):
    audit = AuditLog(fake_redis)
    await audit.record(AuditEventType.SESSION_STARTED, "u1", "api1")

    await audit.clear()

    assert await audit.read(100) == []


@pytest.mark.asyncio
async def test_read_non_positive_limit(mock_redis):
    audit = AuditLog(mock_redis)

    assert await audit.read(0) == []
    mock_redis.lrange.assert_not_called()


@pytest.mark.asyncio
async def test_bulk_event_carries_count(fake_redis):
    audit = AuditLog(fake_redis)

    await audit.record(AuditEventType.BULK_SESSION_ENDED, None, "api1", "Ended 3 session(s)", count=3)

    event = (await audit.read(1))[0]
    assert event["count"] == 3
    assert event["requester_id"] is None
    assert datetime.fromisoformat(event["timestamp"]).tzinfo is not None
    assert datetime.fromisoformat(event["timestamp"]) <= datetime.now(UTC)
