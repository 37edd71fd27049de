"""監査シンク (Redis 発行と通知のエラー隔離) のテスト"""

import json
import logging
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as aioredis

from app import events
from app.audit import RedisAuditSink, notify
from app.errors import AuditNotifyFailure


async def test_redis_sink_publishes_event_as_json():
    redis = AsyncMock()
    sink = RedisAuditSink(redis, "activity_log")
    event = events.order_updated("o-1", "admin", {"status": "pending"}, {"status": "delivered"})

    await sink.record(event)

    channel, payload = redis.publish.await_args.args
    assert channel == "activity_log"
    body = json.loads(payload)
    assert body["action"] == "update"
    assert body["entity_type"] == "Order"
    assert body["entity_id"] == "o-1"
    assert body["actor_id"] == "admin"
    assert body["description"] == "Updated Order: Order #o-1"
    assert body["old_values"] == {"status": "pending"}
    assert body["new_values"] == {"status": "delivered"}


async def test_redis_sink_wraps_connection_errors():
    redis = AsyncMock()
    redis.publish.side_effect = aioredis.ConnectionError("refused")
    sink = RedisAuditSink(redis, "activity_log")

    with pytest.raises(AuditNotifyFailure):
        await sink.record(events.order_deleted("o-1", "admin", {"id": "o-1"}))


async def test_notify_swallows_and_logs_failures(failing_audit_sink, caplog):
    event = events.order_created("o-2", "u1", {"items_count": 1})

    with caplog.at_level(logging.ERROR, logger="app.audit"):
        await notify(failing_audit_sink, event)

    assert failing_audit_sink.calls == 1
    assert "Audit notification failed: create Order o-2" in caplog.text


async def test_notify_passes_event_through(audit_sink):
    event = events.order_created("o-3", None, {"items_count": 2})

    await notify(audit_sink, event)

    assert audit_sink.events == [event]
