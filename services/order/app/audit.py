"""
Order Service - 監査シンク (Audit Sink)

コミット後に監査イベントを外部へ通知する。
通知はベストエフォート: 失敗してもコミット済みの注文・在庫には影響しない。

RedisAuditSink は Redis Pub/Sub でイベントを発行する。
購読側 (アクティビティログの書き込み) は別サービスの責務。
"""

import json
import logging
from typing import Protocol

import redis.asyncio as aioredis

from .errors import AuditNotifyFailure
from .events import AuditEvent

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    async def record(self, event: AuditEvent) -> None: ...


class RedisAuditSink:
    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self.redis = redis
        self.channel = channel

    async def record(self, event: AuditEvent) -> None:
        try:
            await self.redis.publish(
                self.channel,
                json.dumps(event.model_dump(mode="json"), default=str),
            )
        except aioredis.RedisError as exc:
            raise AuditNotifyFailure(str(exc)) from exc


async def notify(sink: AuditSink, event: AuditEvent) -> None:
    """監査シンクに通知する。例外はログに残して握りつぶす。"""
    try:
        await sink.record(event)
    except Exception:
        logger.exception(
            "Audit notification failed: %s %s %s",
            event.action.value,
            event.entity_type,
            event.entity_id,
        )
