"""
Order Service - 監査イベント定義

コミット後に監査シンクへ渡す事実。過去に起きたことを表し、不変として扱う。
操作者 (actor_id) は呼び出し側から明示的に渡す。
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LOGIN = "login"
    LOGOUT = "logout"


class AuditEvent(BaseModel):
    action: AuditAction
    entity_type: str
    entity_id: str
    actor_id: str | None
    description: str
    old_values: dict | None = None
    new_values: dict | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def order_created(order_id: str, actor_id: str | None, new_values: dict) -> AuditEvent:
    """注文が作成された"""
    return AuditEvent(
        action=AuditAction.CREATE,
        entity_type="Order",
        entity_id=order_id,
        actor_id=actor_id,
        description=f"Created Order: Order #{order_id}",
        new_values=new_values,
    )


def order_updated(
    order_id: str, actor_id: str | None, old_values: dict, new_values: dict
) -> AuditEvent:
    """注文が更新された (ステータス変更)"""
    return AuditEvent(
        action=AuditAction.UPDATE,
        entity_type="Order",
        entity_id=order_id,
        actor_id=actor_id,
        description=f"Updated Order: Order #{order_id}",
        old_values=old_values,
        new_values=new_values,
    )


def order_deleted(order_id: str, actor_id: str | None, old_values: dict) -> AuditEvent:
    """注文が削除された"""
    return AuditEvent(
        action=AuditAction.DELETE,
        entity_type="Order",
        entity_id=order_id,
        actor_id=actor_id,
        description=f"Deleted Order: Order #{order_id}",
        old_values=old_values,
    )
