"""
Order Service - 注文ストア (Order Record Store)

注文行の作成・読み込み・削除・ステータス更新。
items と total は作成後に変更しない。
"""

import json
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFound
from .models import Order, OrderStatus
from .schema import orders


def row_to_order(row: Row) -> Order:
    data = row._mapping
    items = data["items"]
    return Order(
        id=UUID(data["id"]),
        user_id=data["user_id"],
        items=json.loads(items) if isinstance(items, str) else items,
        total=data["total"],
        status=data["status"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


async def insert_order(session: AsyncSession, order: Order) -> None:
    await session.execute(
        insert(orders).values(
            id=str(order.id),
            user_id=order.user_id,
            items=[item.model_dump(mode="json") for item in order.items],
            total=order.total,
            status=order.status.value,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
    )


async def load_order(
    session: AsyncSession,
    order_id: UUID,
    lock: bool = False,
) -> Order:
    stmt = select(orders).where(orders.c.id == str(order_id))
    if lock:
        stmt = stmt.with_for_update()
    row = (await session.execute(stmt)).fetchone()
    if not row:
        raise NotFound("Order", order_id)
    return row_to_order(row)


async def delete_order(session: AsyncSession, order_id: UUID) -> None:
    """
    注文行を削除する。

    削除件数が 0 の場合 (並行した削除に先を越された) は NotFound。
    呼び出し側のトランザクションごとロールバックされる。
    """
    result = await session.execute(delete(orders).where(orders.c.id == str(order_id)))
    if result.rowcount != 1:
        raise NotFound("Order", order_id)


async def set_status(
    session: AsyncSession,
    order_id: UUID,
    status: OrderStatus,
) -> datetime:
    now = datetime.now(timezone.utc)
    result = await session.execute(
        update(orders)
        .where(orders.c.id == str(order_id))
        .values(status=status.value, updated_at=now)
    )
    if result.rowcount != 1:
        raise NotFound("Order", order_id)
    return now
