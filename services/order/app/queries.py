"""
Order Service - クエリハンドラ (CQRS の Read 側)

読み取り専用。状態の変更は commands.py だけが行う。
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Order, ProductStock
from .order_store import row_to_order
from .schema import orders, products


async def get_order(session: AsyncSession, order_id: UUID) -> Order | None:
    result = await session.execute(select(orders).where(orders.c.id == str(order_id)))
    row = result.fetchone()
    if not row:
        return None
    return row_to_order(row)


async def list_orders(session: AsyncSession) -> list[Order]:
    """全注文一覧 (新しい順)"""
    result = await session.execute(select(orders).order_by(orders.c.created_at.desc()))
    return [row_to_order(row) for row in result.fetchall()]


async def list_orders_for_user(session: AsyncSession, user_id: str) -> list[Order]:
    """指定ユーザーの注文一覧 (新しい順)"""
    result = await session.execute(
        select(orders)
        .where(orders.c.user_id == user_id)
        .order_by(orders.c.created_at.desc())
    )
    return [row_to_order(row) for row in result.fetchall()]


async def get_product(session: AsyncSession, product_id: UUID) -> ProductStock | None:
    result = await session.execute(
        select(products).where(products.c.id == str(product_id))
    )
    row = result.fetchone()
    if not row:
        return None
    return ProductStock(
        id=UUID(row.id),
        name=row.name,
        price=row.price,
        stock=row.stock,
        updated_at=row.updated_at,
    )
