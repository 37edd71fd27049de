"""
Order Service - 在庫台帳 (Inventory Ledger)

商品ごとの在庫数を持つ。在庫数の変更はこのモジュールの
try_decrement / increment だけが行う。

ロック方式 (PostgreSQL, READ COMMITTED を想定):
  1. SELECT ... FOR UPDATE で商品行をロックして在庫を確認
  2. UPDATE ... WHERE stock >= :qty で減算 (条件付き更新)
同じ商品への同時減算は 1 の行ロックで直列化される。
SQLite は FOR UPDATE を持たないが書き込みをファイル単位で直列化するので、
2 の条件付き更新と CHECK (stock >= 0) で在庫がマイナスにならない。
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import InsufficientStock, NotFound
from .models import ProductStock
from .schema import products

logger = logging.getLogger(__name__)


async def try_decrement(
    session: AsyncSession,
    product_id: UUID,
    quantity: int,
) -> ProductStock:
    """
    在庫を quantity だけ減らし、減算後の在庫と商品スナップショットを返す。

    商品が無ければ NotFound、在庫が足りなければ InsufficientStock。
    どちらの場合も在庫は変更しない。
    """
    now = datetime.now(timezone.utc)

    result = await session.execute(
        select(products.c.name, products.c.price, products.c.stock)
        .where(products.c.id == str(product_id))
        .with_for_update()
    )
    row = result.fetchone()
    if not row:
        raise NotFound("Product", product_id)

    if row.stock < quantity:
        raise InsufficientStock(product_id, row.name, row.stock, quantity)

    result = await session.execute(
        update(products)
        .where(products.c.id == str(product_id), products.c.stock >= quantity)
        .values(stock=products.c.stock - quantity, updated_at=now)
        .returning(products.c.stock)
    )
    new_stock = result.scalar_one_or_none()
    if new_stock is None:
        # 行ロックの無いストアで、確認後に別のトランザクションが在庫を減らした
        available = await current_stock(session, product_id)
        if available is None:
            raise NotFound("Product", product_id)
        raise InsufficientStock(product_id, row.name, available, quantity)

    return ProductStock(
        id=product_id,
        name=row.name,
        price=row.price,
        stock=new_stock,
        updated_at=now,
    )


async def increment(
    session: AsyncSession,
    product_id: UUID,
    quantity: int,
) -> int | None:
    """
    在庫を quantity だけ戻す。

    商品がカタログから削除済みの場合は警告ログを出して None を返す
    (過去の注文は削除済み商品を参照していてもよい)。
    """
    result = await session.execute(
        update(products)
        .where(products.c.id == str(product_id))
        .values(
            stock=products.c.stock + quantity,
            updated_at=datetime.now(timezone.utc),
        )
        .returning(products.c.stock)
    )
    new_stock = result.scalar_one_or_none()
    if new_stock is None:
        logger.warning(
            "Product %s no longer exists; %d unit(s) not restored",
            product_id,
            quantity,
        )
    return new_stock


async def current_stock(session: AsyncSession, product_id: UUID) -> int | None:
    result = await session.execute(
        select(products.c.stock).where(products.c.id == str(product_id))
    )
    return result.scalar_one_or_none()


async def get_stock_levels(
    session: AsyncSession,
    product_ids: Iterable[UUID],
) -> dict[UUID, ProductStock]:
    """指定商品の現在の在庫をまとめて取得する (存在しない商品は含まない)。"""
    ids = {str(pid) for pid in product_ids}
    if not ids:
        return {}
    result = await session.execute(select(products).where(products.c.id.in_(ids)))
    return {
        UUID(row.id): ProductStock(
            id=UUID(row.id),
            name=row.name,
            price=row.price,
            stock=row.stock,
            updated_at=row.updated_at,
        )
        for row in result.fetchall()
    }
