"""
Order Service - コマンドハンドラ (CQRS の Write 側)

注文の作成と削除は、在庫台帳と注文ストアをまたぐ1つのユニットオブワークで行う。
  - place_order : 在庫を減算し注文を作成 (全件成功か、何も起きないか)
  - remove_order: 注文を削除し、未配達なら在庫を戻す
  - update_order_status: ステータスだけを変更 (在庫には触れない)

監査シンクへの通知は必ずコミット後。通知の失敗は結果に影響しない。
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from uuid import UUID, uuid4

from sqlalchemy.orm import sessionmaker

from . import events, ledger, order_store
from .audit import AuditSink, notify
from .database import read_only, unit_of_work
from .errors import InsufficientStock, ValidationError
from .models import LineItem, LineItemRequest, Order, OrderStatus

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# orders.total は NUMERIC(10, 2)
MAX_TOTAL = Decimal("1e8")


def _validate_request(items: list[LineItemRequest], total: object) -> Decimal:
    errors: dict[str, str] = {}

    if not items:
        errors["items"] = "At least one item is required"
    for n, item in enumerate(items or []):
        if item.quantity < 1:
            errors[f"items.{n}.quantity"] = "Quantity must be at least 1"

    try:
        declared = total if isinstance(total, Decimal) else Decimal(str(total))
    except (InvalidOperation, ValueError):
        declared = None
    if declared is None or not declared.is_finite():
        errors["total"] = "Total must be a number"
    elif declared < 0:
        errors["total"] = "Total must be at least 0"
    elif declared >= MAX_TOTAL:
        errors["total"] = "Total must be less than 100000000"
    elif declared.as_tuple().exponent < -2:
        errors["total"] = "Total must have at most 2 decimal places"

    if errors:
        raise ValidationError(errors)
    return declared


def _check_total(snapshot: list[LineItem], declared: Decimal) -> None:
    expected = sum((item.unit_price * item.quantity for item in snapshot), Decimal("0"))
    if expected.quantize(CENT) != declared.quantize(CENT):
        raise ValidationError(
            {"total": f"Total does not match item prices (expected {expected.quantize(CENT)})"}
        )


async def place_order(
    session_factory: sessionmaker,
    audit_sink: AuditSink,
    actor_id: str | None,
    owner_id: str,
    items: list[LineItemRequest],
    declared_total: Decimal,
    enforce_total: bool = False,
) -> Order:
    """
    注文作成コマンド

    1. リクエストの形を検証 (トランザクション前)
    2. 存在しない商品を検証 (トランザクション前、読み取りのみ)
    3. 送信順に在庫を減算。最初の失敗で全体をロールバック
    4. スナップショット (名前・単価) 付きで注文を pending で作成
    5. コミット後に監査シンクへ create を通知
    """
    total = _validate_request(items, declared_total)

    async with read_only(session_factory) as session:
        known = await ledger.get_stock_levels(session, (i.product_id for i in items))
    unknown = {
        f"items.{n}.product_id": "Product does not exist"
        for n, item in enumerate(items)
        if item.product_id not in known
    }
    if unknown:
        raise ValidationError(unknown)

    now = datetime.now(timezone.utc)
    try:
        async with unit_of_work(session_factory) as session:
            snapshot = []
            for item in items:
                level = await ledger.try_decrement(session, item.product_id, item.quantity)
                snapshot.append(
                    LineItem(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price=level.price,
                        name=level.name,
                    )
                )

            if enforce_total:
                _check_total(snapshot, total)

            order = Order(
                id=uuid4(),
                user_id=owner_id,
                items=snapshot,
                total=total,
                status=OrderStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            await order_store.insert_order(session, order)
    except InsufficientStock as exc:
        logger.warning(
            "Order rejected for user %s: %s (requested %d)",
            owner_id,
            exc,
            exc.requested,
        )
        raise

    logger.info("Order %s placed by user %s (%d item(s))", order.id, owner_id, len(snapshot))

    await notify(
        audit_sink,
        events.order_created(
            str(order.id),
            actor_id,
            {
                "user_id": order.user_id,
                "total": str(order.total),
                "items_count": len(order.items),
            },
        ),
    )
    return order


async def remove_order(
    session_factory: sessionmaker,
    audit_sink: AuditSink,
    actor_id: str | None,
    order_id: UUID,
) -> Order:
    """
    注文削除コマンド

    配達済み (delivered) の注文は在庫を戻さない (実際に出荷済みのため)。
    注文行の削除が成功したトランザクションでだけ在庫を戻すので、
    同じ注文の在庫が二重に戻ることはない。
    """
    async with unit_of_work(session_factory) as session:
        order = await order_store.load_order(session, order_id, lock=True)
        old_values = order.audit_values()
        await order_store.delete_order(session, order_id)

        if order.status != OrderStatus.DELIVERED:
            for item in order.items:
                await ledger.increment(session, item.product_id, item.quantity)

    logger.info(
        "Order %s removed (status=%s, stock %s)",
        order_id,
        order.status.value,
        "kept" if order.status == OrderStatus.DELIVERED else "restored",
    )

    await notify(audit_sink, events.order_deleted(str(order_id), actor_id, old_values))
    return order


async def update_order_status(
    session_factory: sessionmaker,
    audit_sink: AuditSink,
    actor_id: str | None,
    order_id: UUID,
    status: str | OrderStatus,
) -> Order:
    """注文ステータス更新コマンド (items / total は変更しない)"""
    try:
        new_status = OrderStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError({"status": f"Status must be one of: {allowed}"}) from None

    async with unit_of_work(session_factory) as session:
        order = await order_store.load_order(session, order_id, lock=True)
        old_status = order.status
        updated_at = await order_store.set_status(session, order_id, new_status)

    order = order.model_copy(update={"status": new_status, "updated_at": updated_at})
    logger.info("Order %s status %s -> %s", order_id, old_status.value, new_status.value)

    await notify(
        audit_sink,
        events.order_updated(
            str(order_id),
            actor_id,
            {"status": old_status.value},
            {"status": new_status.value},
        ),
    )
    return order
