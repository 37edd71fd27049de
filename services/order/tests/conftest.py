"""
Order Service テスト共通フィクスチャ

テストごとに一時ファイルの SQLite (aiosqlite) を使う。
監査シンクは記録用・失敗用のフェイクを差し替える。
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

# app のインポート前に設定しておく
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app import ledger, order_store, queries
from app.database import init_schema
from app.errors import AuditNotifyFailure
from app.main import app, get_audit_sink, get_session_factory
from app.models import LineItem, Order, OrderStatus
from app.schema import products


class RecordingAuditSink:
    def __init__(self) -> None:
        self.events = []

    async def record(self, event) -> None:
        self.events.append(event)


class FailingAuditSink:
    def __init__(self) -> None:
        self.calls = 0

    async def record(self, event) -> None:
        self.calls += 1
        raise AuditNotifyFailure("audit sink unavailable")


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def failing_audit_sink():
    return FailingAuditSink()


@pytest.fixture
def make_product(session_factory):
    async def _make(stock: int = 10, price: str = "50.00", name: str = "Widget") -> UUID:
        product_id = uuid4()
        now = datetime.now(timezone.utc)
        async with session_factory() as session:
            await session.execute(
                insert(products).values(
                    id=str(product_id),
                    name=name,
                    price=Decimal(price),
                    stock=stock,
                    created_at=now,
                    updated_at=now,
                )
            )
            await session.commit()
        return product_id

    return _make


@pytest.fixture
def make_order(session_factory):
    """注文行を直接作成する (在庫は変更しない)"""

    async def _make(
        items: list[tuple[UUID, int]],
        status: OrderStatus = OrderStatus.PENDING,
        user_id: str = "user-1",
    ) -> Order:
        now = datetime.now(timezone.utc)
        order = Order(
            id=uuid4(),
            user_id=user_id,
            items=[
                LineItem(product_id=pid, quantity=qty, unit_price=Decimal("10.00"), name="Widget")
                for pid, qty in items
            ],
            total=Decimal("10.00") * sum(qty for _, qty in items),
            status=status,
            created_at=now,
            updated_at=now,
        )
        async with session_factory() as session:
            await order_store.insert_order(session, order)
            await session.commit()
        return order

    return _make


@pytest.fixture
def stock_of(session_factory):
    async def _stock(product_id: UUID) -> int | None:
        async with session_factory() as session:
            return await ledger.current_stock(session, product_id)

    return _stock


@pytest.fixture
def order_count(session_factory):
    async def _count() -> int:
        async with session_factory() as session:
            return len(await queries.list_orders(session))

    return _count


@pytest_asyncio.fixture
async def client(session_factory, audit_sink):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_audit_sink] = lambda: audit_sink
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
