"""
Order Service - FastAPI エントリーポイント

CQRS パターンに従い、Command (POST/DELETE) と Query (GET) のエンドポイントを分離。
注文作成・削除は在庫台帳と同じトランザクションで行い、
コミット後に監査イベントを Redis に発行する。

認証は上流 (API ゲートウェイ) で済んでいる前提。
操作者の ID は X-User-Id ヘッダで受け取る。
"""

import logging
from contextlib import asynccontextmanager
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from . import commands, config, queries
from .audit import AuditSink, RedisAuditSink
from .database import async_session, engine, init_schema
from .errors import InsufficientStock, NotFound, PersistenceFailure, ValidationError
from .models import PlaceOrderRequest, UpdateStatusRequest

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    await init_schema(engine)
    redis_pool = aioredis.from_url(config.REDIS_URL, decode_responses=True)
    yield
    await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Order Service", lifespan=lifespan)


# ── Dependencies ─────────────────────────────────


def get_session_factory() -> sessionmaker:
    return async_session


def get_audit_sink() -> AuditSink:
    return RedisAuditSink(redis_pool, config.AUDIT_CHANNEL)


def get_actor_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthenticated")
    return x_user_id


# ── Error Handlers ───────────────────────────────


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"message": "The given data was invalid.", "errors": exc.errors},
    )


@app.exception_handler(InsufficientStock)
async def handle_insufficient_stock(request: Request, exc: InsufficientStock):
    return JSONResponse(
        status_code=422,
        content={
            "message": str(exc),
            "product_id": exc.product_id,
            "product_name": exc.product_name,
            "available": exc.available,
            "requested": exc.requested,
        },
    )


@app.exception_handler(NotFound)
async def handle_not_found(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PersistenceFailure)
async def handle_persistence_failure(request: Request, exc: PersistenceFailure):
    return JSONResponse(status_code=500, content={"message": "Failed to process order"})


# ── Command Endpoints (Write 側) ─────────────────


@app.post("/commands/orders", status_code=201)
async def cmd_place_order(
    req: PlaceOrderRequest,
    actor_id: str = Depends(get_actor_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    """注文作成コマンド (操作者 = 注文者)"""
    order = await commands.place_order(
        session_factory,
        audit_sink,
        actor_id,
        actor_id,
        req.items,
        req.total,
        enforce_total=config.ENFORCE_ORDER_TOTAL,
    )
    return {"message": "Order placed successfully", "order": order}


@app.delete("/commands/orders/{order_id}")
async def cmd_remove_order(
    order_id: UUID,
    actor_id: str = Depends(get_actor_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    """注文削除コマンド (未配達なら在庫を戻す)"""
    await commands.remove_order(session_factory, audit_sink, actor_id, order_id)
    return {"message": "Order deleted successfully"}


@app.post("/commands/orders/{order_id}/status")
async def cmd_update_status(
    order_id: UUID,
    req: UpdateStatusRequest,
    actor_id: str = Depends(get_actor_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    order = await commands.update_order_status(
        session_factory, audit_sink, actor_id, order_id, req.status
    )
    return {"message": "Order updated successfully", "order": order}


# ── Query Endpoints (Read 側) ────────────────────


@app.get("/queries/orders")
async def query_list_orders(
    actor_id: str = Depends(get_actor_id),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """全注文 (管理者向け)"""
    async with session_factory() as session:
        return await queries.list_orders(session)


@app.get("/queries/orders/mine")
async def query_my_orders(
    actor_id: str = Depends(get_actor_id),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """操作者自身の注文"""
    async with session_factory() as session:
        return await queries.list_orders_for_user(session, actor_id)


@app.get("/queries/orders/{order_id}")
async def query_get_order(
    order_id: UUID,
    actor_id: str = Depends(get_actor_id),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    async with session_factory() as session:
        order = await queries.get_order(session, order_id)
        if not order:
            raise HTTPException(404, "Order not found")
        return order


@app.get("/queries/products/{product_id}")
async def query_get_product(
    product_id: UUID,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    async with session_factory() as session:
        product = await queries.get_product(session, product_id)
        if not product:
            raise HTTPException(404, "Product not found")
        return product


@app.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}
