"""
Order Service - モデル定義

リクエストモデルは型だけを持つ。業務ルール (数量 >= 1 など) は
コマンド側で検証し、フィールド単位のエラーとして返す。
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    FOR_DELIVERY = "for_delivery"
    DELIVERED = "delivered"
    CANCELED = "canceled"


# ── Request Models ───────────────────────────────


class LineItemRequest(BaseModel):
    product_id: UUID
    quantity: int


class PlaceOrderRequest(BaseModel):
    items: list[LineItemRequest]
    total: Decimal


class UpdateStatusRequest(BaseModel):
    status: str


# ── Domain / Response Models ─────────────────────


class LineItem(BaseModel):
    """注文時点の商品スナップショット。作成後は変更しない。"""
    product_id: UUID
    quantity: int
    unit_price: Decimal
    name: str


class Order(BaseModel):
    id: UUID
    user_id: str
    items: list[LineItem]
    total: Decimal
    status: OrderStatus
    created_at: datetime
    updated_at: datetime

    def audit_values(self) -> dict:
        return self.model_dump(mode="json")


class ProductStock(BaseModel):
    id: UUID
    name: str
    price: Decimal
    stock: int
    updated_at: datetime | None = None
