from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

from storefront.schemas.common import CamelModel


class AdminMe(CamelModel):
    tg_user_id: int
    username: Optional[str] = None
    role: str


class AdminOrderItem(BaseModel):
    product_id: Optional[str] = None
    title: Optional[str] = None
    qty: int
    unit_price: float


class AdminOrder(BaseModel):
    """Заказ для списка в админке (snake_case, как колонки в БД)."""
    id: str
    created_at: datetime
    status: str
    city_id: Optional[int] = None
    city_slug: Optional[str] = None
    tg_user_id: int
    tg_username: Optional[str] = None
    delivery_method: str
    comment: Optional[str] = None
    total_price: float
    items: List[AdminOrderItem]


class OrderStatusUpdate(BaseModel):
    status: Literal["new", "processing", "done"]


class OrderStatusOut(BaseModel):
    id: str
    status: str
