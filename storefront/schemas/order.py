from typing import List, Optional

from pydantic import Field, field_validator

from storefront.schemas.common import CamelModel


class CartItemIn(CamelModel):
    product_id: str = Field(..., min_length=1)
    qty: int = Field(..., strict=True)


class CartQuoteRequest(CamelModel):
    city_slug: str = Field(..., min_length=1, max_length=50)
    items: List[CartItemIn] = Field(..., min_length=1)


class QuoteLine(CamelModel):
    product_id: str
    title: Optional[str] = None
    qty: int = Field(..., strict=True)
    unit_price: Optional[float] = None
    line_total: float
    available: bool
    # NOT_FOUND | NOT_AVAILABLE | NOT_ACTIVE | OUT_OF_STOCK
    reason: Optional[str] = None


class CartQuote(CamelModel):
    city_slug: str
    items: List[QuoteLine]
    total: float


class OrderCreateRequest(CamelModel):
    city_slug: str = Field(..., min_length=1, max_length=50)
    delivery_method: str = Field(..., max_length=200)
    comment: Optional[str] = Field(None, max_length=2000)
    items: List[CartItemIn] = Field(..., min_length=1)
    init_data: Optional[str] = None

    @field_validator("delivery_method")
    @classmethod
    def _strip_delivery(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("deliveryMethod is required")
        return value

    @field_validator("comment")
    @classmethod
    def _strip_comment(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class OrderCreated(CamelModel):
    ok: bool = True
    order_id: str
    notified: bool
