from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.schemas.common import CamelModel
from storefront.services.images import is_http_url
from storefront.services.products_import import is_uuid


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip()


# Схема для создания (POST запросы)
class ProductCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=10_000)
    base_price: float = Field(..., ge=0, allow_inf_nan=False)
    is_active: Optional[bool] = None
    category_slug: Optional[str] = Field(None, max_length=50)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", "category_slug", mode="before")
    @classmethod
    def _strip(cls, value):
        return _strip_optional(value) if isinstance(value, str) else value


# Схема для обновления (PUT), все поля кроме imageUrl обязательны
class ProductUpdate(ProductCreate):
    description: Optional[str] = Field(..., max_length=10_000)
    is_active: bool
    image_url: Optional[str] = None

    @field_validator("image_url")
    @classmethod
    def _check_image_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not is_http_url(value):
            raise ValueError("imageUrl must be an http(s) URL")
        return value


# Схема для чтения (ответ админке)
class ProductOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category_slug: str
    base_price: float
    image_url: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class InventoryCell(BaseModel):
    city_id: int
    city_slug: str
    in_stock: bool
    stock_qty: Optional[int] = None
    price_override: Optional[float] = None


class AdminProduct(ProductOut):
    inventory: List[InventoryCell]


class ProductsPage(CamelModel):
    tab: str
    limit: int
    total: int
    active_count: int
    archive_count: int
    items: List[AdminProduct]


class ProductImageOut(CamelModel):
    image_url: str


class InventoryUpdate(CamelModel):
    product_id: str
    city_slug: str = Field(..., min_length=1, max_length=50)
    in_stock: bool
    stock_qty: Optional[int] = Field(None, ge=0)
    price_override: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    @field_validator("product_id")
    @classmethod
    def _check_product_id(cls, value: str) -> str:
        if not is_uuid(value):
            raise ValueError("productId must be a UUID")
        return value

    @field_validator("city_slug")
    @classmethod
    def _strip_city(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("citySlug is required")
        return value


class InventoryUpdated(CamelModel):
    product_id: str
    city_slug: str
