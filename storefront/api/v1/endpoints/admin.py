import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.core.exceptions import ApiError, bad_request, not_found
from storefront.crud import order as crud_order
from storefront.crud import product as crud_product
from storefront.crud.city import get_cities, get_city_by_slug
from storefront.dependencies import AdminContext, get_current_admin, get_db, get_telegram
from storefront.schemas.admin import AdminMe, AdminOrder, OrderStatusOut, OrderStatusUpdate
from storefront.schemas.catalog import CityOut
from storefront.schemas.common import DataResponse
from storefront.schemas.product import (
    AdminProduct,
    InventoryUpdate,
    InventoryUpdated,
    ProductCreate,
    ProductOut,
    ProductsPage,
    ProductUpdate,
)
from storefront.services.products_import import is_uuid
from storefront.telegram.api import TelegramClient

router = APIRouter()
logger = logging.getLogger(__name__)


def checked_id(value: str) -> str:
    if not is_uuid(value):
        raise bad_request("Invalid id")
    return value


@router.get("/me", response_model=DataResponse[AdminMe])
def read_me(admin: AdminContext = Depends(get_current_admin)):
    return DataResponse(data=AdminMe(tg_user_id=admin.tg_user_id, username=admin.username, role=admin.role))


@router.get("/cities", response_model=DataResponse[List[CityOut]])
def read_cities(db: Session = Depends(get_db), admin: AdminContext = Depends(get_current_admin)):
    return DataResponse(data=[CityOut.model_validate(city) for city in get_cities(db)])


# ---------------------------------------------------------------------
# Товары и остатки
# ---------------------------------------------------------------------

@router.get("/products", response_model=DataResponse[ProductsPage])
def read_products(
    tab: Literal["active", "archive"] = "active",
    limit: int = Query(120, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_current_admin),
):
    """Товары вкладки с остатками по всем городам."""
    is_active = tab == "active"
    cities = get_cities(db)
    products = crud_product.list_products(db, is_active=is_active, limit=limit)
    inventory = crud_product.get_inventory_for_products(db, [p.id for p in products])

    items = []
    for product in products:
        cells = []
        for city in cities:
            inv = inventory.get((product.id, city.id))
            # Нет строки остатков - товара в городе нет
            cells.append({
                "city_id": city.id,
                "city_slug": city.slug,
                "in_stock": bool(inv.in_stock) if inv else False,
                "stock_qty": inv.stock_qty if inv else None,
                "price_override": inv.price_override if inv else None,
            })
        item = ProductOut.model_validate(product).model_dump()
        items.append(AdminProduct(**item, inventory=cells))

    active_count = crud_product.count_products(db, is_active=True)
    archive_count = crud_product.count_products(db, is_active=False)
    page = ProductsPage(
        tab=tab,
        limit=limit,
        total=active_count if is_active else archive_count,
        active_count=active_count,
        archive_count=archive_count,
        items=items,
    )
    return DataResponse(data=page)


@router.post("/products", response_model=DataResponse[ProductOut])
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_current_admin),
):
    product = crud_product.create_product(
        db,
        title=payload.title,
        description=payload.description or None,
        base_price=payload.base_price,
        is_active=True if payload.is_active is None else payload.is_active,
        category_slug=(payload.category_slug or "other").lower(),
    )
    logger.info(f"Админ {admin.tg_user_id} создал товар {product.id}")
    return DataResponse(data=ProductOut.model_validate(product))


@router.put("/products/{product_id}", response_model=DataResponse[ProductOut])
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_current_admin),
):
    product = crud_product.get_product(db, checked_id(product_id))
    if product is None:
        raise not_found("Product not found")

    fields = {
        "title": payload.title,
        "description": payload.description or None,
        "base_price": payload.base_price,
        "is_active": payload.is_active,
    }
    if payload.category_slug:
        fields["category_slug"] = payload.category_slug.lower()
    # imageUrl меняем, только если он пришёл в запросе (null - убрать картинку)
    if "image_url" in payload.model_fields_set:
        fields["image_url"] = payload.image_url

    product = crud_product.update_product(db, product, **fields)
    return DataResponse(data=ProductOut.model_validate(product))


@router.put("/inventory", response_model=DataResponse[InventoryUpdated])
def update_inventory(
    payload: InventoryUpdate,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_current_admin),
):
    city = get_city_by_slug(db, payload.city_slug)
    if city is None:
        raise ApiError(400, "CITY_NOT_FOUND", "City not found")
    if crud_product.get_product(db, payload.product_id) is None:
        raise not_found("Product not found")

    crud_product.upsert_inventory(db, [{
        "product_id": payload.product_id,
        "city_id": city.id,
        "in_stock": payload.in_stock,
        "stock_qty": payload.stock_qty,
        "price_override": payload.price_override,
    }])
    db.commit()
    return DataResponse(data=InventoryUpdated(product_id=payload.product_id, city_slug=city.slug))


# ---------------------------------------------------------------------
# Заказы
# ---------------------------------------------------------------------

@router.get("/orders", response_model=DataResponse[List[AdminOrder]])
def read_orders(
    status: Literal["new", "processing", "done"] = "new",
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_current_admin),
):
    orders = crud_order.list_orders(db, status=status, limit=limit)
    result = []
    for order in orders:
        result.append(AdminOrder(
            id=order.id,
            created_at=order.created_at,
            status=order.status,
            city_id=order.city_id,
            city_slug=order.city.slug if order.city is not None else None,
            tg_user_id=order.tg_user_id,
            tg_username=order.tg_username,
            delivery_method=order.delivery_method,
            comment=order.comment,
            total_price=order.total_price,
            items=[
                {
                    "product_id": item.product_id,
                    "title": item.product.title if item.product is not None else None,
                    "qty": item.qty,
                    "unit_price": item.unit_price,
                }
                for item in order.items
            ],
        ))
    return DataResponse(data=result)


@router.put("/orders/{order_id}/status", response_model=DataResponse[OrderStatusOut])
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    telegram: TelegramClient = Depends(get_telegram),
    admin: AdminContext = Depends(get_current_admin),
):
    order = crud_order.get_order(db, checked_id(order_id))
    if order is None:
        raise not_found("Order not found")

    order = crud_order.set_order_status(db, order, payload.status)
    logger.info(f"Админ {admin.tg_user_id}: заказ {order.id} -> {order.status}")

    # Выполненный заказ убираем из чата, статус в БД уже сохранён
    if order.status == "done" and order.notify_chat_id is not None and order.notify_message_id is not None:
        try:
            await telegram.delete_message(order.notify_chat_id, order.notify_message_id)
        except Exception as e:
            logger.error(f"Не удалось удалить сообщение заказа {order.id} в Telegram: {e}")

    return DataResponse(data=OrderStatusOut(id=order.id, status=order.status))
