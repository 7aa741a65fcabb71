import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import ApiError
from storefront.crud.city import get_city_by_slug
from storefront.crud.product import get_city_inventory, get_products_by_ids
from storefront.models.order import Order, OrderItem
from storefront.services.order_message import OrderLine, TelegramOrderMessage, build_order_message
from storefront.services.products_import import is_uuid
from storefront.telegram.api import TelegramClient
from storefront.telegram.init_data import TelegramUser

logger = logging.getLogger(__name__)

MAX_QTY = 99


class RequestedItem(NamedTuple):
    product_id: str
    qty: int


class CreatedOrder(NamedTuple):
    order_id: str
    total_price: float
    lines: List[OrderLine]
    telegram_message: TelegramOrderMessage
    city_slug: str


def normalize_items(items: Iterable[RequestedItem]) -> Dict[str, int]:
    """Проверяет позиции и схлопывает дубли товаров, суммируя количество."""
    by_id: Dict[str, int] = {}
    for item in items:
        if not is_uuid(item.product_id):
            raise ApiError(400, "BAD_REQUEST", f"Неверный productId: {item.product_id}")
        if isinstance(item.qty, bool) or not isinstance(item.qty, int) or not 0 < item.qty <= MAX_QTY:
            raise ApiError(400, "BAD_REQUEST", f"qty должен быть в диапазоне 1..{MAX_QTY}")
        by_id[item.product_id] = by_id.get(item.product_id, 0) + item.qty
    return by_id


def _load_city(db: Session, city_slug: str):
    city = get_city_by_slug(db, city_slug)
    if city is None:
        raise ApiError(400, "CITY_NOT_FOUND", "Город не найден")
    return city


def quote_cart(db: Session, city_slug: str, items: Iterable[RequestedItem]) -> dict:
    """
    Расчёт корзины без оформления: цены города и доступность каждой позиции.
    Недоступные позиции не роняют запрос, а помечаются reason.
    """
    requested = normalize_items(items)
    city = _load_city(db, city_slug)
    inventory = get_city_inventory(db, city.id, list(requested))
    products = get_products_by_ids(db, requested)

    lines = []
    total = 0.0
    for product_id, qty in requested.items():
        product = products.get(product_id)
        inv = inventory.get(product_id)

        reason = None
        if product is None:
            reason = "NOT_FOUND"
        elif inv is None:
            reason = "NOT_AVAILABLE"
        elif not product.is_active:
            reason = "NOT_ACTIVE"
        elif not inv.in_stock:
            reason = "OUT_OF_STOCK"

        unit_price = inv.effective_price() if inv is not None and product is not None else None
        available = reason is None
        line_total = unit_price * qty if available else 0.0
        total += line_total
        lines.append({
            "product_id": product_id,
            "title": product.title if product is not None else None,
            "qty": qty,
            "unit_price": unit_price,
            "line_total": line_total,
            "available": available,
            "reason": reason,
        })

    return {"city_slug": city.slug, "items": lines, "total": total}


def create_order(
    db: Session,
    *,
    city_slug: str,
    delivery_method: str,
    comment: Optional[str],
    items: Iterable[RequestedItem],
    tg_user: TelegramUser,
) -> CreatedOrder:
    requested = normalize_items(items)
    city = _load_city(db, city_slug)
    inventory = get_city_inventory(db, city.id, list(requested))
    products = get_products_by_ids(db, requested)

    lines: List[OrderLine] = []
    total_price = 0.0

    for product_id, qty in requested.items():
        inv = inventory.get(product_id)
        if inv is None:
            raise ApiError(400, "NOT_AVAILABLE", f"Товар недоступен в выбранном городе: {product_id}")

        product = products.get(product_id)
        if product is None:
            raise ApiError(400, "NOT_FOUND", f"Товар не найден: {product_id}")
        if not product.is_active:
            raise ApiError(400, "NOT_ACTIVE", f"Товар отключён: {product.title}")
        if not inv.in_stock:
            raise ApiError(400, "OUT_OF_STOCK", f"Нет в наличии: {product.title}")

        unit_price = inv.effective_price()
        lines.append(OrderLine(title=product.title, qty=qty, unit_price=unit_price, product_id=product_id))
        total_price += unit_price * qty

    # Заказ и позиции пишутся одной транзакцией
    order = Order(
        tg_user_id=tg_user.id,
        tg_username=tg_user.username,
        city_id=city.id,
        delivery_method=delivery_method,
        comment=comment,
        total_price=total_price,
        status="new",
    )
    order.items = [
        OrderItem(product_id=line.product_id, qty=line.qty, unit_price=line.unit_price)
        for line in lines
    ]
    try:
        db.add(order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info(f"Создан заказ {order.id} на сумму {total_price} ({city.slug})")

    message = build_order_message(
        status="new",
        city_name=city.name,
        city_slug=city.slug,
        tg_user_id=tg_user.id,
        tg_username=tg_user.username,
        delivery_method=delivery_method,
        comment=comment,
        lines=lines,
        total_price=total_price,
        order_id=order.id,
    )
    return CreatedOrder(
        order_id=order.id,
        total_price=total_price,
        lines=lines,
        telegram_message=message,
        city_slug=city.slug,
    )


async def notify_new_order(db: Session, telegram: TelegramClient, created: CreatedOrder) -> bool:
    """
    Отправляет уведомление в чат города и запоминает, куда оно ушло.
    Ошибки только логируются: заказ уже сохранён.
    """
    try:
        chat_id = settings.chat_id_for_city(created.city_slug)
        result = await telegram.send_message(
            chat_id,
            created.telegram_message.text,
            reply_markup=created.telegram_message.reply_markup,
        )
    except Exception as e:
        logger.error(f"Ошибка отправки уведомления о заказе {created.order_id} в Telegram: {e}")
        return False

    try:
        order = db.get(Order, created.order_id)
        if order is not None:
            order.notify_chat_id = result["chat"]["id"]
            order.notify_message_id = result["message_id"]
            order.notify_sent_at = datetime.now(timezone.utc)
            db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Не удалось сохранить notify_* для заказа {created.order_id}: {e}")

    logger.info(f"Уведомление о заказе {created.order_id} отправлено в чат {chat_id}")
    return True


def render_order_message(order: Order, actions_view: str = "main") -> Optional[TelegramOrderMessage]:
    """Пересобирает уведомление по сохранённому заказу. Без города вернёт None."""
    if order.city is None:
        logger.warning(f"У заказа {order.id} нет города, сообщение не пересобирается")
        return None

    lines = [
        OrderLine(
            title=item.product.title if item.product is not None else "Unknown",
            qty=item.qty,
            unit_price=float(item.unit_price),
            product_id=item.product_id,
        )
        for item in order.items
    ]
    return build_order_message(
        status=order.status,
        city_name=order.city.name,
        city_slug=order.city.slug,
        tg_user_id=order.tg_user_id,
        tg_username=order.tg_username,
        delivery_method=order.delivery_method,
        comment=order.comment,
        lines=lines,
        total_price=float(order.total_price),
        order_id=order.id,
        actions_view=actions_view,
    )
