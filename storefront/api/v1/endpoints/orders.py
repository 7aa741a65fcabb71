import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from storefront.dependencies import authenticate_init_data, get_db, get_telegram
from storefront.schemas.order import OrderCreated, OrderCreateRequest
from storefront.services.orders import RequestedItem, create_order, notify_new_order
from storefront.telegram.api import TelegramClient

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/order", response_model=OrderCreated)
async def submit_order(
    payload: OrderCreateRequest,
    x_telegram_init_data: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    telegram: TelegramClient = Depends(get_telegram),
):
    """
    Оформление заказа из mini-app.
    initData берётся из заголовка X-Telegram-Init-Data или из тела запроса.
    """
    verified = authenticate_init_data(x_telegram_init_data or payload.init_data)

    created = create_order(
        db,
        city_slug=payload.city_slug,
        delivery_method=payload.delivery_method,
        comment=payload.comment,
        items=[RequestedItem(product_id=item.product_id, qty=item.qty) for item in payload.items],
        tg_user=verified.user,
    )

    # Заказ уже сохранён, ошибка уведомления ответ не ломает
    notified = await notify_new_order(db, telegram, created)
    return OrderCreated(order_id=created.order_id, notified=notified)
