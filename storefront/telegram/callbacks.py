"""
Обработка нажатий inline-кнопок под уведомлением о заказе.

callback_data:
    status:<processing|done>:<order_id>  - сменить статус заказа
    ui:<main|done_confirm>:<order_id>    - переключить набор кнопок
"""
import logging
from typing import NamedTuple, Optional

from aiogram.types import CallbackQuery
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.crud.admin import get_admin
from storefront.crud.order import get_order, set_order_status
from storefront.services.order_message import ACTION_VIEWS
from storefront.services.orders import render_order_message
from storefront.services.products_import import is_uuid
from storefront.telegram.api import TelegramClient

logger = logging.getLogger(__name__)

CALLBACK_STATUSES = ("processing", "done")


class CallbackCommand(NamedTuple):
    kind: str
    value: str
    order_id: str


def parse_callback_data(data: Optional[str]) -> Optional[CallbackCommand]:
    parts = (data or "").split(":")
    if len(parts) != 3 or not all(parts):
        return None

    kind, value, order_id = parts
    if kind == "status" and value not in CALLBACK_STATUSES:
        return None
    if kind == "ui" and value not in ACTION_VIEWS:
        return None
    if kind not in ("status", "ui") or not is_uuid(order_id):
        return None
    return CallbackCommand(kind=kind, value=value, order_id=order_id)


async def _answer_safe(telegram: TelegramClient, callback_query_id: str, text: Optional[str] = None) -> None:
    try:
        await telegram.answer_callback_query(callback_query_id, text)
    except Exception as e:
        logger.warning(f"answerCallbackQuery не выполнен: {e}")


async def handle_callback_query(db: Session, telegram: TelegramClient, callback: CallbackQuery) -> None:
    command = parse_callback_data(callback.data)
    if command is None:
        await _answer_safe(telegram, callback.id, "Некорректная команда")
        return

    if get_admin(db, callback.from_user.id) is None:
        await _answer_safe(telegram, callback.id, "Нет доступа")
        return

    order = get_order(db, command.order_id)
    if order is None:
        await _answer_safe(telegram, callback.id, "Заказ не найден")
        return

    actions_view = "main"
    answer_text = None
    if command.kind == "status":
        if order.status != command.value:
            order = set_order_status(db, order, command.value)
            logger.info(f"Заказ {order.id}: статус {command.value} (админ {callback.from_user.id})")
        answer_text = "Статус обновлён"
    else:
        actions_view = command.value

    message = render_order_message(order, actions_view)

    # Сначала сохранённое уведомление, иначе сообщение, под которым нажата кнопка
    if order.notify_chat_id is not None and order.notify_message_id is not None:
        target = (order.notify_chat_id, order.notify_message_id)
    elif callback.message is not None:
        target = (callback.message.chat.id, callback.message.message_id)
    else:
        target = None

    if message is not None and target is not None:
        try:
            await telegram.edit_message_text(target[0], target[1], message.text, reply_markup=message.reply_markup)
        except Exception as e:
            logger.error(f"Не удалось отредактировать сообщение заказа {order.id}: {e}")

    await _answer_safe(telegram, callback.id, answer_text)


async def ensure_webhook(telegram: TelegramClient) -> bool:
    """В production выставляет вебхук, если задан https WEBHOOK_URL."""
    if settings.ENVIRONMENT != "production":
        return False
    if not settings.WEBHOOK_URL.startswith("https://"):
        if settings.WEBHOOK_URL:
            logger.warning("WEBHOOK_URL должен быть https, вебхук не выставлен")
        return False

    await telegram.set_webhook(settings.WEBHOOK_URL, settings.WEBHOOK_SECRET)
    logger.info(f"Вебхук Telegram выставлен: {settings.WEBHOOK_URL}")
    return True
