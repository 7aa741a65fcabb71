import html
import math
from typing import List, NamedTuple, Optional

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

ACTION_VIEWS = ("main", "done_confirm")


class OrderLine(NamedTuple):
    title: str
    qty: int
    unit_price: float
    product_id: Optional[str] = None


class TelegramOrderMessage(NamedTuple):
    text: str
    reply_markup: InlineKeyboardMarkup


def format_rub(value: float) -> str:
    # Округление половины вверх, как в чеке: 10.5 -> 11
    return f"{math.floor(value + 0.5)} ₽"


def short_order_id(order_id: str) -> str:
    return order_id[-6:].upper()


def _status_prefix(status: str) -> str:
    if status == "processing":
        return "🟡 <b>В работе</b>\n"
    if status == "done":
        return "✅ <b>Готово</b>\n"
    return ""


def build_order_keyboard(status: str, order_id: str, tg_user_id: int, actions_view: str = "main") -> InlineKeyboardMarkup:
    rows: List[List[InlineKeyboardButton]] = []

    if status != "done":
        if actions_view == "done_confirm":
            rows.append([InlineKeyboardButton(text="Подтвердить ✅", callback_data=f"status:done:{order_id}")])
            rows.append([InlineKeyboardButton(text="⬅ Назад", callback_data=f"ui:main:{order_id}")])
        else:
            rows.append([InlineKeyboardButton(text="✅ Готово", callback_data=f"ui:done_confirm:{order_id}")])

    rows.append([InlineKeyboardButton(text="Написать клиенту", url=f"tg://user?id={tg_user_id}")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def build_order_message(
    *,
    status: str,
    city_name: str,
    city_slug: str,
    tg_user_id: int,
    tg_username: Optional[str],
    delivery_method: str,
    comment: Optional[str],
    lines: List[OrderLine],
    total_price: float,
    order_id: str,
    actions_view: str = "main",
) -> TelegramOrderMessage:
    """Текст уведомления о заказе (parse_mode=HTML) и inline-клавиатура."""
    esc = html.escape

    city_line = f"{esc(city_name)} ({esc(city_slug.upper())})"
    user_line = f"@{esc(tg_username)} ({tg_user_id})" if tg_username else f"{tg_user_id}"
    items_lines = "\n".join(
        f"• {esc(line.title)} ×{line.qty} — {format_rub(line.unit_price)}" for line in lines
    )
    comment_part = f"\nКомментарий: {esc(comment)}" if comment else ""

    text = (
        _status_prefix(status)
        + "<b>Новый заказ</b>\n"
        + f"Город: {city_line}\n"
        + f"Юзер: {user_line}\n"
        + f"Заказ: <b>#{esc(short_order_id(order_id))}</b>\n\n"
        + "<b>Позиции</b>\n"
        + f"{items_lines}\n\n"
        + f"<b>Итого:</b> {format_rub(total_price)}\n"
        + f"Получение: {esc(delivery_method)}"
        + comment_part
        + f"\n\nUUID: <code>{esc(order_id)}</code>"
    )

    return TelegramOrderMessage(
        text=text,
        reply_markup=build_order_keyboard(status, order_id, tg_user_id, actions_view),
    )
