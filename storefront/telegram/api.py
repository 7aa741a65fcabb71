import logging
from typing import Any, Dict, Optional, Union

import httpx
from aiogram.types import InlineKeyboardMarkup

from storefront.core.exceptions import TelegramApiError

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"

ChatId = Union[int, str]


def markup_to_dict(markup: Optional[InlineKeyboardMarkup]) -> Optional[Dict[str, Any]]:
    """Сериализует клавиатуру aiogram в JSON для Bot API."""
    if markup is None:
        return None
    return markup.model_dump(mode="json", exclude_none=True)


class TelegramClient:
    """Тонкий клиент Bot API поверх httpx."""

    def __init__(
        self,
        bot_token: str,
        base_url: str = TELEGRAM_API_BASE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._bot_token = bot_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def call(self, method: str, body: Dict[str, Any]) -> Any:
        url = f"{self._base_url}/bot{self._bot_token}/{method}"
        payload = {key: value for key, value in body.items() if value is not None}

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(url, json=payload)

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict) or not isinstance(data.get("ok"), bool):
            raise TelegramApiError(method, response.status_code, "Bad Telegram response")

        if response.is_error or data["ok"] is False:
            description = data.get("description")
            error_code = data.get("error_code")
            raise TelegramApiError(
                method,
                error_code if isinstance(error_code, int) else response.status_code,
                description if isinstance(description, str) else "Telegram API error",
            )

        return data.get("result")

    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> Dict[str, Any]:
        return await self.call("sendMessage", {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
            "reply_markup": markup_to_dict(reply_markup),
        })

    async def edit_message_text(
        self,
        chat_id: ChatId,
        message_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> None:
        await self.call("editMessageText", {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
            "reply_markup": markup_to_dict(reply_markup),
        })

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: Optional[str] = None,
        show_alert: bool = False,
    ) -> None:
        await self.call("answerCallbackQuery", {
            "callback_query_id": callback_query_id,
            "text": text,
            "show_alert": show_alert,
        })

    async def delete_message(self, chat_id: ChatId, message_id: int) -> None:
        await self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def set_webhook(self, url: str, secret_token: str, drop_pending_updates: bool = False) -> None:
        await self.call("setWebhook", {
            "url": url,
            "secret_token": secret_token,
            "drop_pending_updates": drop_pending_updates,
        })

    async def get_webhook_info(self) -> Dict[str, Any]:
        return await self.call("getWebhookInfo", {})
