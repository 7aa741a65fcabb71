import asyncio
import json

import httpx
import pytest
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from storefront.core.exceptions import TelegramApiError
from storefront.telegram.api import TelegramClient


def make_client(handler):
    return TelegramClient("123:ABC", transport=httpx.MockTransport(handler))


def test_send_message_posts_json_and_returns_result():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 10, "chat": {"id": -100}}})

    markup = InlineKeyboardMarkup(inline_keyboard=[[InlineKeyboardButton(text="OK", callback_data="ui:main:x")]])
    result = asyncio.run(make_client(handler).send_message(-100, "<b>hi</b>", reply_markup=markup))

    assert result == {"message_id": 10, "chat": {"id": -100}}
    assert seen["path"] == "/bot123:ABC/sendMessage"
    assert seen["body"] == {
        "chat_id": -100,
        "text": "<b>hi</b>",
        "parse_mode": "HTML",
        "disable_web_page_preview": True,
        "reply_markup": {"inline_keyboard": [[{"text": "OK", "callback_data": "ui:main:x"}]]},
    }


def test_none_values_are_dropped():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": True})

    asyncio.run(make_client(handler).answer_callback_query("cb-1"))

    assert seen["body"] == {"callback_query_id": "cb-1", "show_alert": False}


def test_error_response_raises():
    def handler(request):
        return httpx.Response(400, json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"})

    with pytest.raises(TelegramApiError) as exc:
        asyncio.run(make_client(handler).delete_message(1, 2))

    assert exc.value.method == "deleteMessage"
    assert exc.value.error_code == 400
    assert exc.value.description == "Bad Request: chat not found"


def test_non_json_response_raises():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(TelegramApiError) as exc:
        asyncio.run(make_client(handler).get_webhook_info())

    assert exc.value.error_code == 502
