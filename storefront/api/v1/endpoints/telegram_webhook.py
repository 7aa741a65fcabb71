import hmac
import logging
from typing import Optional

from aiogram.types import Update
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.dependencies import get_db, get_telegram
from storefront.telegram.api import TelegramClient
from storefront.telegram.callbacks import handle_callback_query

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    telegram: TelegramClient = Depends(get_telegram),
):
    """Входящие апдейты бота. После проверки секрета всегда отвечаем 200."""
    secret = x_telegram_bot_api_secret_token or ""
    if not settings.WEBHOOK_SECRET or not hmac.compare_digest(secret.encode(), settings.WEBHOOK_SECRET.encode()):
        return JSONResponse(status_code=401, content={"ok": False})

    try:
        update = Update.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Некорректный апдейт Telegram: {e}")
        return {"ok": True}

    if update.callback_query is None:
        return {"ok": True}

    try:
        await handle_callback_query(db, telegram, update.callback_query)
    except Exception as e:
        # Иначе Telegram будет повторять доставку апдейта
        logger.exception(f"Ошибка обработки callback_query {update.callback_query.id}: {e}")
    return {"ok": True}
