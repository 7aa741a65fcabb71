from typing import NamedTuple, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import ApiError
from storefront.crud.admin import get_admin
from storefront.db.session import SessionLocal
from storefront.telegram.api import TelegramClient
from storefront.telegram.init_data import VerifiedInitData, ensure_fresh, verify_init_data


class AdminContext(NamedTuple):
    tg_user_id: int
    username: Optional[str]
    role: str


def get_db():
    """Зависимость для получения сессии базы данных."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_telegram() -> TelegramClient:
    """Зависимость для клиента Bot API (в тестах подменяется)."""
    return TelegramClient(settings.BOT_TOKEN)


def authenticate_init_data(init_data: Optional[str]) -> VerifiedInitData:
    """Проверяет подпись и свежесть initData из mini-app."""
    raw = (init_data or "").strip()
    if not raw:
        raise ApiError(401, "TG_INIT_DATA_REQUIRED", "Open the mini app inside Telegram")

    verified = verify_init_data(raw, settings.BOT_TOKEN)
    ensure_fresh(verified, settings.INIT_DATA_MAX_AGE_SECONDS)
    return verified


def get_current_admin(
    db: Session = Depends(get_db),
    x_telegram_init_data: Optional[str] = Header(None),
    x_dev_admin: Optional[str] = Header(None),
) -> AdminContext:
    # Локальная разработка без Telegram: X-Dev-Admin: 1 + DEV_ADMIN_TG_USER_ID
    if settings.is_dev and x_dev_admin == "1" and settings.DEV_ADMIN_TG_USER_ID:
        tg_user_id = settings.DEV_ADMIN_TG_USER_ID
        username = None
    else:
        verified = authenticate_init_data(x_telegram_init_data)
        tg_user_id = verified.user.id
        username = verified.user.username

    admin = get_admin(db, tg_user_id)
    if admin is None:
        raise ApiError(403, "FORBIDDEN", "Нет доступа")

    return AdminContext(tg_user_id=tg_user_id, username=username, role=admin.role)
