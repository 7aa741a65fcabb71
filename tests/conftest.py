import json
import os
import tempfile
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from urllib.parse import urlencode

# Настройки читаются при импорте пакета, поэтому окружение задаём до него
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BOT_TOKEN"] = "123456:TEST-TOKEN"
os.environ["WEBHOOK_SECRET"] = "webhook-secret"
os.environ["ORDER_CHAT_ID"] = "-100500"
os.environ["ORDER_CHAT_IDS"] = ""
os.environ["STATIC_DIR"] = tempfile.mkdtemp(prefix="storefront-static-")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from storefront.core.exceptions import TelegramApiError  # noqa: E402
from storefront.db.base import Base  # noqa: E402
from storefront.dependencies import get_db, get_telegram  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models import Admin, City, Inventory, Product  # noqa: E402
from storefront.telegram.init_data import build_data_check_string, sign_data_check_string  # noqa: E402

BOT_TOKEN = os.environ["BOT_TOKEN"]
ADMIN_ID = 1001
CUSTOMER_ID = 2002


class FakeTelegram:
    """Записывает вызовы Bot API вместо реальных запросов."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.next_message_id = 77

    async def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))
        if self.fail:
            raise TelegramApiError(method, 400, "Bad Request: chat not found")

    async def send_message(self, chat_id, text, reply_markup=None):
        await self._record("sendMessage", chat_id=chat_id, text=text, reply_markup=reply_markup)
        return {"message_id": self.next_message_id, "chat": {"id": int(chat_id)}}

    async def edit_message_text(self, chat_id, message_id, text, reply_markup=None):
        await self._record("editMessageText", chat_id=chat_id, message_id=message_id, text=text,
                           reply_markup=reply_markup)

    async def answer_callback_query(self, callback_query_id, text=None, show_alert=False):
        await self._record("answerCallbackQuery", callback_query_id=callback_query_id, text=text)

    async def delete_message(self, chat_id, message_id):
        await self._record("deleteMessage", chat_id=chat_id, message_id=message_id)

    async def set_webhook(self, url, secret_token, drop_pending_updates=False):
        await self._record("setWebhook", url=url, secret_token=secret_token,
                           drop_pending_updates=drop_pending_updates)

    async def get_webhook_info(self):
        await self._record("getWebhookInfo")
        return {"url": ""}

    def methods(self):
        return [method for method, _ in self.calls]

    def last(self, method):
        for name, kwargs in reversed(self.calls):
            if name == method:
                return kwargs
        return None


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def telegram():
    return FakeTelegram()


@pytest.fixture()
def client(db_session, telegram):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_telegram] = lambda: telegram
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def cities(db_session):
    vvo = City(name="Владивосток", slug="vvo")
    blg = City(name="Благовещенск", slug="blg")
    db_session.add_all([vvo, blg])
    db_session.commit()
    return SimpleNamespace(vvo=vvo, blg=blg)


@pytest.fixture()
def seeded(db_session, cities):
    """
    phone: активен, есть в обоих городах (во Владивостоке своя цена 900)
    case:  активен, во Владивостоке нет в наличии, в Благовещенске строки нет
    old:   в архиве, во Владивостоке в наличии
    """
    now = datetime.now(timezone.utc)
    phone = Product(title="Телефон", description="Смартфон", category_slug="phones", base_price=1000,
                    image_url="https://cdn.example.com/items/phone.jpg", created_at=now)
    case = Product(title="Чехол", category_slug="accessories", base_price=200,
                   created_at=now - timedelta(minutes=1))
    old = Product(title="Старый товар", base_price=50, is_active=False,
                  created_at=now - timedelta(minutes=2))
    db_session.add_all([phone, case, old])
    db_session.flush()

    db_session.add_all([
        Inventory(product_id=phone.id, city_id=cities.vvo.id, in_stock=True, stock_qty=5, price_override=900),
        Inventory(product_id=phone.id, city_id=cities.blg.id, in_stock=True),
        Inventory(product_id=case.id, city_id=cities.vvo.id, in_stock=False, stock_qty=0),
        Inventory(product_id=old.id, city_id=cities.vvo.id, in_stock=True),
        Admin(tg_user_id=ADMIN_ID, role="owner"),
    ])
    db_session.commit()
    return SimpleNamespace(cities=cities, phone=phone, case=case, old=old)


@pytest.fixture()
def make_init_data():
    def _make(user_id=CUSTOMER_ID, username="buyer", auth_date=None, user=None, bot_token=BOT_TOKEN):
        if user is None:
            user = {"id": user_id, "first_name": "Test", "username": username}
        params = {
            "auth_date": str(auth_date if auth_date is not None else int(time.time())),
            "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
            "user": json.dumps(user, separators=(",", ":"), ensure_ascii=False),
        }
        params["hash"] = sign_data_check_string(build_data_check_string(params), bot_token)
        return urlencode(params)

    return _make


@pytest.fixture()
def admin_headers(make_init_data):
    return {"X-Telegram-Init-Data": make_init_data(user_id=ADMIN_ID, username="owner")}
