from conftest import CUSTOMER_ID
from storefront.core.config import settings
from storefront.models import Order


def order_body(seeded, **overrides):
    body = {
        "citySlug": "vvo",
        "deliveryMethod": "  Самовывоз  ",
        "comment": "   ",
        "items": [
            {"productId": seeded.phone.id, "qty": 1},
            {"productId": seeded.phone.id, "qty": 2},
        ],
    }
    body.update(overrides)
    return body


def test_create_order_and_notify(client, seeded, telegram, make_init_data, db_session):
    response = client.post(
        "/api/v1/order",
        json=order_body(seeded),
        headers={"X-Telegram-Init-Data": make_init_data()},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["notified"] is True

    order = db_session.get(Order, body["orderId"])
    assert order.total_price == 2700
    assert order.status == "new"
    assert order.tg_user_id == CUSTOMER_ID
    assert order.tg_username == "buyer"
    assert order.delivery_method == "Самовывоз"
    assert order.comment is None
    assert [(item.product_id, item.qty, item.unit_price) for item in order.items] == [(seeded.phone.id, 3, 900)]
    assert order.notify_chat_id == -100500
    assert order.notify_message_id == 77
    assert order.notify_sent_at is not None

    sent = telegram.last("sendMessage")
    assert sent["chat_id"] == "-100500"
    assert "Телефон" in sent["text"]
    assert sent["reply_markup"] is not None


def test_order_chat_per_city(client, seeded, telegram, make_init_data, monkeypatch):
    monkeypatch.setattr(settings, "ORDER_CHAT_IDS", "vvo:-200,blg:-300")

    response = client.post(
        "/api/v1/order",
        json=order_body(seeded),
        headers={"X-Telegram-Init-Data": make_init_data()},
    )

    assert response.status_code == 200
    assert telegram.last("sendMessage")["chat_id"] == "-200"


def test_init_data_from_body(client, seeded, make_init_data):
    response = client.post("/api/v1/order", json=order_body(seeded, initData=make_init_data()))

    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_order_requires_init_data(client, seeded, telegram):
    response = client.post("/api/v1/order", json=order_body(seeded))

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "TG_INIT_DATA_REQUIRED"
    assert telegram.calls == []


def test_order_rejects_forged_init_data(client, seeded, make_init_data):
    forged = make_init_data(bot_token="999:OTHER")
    response = client.post("/api/v1/order", json=order_body(seeded), headers={"X-Telegram-Init-Data": forged})

    assert response.status_code == 401


def test_order_rejects_unavailable_items(client, seeded, make_init_data, db_session):
    headers = {"X-Telegram-Init-Data": make_init_data()}
    cases = [
        ("vvo", seeded.case.id, "OUT_OF_STOCK"),
        ("blg", seeded.case.id, "NOT_AVAILABLE"),
        ("vvo", seeded.old.id, "NOT_ACTIVE"),
    ]
    for city_slug, product_id, code in cases:
        body = order_body(seeded, citySlug=city_slug, items=[{"productId": product_id, "qty": 1}])
        response = client.post("/api/v1/order", json=body, headers=headers)
        assert response.status_code == 400, code
        assert response.json()["error"]["code"] == code

    assert db_session.query(Order).count() == 0


def test_order_validates_items(client, seeded, make_init_data):
    headers = {"X-Telegram-Init-Data": make_init_data()}

    bad_id = client.post("/api/v1/order", headers=headers,
                         json=order_body(seeded, items=[{"productId": "not-a-uuid", "qty": 1}]))
    assert bad_id.status_code == 400
    assert bad_id.json()["error"]["message"] == "Неверный productId: not-a-uuid"

    too_many = client.post("/api/v1/order", headers=headers,
                           json=order_body(seeded, items=[{"productId": seeded.phone.id, "qty": 100}]))
    assert too_many.status_code == 400
    assert too_many.json()["error"]["message"] == "qty должен быть в диапазоне 1..99"

    for qty in (True, 1.5, "2"):
        response = client.post("/api/v1/order", headers=headers,
                               json=order_body(seeded, items=[{"productId": seeded.phone.id, "qty": qty}]))
        assert response.status_code == 400, qty
        assert response.json()["error"]["message"].startswith("items.0.qty")

    no_delivery = client.post("/api/v1/order", headers=headers, json=order_body(seeded, deliveryMethod=" "))
    assert no_delivery.status_code == 400

    unknown_city = client.post("/api/v1/order", headers=headers, json=order_body(seeded, citySlug="msk"))
    assert unknown_city.status_code == 400
    assert unknown_city.json()["error"]["code"] == "CITY_NOT_FOUND"


def test_order_saved_when_telegram_fails(client, seeded, telegram, make_init_data, db_session):
    telegram.fail = True

    response = client.post(
        "/api/v1/order",
        json=order_body(seeded),
        headers={"X-Telegram-Init-Data": make_init_data()},
    )

    assert response.status_code == 200
    assert response.json()["notified"] is False
    order = db_session.get(Order, response.json()["orderId"])
    assert order is not None
    assert order.notify_message_id is None


def test_order_saved_when_chat_map_is_broken(client, seeded, telegram, make_init_data, db_session, monkeypatch):
    # Присваивание в обход валидации, как если бы настройку испортили на лету
    monkeypatch.setattr(settings, "ORDER_CHAT_IDS", "vvo-100777")

    response = client.post(
        "/api/v1/order",
        json=order_body(seeded),
        headers={"X-Telegram-Init-Data": make_init_data()},
    )

    assert response.status_code == 200
    assert response.json()["notified"] is False
    assert db_session.query(Order).count() == 1
    assert telegram.calls == []
