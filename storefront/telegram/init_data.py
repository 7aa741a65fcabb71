"""
Проверка подписи initData, которую Telegram передаёт в mini-app.

https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app
"""
import hashlib
import hmac
import json
import time
from typing import Dict, NamedTuple, Optional
from urllib.parse import parse_qsl

from storefront.core.exceptions import ApiError

INVALID = "TG_INIT_DATA_INVALID"


class TelegramUser(NamedTuple):
    id: int
    username: Optional[str]


class VerifiedInitData(NamedTuple):
    params: Dict[str, str]
    auth_date: int
    user: TelegramUser


def _invalid(message: str) -> ApiError:
    return ApiError(401, INVALID, message)


def _parse_query_string(init_data: str) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for key, value in parse_qsl(init_data, keep_blank_values=True):
        if key in params:
            raise _invalid(f"Duplicate key: {key}")
        params[key] = value
    return params


def parse_init_data_user(user_json: str) -> TelegramUser:
    try:
        parsed = json.loads(user_json)
    except ValueError:
        raise _invalid("Invalid user JSON")

    if not isinstance(parsed, dict):
        raise _invalid("Invalid user object")

    user_id = parsed.get("id")
    # bool является подклассом int
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
        raise _invalid("Invalid user.id")

    username = parsed.get("username")
    return TelegramUser(
        id=user_id,
        username=username if isinstance(username, str) and username else None,
    )


def build_data_check_string(params: Dict[str, str]) -> str:
    pairs = sorted((key, value) for key, value in params.items() if key != "hash")
    return "\n".join(f"{key}={value}" for key, value in pairs)


def sign_data_check_string(data_check_string: str, bot_token: str) -> str:
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    return hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()


def verify_init_data(init_data: str, bot_token: str) -> VerifiedInitData:
    params = _parse_query_string(init_data)

    received_hash = params.get("hash")
    if not received_hash:
        raise _invalid("Missing hash")

    calculated_hash = sign_data_check_string(build_data_check_string(params), bot_token)
    if not hmac.compare_digest(calculated_hash.encode(), received_hash.lower().encode()):
        raise _invalid("Invalid initData hash")

    try:
        auth_date = int(params.get("auth_date", ""))
    except ValueError:
        raise _invalid("Invalid auth_date")

    user_json = params.get("user")
    if not user_json:
        raise _invalid("Missing user")

    return VerifiedInitData(params=params, auth_date=auth_date, user=parse_init_data_user(user_json))


def ensure_fresh(verified: VerifiedInitData, max_age_seconds: int, now: Optional[float] = None) -> None:
    now_seconds = int(now if now is not None else time.time())
    if now_seconds - verified.auth_date > max_age_seconds:
        raise ApiError(401, "TG_INIT_DATA_EXPIRED", "initData auth_date is too old")
