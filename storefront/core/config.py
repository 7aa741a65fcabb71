import os
from typing import Dict, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

# .env.local имеет приоритет над .env (локальная разработка)
if os.path.exists(".env.local"):
    load_dotenv(".env.local")
else:
    load_dotenv()


def _split_csv(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_chat_ids(raw: str) -> Dict[str, str]:
    """Разбирает ORDER_CHAT_IDS вида "vvo:123,blg:456"."""
    result: Dict[str, str] = {}
    for part in _split_csv(raw):
        slug, sep, chat_id = part.partition(":")
        if not sep or not slug.strip() or not chat_id.strip():
            raise ValueError(f"Invalid ORDER_CHAT_IDS entry: {part}")
        result[slug.strip().lower()] = chat_id.strip()
    return result


class Settings(BaseSettings):
    """Класс для хранения настроек приложения."""
    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    HOST: str = "0.0.0.0"
    PORT: int = Field(8787, gt=0)
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    BOT_TOKEN: str
    WEBHOOK_SECRET: str
    # Публичный https-адрес вебхука, например https://shop.example.com/api/v1/telegram/webhook
    WEBHOOK_URL: str = ""

    # Чат владельца. Для отдельных городов можно задать свой чат: "vvo:-1001,blg:-1002"
    ORDER_CHAT_ID: str
    ORDER_CHAT_IDS: str = ""

    # Через запятую. В production обязательно.
    CORS_ORIGINS: str = ""
    DEV_ADMIN_TG_USER_ID: Optional[int] = Field(None, gt=0)

    PUBLIC_BASE_URL: str = ""
    PRODUCT_IMAGES_BASE_URL: str = ""
    IMAGE_PROXY_ALLOWED_HOSTS: str = ""
    STATIC_DIR: str = "static"

    INIT_DATA_MAX_AGE_SECONDS: int = 24 * 60 * 60
    UPLOAD_MAX_BYTES: int = 5 * 1024 * 1024

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        case_sensitive = True
        extra = "ignore"

    @model_validator(mode="after")
    def _check_settings(self) -> "Settings":
        if self.ENVIRONMENT == "production" and not self.cors_origins:
            raise ValueError("CORS_ORIGINS (comma-separated origins) is required for production")
        # Кривой ORDER_CHAT_IDS должен ронять старт, а не отправку заказа
        parse_chat_ids(self.ORDER_CHAT_IDS)
        return self

    @property
    def is_dev(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def cors_origins(self) -> List[str]:
        return _split_csv(self.CORS_ORIGINS)

    @property
    def image_proxy_hosts(self) -> List[str]:
        return [host.lower() for host in _split_csv(self.IMAGE_PROXY_ALLOWED_HOSTS)]

    @property
    def order_chat_ids(self) -> Dict[str, str]:
        return parse_chat_ids(self.ORDER_CHAT_IDS)

    def chat_id_for_city(self, city_slug: str) -> str:
        return self.order_chat_ids.get(city_slug.lower(), self.ORDER_CHAT_ID)


settings = Settings()
