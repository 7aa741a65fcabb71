"""Ручная установка вебхука бота: storefront-set-webhook."""
import asyncio
import json
import logging
import sys

import httpx

from storefront.core.config import settings
from storefront.core.exceptions import TelegramApiError
from storefront.telegram.api import TelegramClient

logger = logging.getLogger(__name__)


async def set_webhook(telegram: TelegramClient) -> dict:
    webhook_url = settings.WEBHOOK_URL
    if not webhook_url:
        raise RuntimeError("WEBHOOK_URL is not set")

    if not webhook_url.startswith("https://"):
        # Telegram принимает только https, http годится лишь для локальных проверок
        logger.warning(f"WEBHOOK_URL is not https: {webhook_url}")

    await telegram.set_webhook(webhook_url, settings.WEBHOOK_SECRET, drop_pending_updates=True)
    return await telegram.get_webhook_info()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    try:
        info = asyncio.run(set_webhook(TelegramClient(settings.BOT_TOKEN)))
    except (RuntimeError, TelegramApiError, httpx.HTTPError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    print(json.dumps(info, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
