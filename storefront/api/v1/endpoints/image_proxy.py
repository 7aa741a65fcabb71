import logging
from typing import Optional, Set, Tuple
from urllib.parse import urljoin, urlsplit

import httpx
from fastapi import APIRouter, Query, Response

from storefront.core.config import settings
from storefront.core.exceptions import ApiError, bad_request
from storefront.services.images import is_http_url

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_REDIRECTS = 3


def allowed_hosts() -> Set[str]:
    hosts = set(settings.image_proxy_hosts)
    if settings.PRODUCT_IMAGES_BASE_URL:
        base_host = urlsplit(settings.PRODUCT_IMAGES_BASE_URL).hostname
        if base_host:
            hosts.add(base_host.lower())
    return hosts


def ensure_allowed_url(url: str) -> None:
    if not is_http_url(url):
        raise bad_request("url must be an http(s) URL")
    host = (urlsplit(url).hostname or "").lower()
    if host not in allowed_hosts():
        raise ApiError(403, "FORBIDDEN", "Host is not allowed")


async def fetch_upstream_image(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[bytes, str]:
    """
    Скачивает картинку. Возвращает (содержимое, content-type).
    Редиректы проходим сами: каждый следующий адрес тоже должен быть в allowlist.
    """
    async with httpx.AsyncClient(timeout=10.0, follow_redirects=False, transport=transport) as client:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream("GET", url) as response:
                if response.is_redirect:
                    url = urljoin(url, response.headers["location"])
                    ensure_allowed_url(url)
                    continue

                response.raise_for_status()
                chunks = []
                size = 0
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                    if size > MAX_IMAGE_BYTES:
                        raise ApiError(502, "UPSTREAM", "Image is too large")
                    chunks.append(chunk)
                return b"".join(chunks), response.headers.get("content-type", "")

    raise ApiError(502, "UPSTREAM", "Too many redirects")


@router.get("/image-proxy")
async def proxy_image(url: str = Query(..., min_length=1, max_length=2048)):
    """Отдаёт картинку с разрешённого хоста через наш домен."""
    ensure_allowed_url(url)

    try:
        content, content_type = await fetch_upstream_image(url)
    except httpx.HTTPError as e:
        logger.warning(f"Не удалось загрузить картинку {url}: {e}")
        raise ApiError(502, "UPSTREAM", "Failed to fetch image")

    media_type = content_type.split(";", 1)[0].strip().lower()
    if not media_type.startswith("image/"):
        raise ApiError(502, "UPSTREAM", "Upstream did not return an image")

    return Response(
        content=content,
        media_type=media_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )
