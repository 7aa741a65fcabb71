import os
import re
import unicodedata
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote, urlsplit

import aiofiles
from fastapi import UploadFile

from storefront.core.config import settings
from storefront.core.exceptions import ApiError, bad_request

IMAGE_EXTENSIONS = (".webp", ".jpg", ".jpeg", ".png")
# Порядок перебора при поиске файла без расширения
CANDIDATE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")
PRODUCT_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}

_MIME_BY_EXT = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".heic": "image/heic",
    ".avif": "image/avif",
}

_EXT_RE = re.compile(r"\.([a-z0-9]{2,10})$", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]+")
_UNSAFE_RE = re.compile(r'[\\/:*?"<>|]+')
_SPACES_RE = re.compile(r"\s+")


def items_dir() -> str:
    return os.path.join(settings.STATIC_DIR, "items")


def products_dir() -> str:
    return os.path.join(settings.STATIC_DIR, "products")


def has_file_extension(value: str) -> bool:
    return bool(_EXT_RE.search(value))


def is_http_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def sanitize_file_name(filename: str) -> str:
    """Оставляет юникодные буквы, вырезает только опасные для ФС символы."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    base = unicodedata.normalize("NFKC", base)
    base = _CONTROL_RE.sub("", base)
    base = _UNSAFE_RE.sub("_", base)
    base = _SPACES_RE.sub(" ", base).strip()
    base = base.lstrip(".")
    return base[:120]


def infer_mime_type(filename: str) -> Optional[str]:
    _, ext = os.path.splitext(filename)
    return _MIME_BY_EXT.get(ext.lower())


def resolve_image_file_name(name: str, search_dir: Optional[str]) -> str:
    """Для имени без расширения ищет в search_dir файл name.jpg/.jpeg/.png/.webp."""
    file_name = name.lstrip("/")
    if has_file_extension(file_name) or not search_dir:
        return file_name
    for ext in CANDIDATE_EXTENSIONS:
        if os.path.isfile(os.path.join(search_dir, file_name + ext)):
            return file_name + ext
    return file_name


def public_file_url(base_url: str, file_name: str) -> str:
    return base_url.rstrip("/") + "/" + quote(file_name, safe="!~*'()")


def build_image_candidates(image_url: Optional[str], proxy_path: str) -> List[str]:
    """
    Список URL для фолбэка картинки на клиенте: исходный адрес, варианты
    расширений (.webp/.jpg/.jpeg/.png) и их проксированные версии.
    """
    raw = (image_url or "").strip()
    if not raw:
        return []

    direct: List[str] = []

    def push(value: str) -> None:
        if value.strip() and value not in direct:
            direct.append(value)

    match = re.match(r"^([^?#]+)(.*)$", raw, re.DOTALL)
    if not match:
        push(raw)
    else:
        path_part, suffix = match.group(1), match.group(2)
        push(raw)
        ext_match = _EXT_RE.search(path_part)
        if ext_match:
            ext = "." + ext_match.group(1).lower()
            base = path_part[: -len(ext)]
            for variant in IMAGE_EXTENSIONS:
                if variant != ext:
                    push(f"{base}{variant}{suffix}")
        else:
            for variant in IMAGE_EXTENSIONS:
                push(f"{path_part}{variant}{suffix}")

    proxy_prefix = f"{proxy_path}?url="
    candidates: List[str] = []
    for candidate in direct:
        if not candidate.startswith(proxy_prefix) and is_http_url(candidate):
            proxied = proxy_prefix + quote(candidate, safe="")
            if proxied not in candidates:
                candidates.append(proxied)
        if candidate not in candidates:
            candidates.append(candidate)
    return candidates


def list_item_files(directory: Optional[str] = None) -> List[dict]:
    directory = directory or items_dir()
    os.makedirs(directory, exist_ok=True)

    files = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if not entry.is_file() or entry.name == ".gitkeep":
                continue
            stat = entry.stat()
            files.append({
                "name": entry.name,
                "size": stat.st_size,
                "updated_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            })

    files.sort(key=lambda f: f["name"])
    return files


def checked_item_name(raw_name: str) -> str:
    """Имя, которое меняется при санитизации, считаем недопустимым."""
    safe_name = sanitize_file_name(raw_name)
    if not safe_name or safe_name != raw_name or safe_name == ".gitkeep":
        raise bad_request("Invalid filename")
    return safe_name


async def save_upload(file: UploadFile, target_path: str, max_bytes: int) -> int:
    """Пишет UploadFile на диск частями, не превышая max_bytes. Возвращает размер."""
    os.makedirs(os.path.dirname(target_path), exist_ok=True)
    size = 0
    try:
        async with aiofiles.open(target_path, "wb") as buffer:
            while content := await file.read(1024 * 1024):
                size += len(content)
                if size > max_bytes:
                    raise bad_request(f"File too large (max {max_bytes // (1024 * 1024)}MB)")
                await buffer.write(content)
    except ApiError:
        if os.path.exists(target_path):
            os.remove(target_path)
        raise
    return size
