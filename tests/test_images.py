from urllib.parse import quote

import pytest

from storefront.core.exceptions import ApiError
from storefront.services.images import (
    build_image_candidates,
    checked_item_name,
    resolve_image_file_name,
    sanitize_file_name,
)

PROXY = "/api/v1/image-proxy"


def proxied(url):
    return f"{PROXY}?url={quote(url, safe='')}"


def test_candidates_for_url_with_extension():
    url = "https://cdn.example.com/items/phone.jpg?v=2"

    candidates = build_image_candidates(url, PROXY)

    assert candidates == [
        proxied(url),
        url,
        proxied("https://cdn.example.com/items/phone.webp?v=2"),
        "https://cdn.example.com/items/phone.webp?v=2",
        proxied("https://cdn.example.com/items/phone.jpeg?v=2"),
        "https://cdn.example.com/items/phone.jpeg?v=2",
        proxied("https://cdn.example.com/items/phone.png?v=2"),
        "https://cdn.example.com/items/phone.png?v=2",
    ]


def test_candidates_for_relative_path_without_extension():
    assert build_image_candidates("/static/items/phone", PROXY) == [
        "/static/items/phone",
        "/static/items/phone.webp",
        "/static/items/phone.jpg",
        "/static/items/phone.jpeg",
        "/static/items/phone.png",
    ]


def test_candidates_empty_and_already_proxied():
    assert build_image_candidates(None, PROXY) == []
    assert build_image_candidates("   ", PROXY) == []

    already = proxied("https://cdn.example.com/a.png")
    assert build_image_candidates(already, PROXY)[0] == already


@pytest.mark.parametrize("raw, expected", [
    ("photo.jpg", "photo.jpg"),
    ("C:\\Users\\me\\Фото 1.PNG", "Фото 1.PNG"),
    ("../../etc/passwd", "passwd"),
    ("a:b*c?.png", "a_b_c_.png"),
    ("  many   spaces .webp ", "many spaces .webp"),
    ("...hidden.png", "hidden.png"),
])
def test_sanitize_file_name(raw, expected):
    assert sanitize_file_name(raw) == expected


@pytest.mark.parametrize("raw", [".gitkeep", "a|b.png", ""])
def test_checked_item_name_rejects(raw):
    with pytest.raises(ApiError) as exc:
        checked_item_name(raw)

    assert exc.value.status_code == 400
    assert exc.value.message == "Invalid filename"


def test_resolve_image_file_name_tries_extensions(tmp_path):
    (tmp_path / "case.png").write_bytes(b"x")
    (tmp_path / "case.webp").write_bytes(b"x")

    assert resolve_image_file_name("case", str(tmp_path)) == "case.png"
    assert resolve_image_file_name("/phone.jpg", str(tmp_path)) == "phone.jpg"
    assert resolve_image_file_name("missing", str(tmp_path)) == "missing"
    assert resolve_image_file_name("case", None) == "case"
