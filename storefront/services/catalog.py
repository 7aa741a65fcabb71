from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.core.exceptions import ApiError
from storefront.crud.city import get_city_by_slug
from storefront.crud.product import list_catalog_rows
from storefront.services.images import build_image_candidates

IMAGE_PROXY_PATH = "/api/v1/image-proxy"


def fetch_catalog_by_city(db: Session, city_slug: str, category_slug: Optional[str] = None) -> List[dict]:
    """Витрина города: активные товары с эффективной ценой и наличием."""
    city = get_city_by_slug(db, city_slug)
    if city is None:
        raise ApiError(400, "CITY_NOT_FOUND", "Город не найден")

    items = []
    for row in list_catalog_rows(db, city.id, category_slug):
        product = row.product
        items.append({
            "id": product.id,
            "title": product.title,
            "description": product.description,
            "image_url": product.image_url,
            "image_candidates": build_image_candidates(product.image_url, IMAGE_PROXY_PATH),
            "category_slug": product.category_slug or "other",
            "price": row.effective_price(),
            "in_stock": bool(row.in_stock),
        })
    return items
