from typing import List, Optional

from pydantic import BaseModel

from storefront.schemas.common import CamelModel


class CityOut(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class CatalogItem(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_candidates: List[str] = []
    category_slug: str
    price: float
    in_stock: bool
