from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.crud.city import get_cities
from storefront.dependencies import get_db
from storefront.schemas.catalog import CatalogItem, CityOut
from storefront.schemas.common import DataResponse
from storefront.schemas.order import CartQuote, CartQuoteRequest
from storefront.services.catalog import fetch_catalog_by_city
from storefront.services.orders import RequestedItem, quote_cart

router = APIRouter()


@router.get("/cities", response_model=DataResponse[List[CityOut]])
def read_cities(db: Session = Depends(get_db)):
    """Список городов для выбора на витрине."""
    return DataResponse(data=[CityOut.model_validate(city) for city in get_cities(db)])


@router.get("/catalog", response_model=DataResponse[List[CatalogItem]])
def read_catalog(
    city: str = Query(..., min_length=1, max_length=50),
    category: Optional[str] = Query(None, max_length=50),
    db: Session = Depends(get_db),
):
    return DataResponse(data=fetch_catalog_by_city(db, city, category))


@router.post("/cart/quote", response_model=DataResponse[CartQuote])
def read_cart_quote(payload: CartQuoteRequest, db: Session = Depends(get_db)):
    """Пересчёт корзины по актуальным ценам и остаткам города."""
    items = [RequestedItem(product_id=item.product_id, qty=item.qty) for item in payload.items]
    return DataResponse(data=quote_cart(db, payload.city_slug, items))
