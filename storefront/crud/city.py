from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.models.city import City


def get_cities(db: Session) -> List[City]:
    """Все города, отсортированные по slug."""
    return db.query(City).order_by(City.slug).all()


def get_city_by_slug(db: Session, slug: str) -> Optional[City]:
    return db.query(City).filter(City.slug == slug).first()


def get_city(db: Session, city_id: int) -> Optional[City]:
    return db.query(City).filter(City.id == city_id).first()
