from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront.db.upsert import upsert_rows
from storefront.models.product import Inventory, Product


def chunked(items: Sequence, size: int) -> Iterable[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def get_product(db: Session, product_id: str) -> Optional[Product]:
    """Получить товар по ID."""
    return db.query(Product).filter(Product.id == product_id).first()


def get_products_by_ids(db: Session, product_ids: Iterable[str]) -> Dict[str, Product]:
    ids = list(product_ids)
    if not ids:
        return {}
    return {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}


def list_products(db: Session, is_active: bool, limit: int = 120) -> List[Product]:
    """Товары вкладки (активные/архив), новые сверху."""
    statement = (
        select(Product)
        .where(Product.is_active == is_active)
        .order_by(Product.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(statement).scalars().all())


def list_all_products(db: Session) -> List[Product]:
    return db.query(Product).order_by(Product.title, Product.id).all()


def count_products(db: Session, is_active: bool) -> int:
    return db.query(func.count(Product.id)).filter(Product.is_active == is_active).scalar() or 0


def create_product(db: Session, **fields) -> Product:
    db_product = Product(**fields)
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, db_product: Product, **fields) -> Product:
    for key, value in fields.items():
        setattr(db_product, key, value)
    db.commit()
    db.refresh(db_product)
    return db_product


def fetch_existing_product_ids(db: Session, ids: Sequence[str], batch_size: int = 500) -> Set[str]:
    existing: Set[str] = set()
    for part in chunked(ids, batch_size):
        rows = db.execute(select(Product.id).where(Product.id.in_(part))).scalars().all()
        existing.update(rows)
    return existing


def upsert_products(db: Session, rows: List[dict], batch_size: int = 200) -> None:
    for part in chunked(rows, batch_size):
        upsert_rows(db, Product, list(part), ("id",))


def upsert_inventory(db: Session, rows: List[dict], batch_size: int = 500) -> None:
    for part in chunked(rows, batch_size):
        upsert_rows(db, Inventory, list(part), ("product_id", "city_id"))


def get_inventory_for_products(db: Session, product_ids: Sequence[str]) -> Dict[tuple, Inventory]:
    """Строки остатков по ключу (product_id, city_id)."""
    if not product_ids:
        return {}
    rows = db.query(Inventory).filter(Inventory.product_id.in_(list(product_ids))).all()
    return {(row.product_id, row.city_id): row for row in rows}


def get_city_inventory(db: Session, city_id: int, product_ids: Sequence[str]) -> Dict[str, Inventory]:
    if not product_ids:
        return {}
    rows = (
        db.query(Inventory)
        .filter(Inventory.city_id == city_id, Inventory.product_id.in_(list(product_ids)))
        .all()
    )
    return {row.product_id: row for row in rows}


def list_catalog_rows(db: Session, city_id: int, category_slug: Optional[str] = None) -> List[Inventory]:
    """Остатки города вместе с активными товарами (для витрины)."""
    query = (
        db.query(Inventory)
        .join(Product, Product.id == Inventory.product_id)
        .filter(Inventory.city_id == city_id, Product.is_active.is_(True))
    )
    if category_slug:
        query = query.filter(Product.category_slug == category_slug)
    return query.order_by(Product.created_at.desc()).all()
