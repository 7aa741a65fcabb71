from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from storefront.models.order import Order


def get_order(db: Session, order_id: str) -> Optional[Order]:
    return (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.id == order_id)
        .first()
    )


def list_orders(db: Session, status: str, limit: int = 50) -> List[Order]:
    """Заказы со статусом, новые сверху, сразу с позициями."""
    return (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.status == status)
        .order_by(Order.created_at.desc())
        .limit(limit)
        .all()
    )


def set_order_status(db: Session, order: Order, status: str) -> Order:
    order.status = status
    db.commit()
    db.refresh(order)
    return order
