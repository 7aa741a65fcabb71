import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from storefront.db.base import Base


def _new_uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_uuid)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    category_slug = Column(String, nullable=False, default="other", index=True)
    base_price = Column(Float, nullable=False)
    image_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    inventory = relationship("Inventory", back_populates="product", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product(title='{self.title}', base_price={self.base_price})>"


class Inventory(Base):
    """Остаток и цена товара в конкретном городе."""
    __tablename__ = "inventory"

    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="CASCADE"), primary_key=True)
    in_stock = Column(Boolean, nullable=False, default=False)
    stock_qty = Column(Integer, nullable=True)
    # Если задана, перекрывает products.base_price
    price_override = Column(Float, nullable=True)

    product = relationship("Product", back_populates="inventory")
    city = relationship("City")

    def effective_price(self) -> float:
        if self.price_override is not None:
            return float(self.price_override)
        return float(self.product.base_price)
