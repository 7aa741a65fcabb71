from sqlalchemy import BigInteger, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from storefront.db.base import Base
from storefront.models.product import _new_uuid, _utcnow

ORDER_STATUSES = ("new", "processing", "done")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("orders_status_created_at_idx", "status", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_uuid)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    status = Column(String, nullable=False, default="new")
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="SET NULL"), nullable=True)
    tg_user_id = Column(BigInteger, nullable=False)
    tg_username = Column(String, nullable=True)
    delivery_method = Column(String, nullable=False)
    comment = Column(Text, nullable=True)
    total_price = Column(Float, nullable=False)

    # Куда ушло уведомление в Telegram (для редактирования/удаления)
    notify_chat_id = Column(BigInteger, nullable=True)
    notify_message_id = Column(BigInteger, nullable=True)
    notify_sent_at = Column(DateTime(timezone=True), nullable=True)

    city = relationship("City")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Order(id='{self.id}', status='{self.status}', total_price={self.total_price})>"


class OrderItem(Base):
    """Снимок позиции заказа с ценой на момент покупки."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
