from sqlalchemy import BigInteger, Column, String
from storefront.db.base import Base


class Admin(Base):
    """Список Telegram-пользователей с доступом к админке."""
    __tablename__ = "admins"

    tg_user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    role = Column(String, nullable=False, default="admin")
