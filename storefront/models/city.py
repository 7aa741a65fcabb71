from sqlalchemy import Column, Integer, String
from storefront.db.base import Base


class City(Base):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)

    def __repr__(self):
        return f"<City(id={self.id}, slug='{self.slug}')>"
