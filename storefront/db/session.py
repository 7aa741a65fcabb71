from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from storefront.core.config import settings

# -------------------------------------------------------------------
# Условная инициализация Engine
# -------------------------------------------------------------------

if settings.DATABASE_URL.startswith("sqlite"):
    # SQLite для локальной разработки: сессии FastAPI живут в разных потоках
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
    )
else:
    # PostgreSQL на хостинге: pool_pre_ping держит соединения живыми
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
