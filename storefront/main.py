import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from storefront.api.v1.endpoints import admin, admin_imports, catalog, image_proxy, orders, telegram_webhook, uploads
from storefront import models  # noqa: F401
from storefront.core.config import settings
from storefront.core.exceptions import ApiError, ImportFormatError
from storefront.db.base import Base
from storefront.db.session import engine
from storefront.dependencies import get_telegram
from storefront.telegram.callbacks import ensure_webhook

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Создаем таблицы в БД.
Base.metadata.create_all(bind=engine)

# StaticFiles требует существующую папку
os.makedirs(os.path.join(settings.STATIC_DIR, "items"), exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await ensure_webhook(get_telegram())
    except Exception as e:
        # Без вебхука API работает, не работают только кнопки в чате
        logger.error(f"Не удалось выставить вебхук Telegram: {e}")
    yield


app = FastAPI(
    title="Telegram Mini App Storefront Backend",
    version="1.0.0",
    lifespan=lifespan,
)

# Настройки CORS: в разработке пускаем всех
origins = ["*"] if settings.is_dev and not settings.cors_origins else settings.cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Telegram-Init-Data", "X-Dev-Admin"],
)

app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": {"code": code, "message": message}},
    )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    return error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(ImportFormatError)
async def import_error_handler(request: Request, exc: ImportFormatError):
    logger.warning(f"Импорт отклонён: {exc.message}")
    return error_response(400, "BAD_REQUEST", exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{location}: {errors[0].get('msg')}" if location else str(errors[0].get("msg"))
    return error_response(400, "BAD_REQUEST", message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Необработанная ошибка {request.method} {request.url.path}: {exc}")
    return error_response(500, "INTERNAL", "Unexpected error")


@app.get("/health")
def health():
    return {"ok": True}


# Витрина и заказы
app.include_router(catalog.router, prefix="/api/v1", tags=["Catalog"])
app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
app.include_router(image_proxy.router, prefix="/api/v1", tags=["Images"])

# Вебхук бота
app.include_router(telegram_webhook.router, prefix="/api/v1", tags=["Telegram"])

# Админка
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
app.include_router(admin_imports.router, prefix="/api/v1/admin", tags=["Admin Import/Export"])
app.include_router(uploads.router, prefix="/api/v1/admin", tags=["Admin Uploads"])
