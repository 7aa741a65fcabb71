from typing import Any, Optional


class ApiError(Exception):
    """Ошибка, которая отдаётся клиенту как {"ok": false, "error": {...}}."""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ImportFormatError(Exception):
    """Файл импорта нельзя обработать целиком (пустой, нет колонок и т.п.)."""

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class TelegramApiError(Exception):
    """Bot API вернул ok=false или HTTP-ошибку."""

    def __init__(self, method: str, error_code: int, description: str) -> None:
        self.method = method
        self.error_code = error_code
        self.description = description
        super().__init__(f"Telegram {method} failed: {error_code} {description}")


def bad_request(message: str) -> ApiError:
    return ApiError(400, "BAD_REQUEST", message)


def not_found(message: str) -> ApiError:
    return ApiError(404, "NOT_FOUND", message)
