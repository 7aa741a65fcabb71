from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Модель, которая в JSON пишется camelCase (как ждёт фронтенд)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class DataResponse(BaseModel, Generic[T]):
    ok: bool = True
    data: T


class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    ok: bool = False
    error: ErrorBody
