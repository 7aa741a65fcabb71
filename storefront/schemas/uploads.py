from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.schemas.common import CamelModel


class SavedFile(CamelModel):
    original_name: str
    file_name: str
    size: int


class FileError(CamelModel):
    original_name: str
    message: str


class UploadResult(CamelModel):
    saved: List[SavedFile]
    errors: List[FileError]
    base_url: Optional[str] = None


class ItemFile(CamelModel):
    name: str
    size: int
    updated_at: datetime


class ItemFileList(CamelModel):
    files: List[ItemFile]
    base_url: Optional[str] = None


class DeletedFile(BaseModel):
    deleted: str


class RenameRequest(BaseModel):
    from_name: str = Field(..., alias="from", min_length=1)
    to_name: str = Field(..., alias="to", min_length=1)

    class Config:
        populate_by_name = True
