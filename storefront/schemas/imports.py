from typing import List, Optional

from pydantic import BaseModel

from storefront.schemas.catalog import CityOut
from storefront.schemas.common import CamelModel


class ImportRowError(CamelModel):
    row_num: int
    id: Optional[str] = None
    title: Optional[str] = None
    messages: List[str]


class ImportRowsSummary(BaseModel):
    total: int
    valid: int
    invalid: int


class ImportProductsSummary(BaseModel):
    inserted: int
    updated: int


class ImportReport(CamelModel):
    delimiter: Optional[str] = None
    cities: List[CityOut]
    rows: ImportRowsSummary
    products: ImportProductsSummary
    inventory_rows: int
    generated_ids: bool
    output_xlsx_base64: Optional[str] = None
    errors: List[ImportRowError]
    decoded_encoding: Optional[str] = None
    dry_run: bool = False
