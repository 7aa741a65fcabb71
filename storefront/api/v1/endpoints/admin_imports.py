import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import bad_request
from storefront.crud.city import get_cities
from storefront.crud.product import get_inventory_for_products, list_all_products
from storefront.dependencies import AdminContext, get_current_admin, get_db
from storefront.schemas.common import DataResponse
from storefront.schemas.imports import ImportReport
from storefront.services.csv_decode import decode_csv_buffer
from storefront.services.delimited import detect_delimiter, parse_delimited
from storefront.services.images import items_dir
from storefront.services.products_import import BASE_COLUMNS, city_columns, import_products_table
from storefront.services.spreadsheet import XLSX_MEDIA_TYPE, build_workbook, read_workbook_rows

router = APIRouter()
logger = logging.getLogger(__name__)

EncodingMode = Literal["auto", "utf-8", "windows-1251", "ibm866", "koi8-r"]


def is_spreadsheet(filename: str, content_type: str) -> bool:
    name = filename.lower()
    mime = content_type.lower()
    return name.endswith(".xlsx") or "spreadsheetml" in mime


@router.get("/export/products.xlsx")
def export_products(db: Session = Depends(get_db), admin: AdminContext = Depends(get_current_admin)):
    """
    Выгрузка всех товаров в Excel в формате импорта: базовые колонки
    и по три колонки остатков на каждый город.
    """
    cities = get_cities(db)
    products = list_all_products(db)
    inventory = get_inventory_for_products(db, [p.id for p in products])

    headers = list(BASE_COLUMNS)
    for city in cities:
        headers.extend(city_columns(city.slug))

    rows = [headers]
    for product in products:
        row = [
            product.id,
            product.title,
            product.description or "",
            product.category_slug or "other",
            product.base_price,
            product.image_url or "",
            bool(product.is_active),
        ]
        for city in cities:
            inv = inventory.get((product.id, city.id))
            row.append(bool(inv.in_stock) if inv else False)
            row.append(inv.stock_qty if inv and inv.stock_qty is not None else "")
            row.append(inv.price_override if inv and inv.price_override is not None else "")
        rows.append(row)

    content = build_workbook(rows, sheet_title="products")
    file_name = f"products.latest.{date.today().isoformat()}.xlsx"
    logger.info(f"Экспорт товаров: {len(products)} строк")

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}"',
            "Cache-Control": "no-store",
        },
    )


@router.post("/import/products", response_model=DataResponse[ImportReport])
async def import_products(
    file: UploadFile = File(...),
    image_mode: Optional[Literal["filename"]] = Query(None, alias="imageMode"),
    encoding: EncodingMode = Query("auto"),
    dry_run: bool = Query(False, alias="dryRun"),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_current_admin),
):
    """Импорт товаров и остатков из CSV или XLSX."""
    data = await file.read(settings.UPLOAD_MAX_BYTES + 1)
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise bad_request(f"File too large (max {settings.UPLOAD_MAX_BYTES // (1024 * 1024)}MB)")

    image_base_url = None
    image_items_dir = None
    if image_mode == "filename":
        if not settings.PRODUCT_IMAGES_BASE_URL:
            raise bad_request("PRODUCT_IMAGES_BASE_URL is not configured on server")
        image_base_url = settings.PRODUCT_IMAGES_BASE_URL
        image_items_dir = items_dir()

    filename = file.filename or ""
    if is_spreadsheet(filename, file.content_type or ""):
        table = read_workbook_rows(data)
        # Лист читается как таблица CSV-выгрузки с разделителем ";"
        delimiter = ";"
        decoded_encoding = "xlsx"
    else:
        decoded = decode_csv_buffer(data, None if encoding == "auto" else encoding)
        delimiter = detect_delimiter(decoded.text)
        table = parse_delimited(decoded.text, delimiter)
        decoded_encoding = decoded.encoding
    logger.info(f"Импорт {filename!r}: кодировка {decoded_encoding}, админ {admin.tg_user_id}")

    result = import_products_table(
        db,
        table,
        delimiter=delimiter,
        dry_run=dry_run,
        image_base_url=image_base_url,
        image_items_dir=image_items_dir,
    )

    report = ImportReport(
        delimiter=result.delimiter,
        cities=result.cities,
        rows={"total": result.total_rows, "valid": result.valid_rows, "invalid": result.invalid_rows},
        products={"inserted": result.inserted, "updated": result.updated},
        inventory_rows=result.inventory_rows,
        generated_ids=result.generated_ids,
        output_xlsx_base64=result.output_xlsx_base64,
        errors=[error._asdict() for error in result.errors],
        decoded_encoding=decoded_encoding,
        dry_run=dry_run,
    )
    return DataResponse(data=report)
