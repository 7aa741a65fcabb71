"""
Импорт товаров и остатков из CSV/XLSX.

Формат: id, title, description, category_slug, base_price, image_url,
is_active и по три колонки на каждый город из БД:
<slug>_in_stock, <slug>_stock_qty, <slug>_price_override.
"""
import base64
import logging
import math
import re
import uuid
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy.orm import Session

from storefront.core.exceptions import ImportFormatError
from storefront.crud.city import get_cities
from storefront.crud.product import fetch_existing_product_ids, upsert_inventory, upsert_products
from storefront.services.delimited import detect_delimiter, parse_delimited
from storefront.services.images import is_http_url, public_file_url, resolve_image_file_name
from storefront.services.spreadsheet import build_workbook

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["id", "title", "description", "category_slug", "base_price", "image_url", "is_active"]
CITY_COLUMN_SUFFIXES = ("in_stock", "stock_qty", "price_override")

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$", re.IGNORECASE)

_TRUE_VALUES = ("true", "1", "yes", "y")
_FALSE_VALUES = ("false", "0", "no", "n")


class RowError(NamedTuple):
    row_num: int
    id: Optional[str]
    title: Optional[str]
    messages: List[str]


class ImportResult(NamedTuple):
    delimiter: Optional[str]
    cities: List[dict]
    total_rows: int
    valid_rows: int
    invalid_rows: int
    inserted: int
    updated: int
    inventory_rows: int
    generated_ids: bool
    output_xlsx_base64: Optional[str]
    errors: List[RowError]
    headers: List[str]
    records: List[Dict[str, str]]


class ImportRowsInvalid(ImportFormatError):
    """strict-режим: в файле есть невалидные строки, запись не выполнялась."""


def is_uuid(value: str) -> bool:
    return bool(_UUID_RE.match(value))


def city_columns(slug: str) -> List[str]:
    return [f"{slug}_{suffix}" for suffix in CITY_COLUMN_SUFFIXES]


# ---------------------------------------------------------------------
# Разбор значений ячеек
# ---------------------------------------------------------------------

def parse_bool(value: str, fallback: bool) -> bool:
    v = value.strip().lower()
    if not v:
        return fallback
    if v in _TRUE_VALUES:
        return True
    if v in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean: {value}")


def _compact_number(value: str) -> str:
    return value.replace("\u00a0", " ").replace(" ", "")


def parse_number(value: str) -> float:
    raw = value.strip()
    if not raw:
        raise ValueError("Empty number")
    compact = _compact_number(raw)
    # "1 234,5" -> 1234.5; если точка уже есть, запятую не трогаем
    normalized = compact if "." in compact else compact.replace(",", ".", 1)
    try:
        number = float(normalized)
    except ValueError:
        raise ValueError(f"Invalid number: {value}")
    if not math.isfinite(number):
        raise ValueError(f"Invalid number: {value}")
    return number


def parse_nullable_number(value: str) -> Optional[float]:
    if not value.strip():
        return None
    return parse_number(value)


def parse_nullable_int(value: str) -> Optional[int]:
    v = value.strip()
    if not v:
        return None
    try:
        number = float(_compact_number(v))
    except ValueError:
        raise ValueError(f"Invalid integer: {value}")
    if not math.isfinite(number) or not number.is_integer():
        raise ValueError(f"Invalid integer: {value}")
    return int(number)


def normalize_image_base_url(image_base_url: Optional[str]) -> Optional[str]:
    raw = (image_base_url or "").strip()
    if not raw:
        return None
    if not is_http_url(raw):
        raise ImportFormatError(f"imageBaseUrl is not a valid URL: {raw}")
    return raw.rstrip("/") + "/"


# ---------------------------------------------------------------------
# Пайплайн
# ---------------------------------------------------------------------

def _validate_row(
    record: Dict[str, str],
    cities: list,
    image_base_url: Optional[str],
    image_items_dir: Optional[str],
):
    """Возвращает (product, inventory_rows, messages, generated_id)."""
    messages: List[str] = []
    generated_id = False

    product_id = record.get("id", "").strip()
    if not product_id:
        product_id = str(uuid.uuid4())
        record["id"] = product_id
        generated_id = True
    elif not is_uuid(product_id):
        messages.append(f"id must be a UUID (got: {product_id})")

    title = record.get("title", "").strip()
    if not title:
        messages.append("title is required")

    description = record.get("description", "").strip() or None

    category_slug = record.get("category_slug", "").strip().lower() or "other"
    if not _SLUG_RE.match(category_slug):
        messages.append(f"category_slug must match [a-z0-9_-] and not be empty (got: {category_slug})")

    image_url = record.get("image_url", "").strip() or None
    if image_url and not is_http_url(image_url):
        if image_base_url:
            file_name = resolve_image_file_name(image_url, image_items_dir)
            image_url = public_file_url(image_base_url, file_name)
        else:
            messages.append(f"image_url is not a valid URL (got: {image_url})")

    base_price = None
    try:
        base_price = parse_number(record.get("base_price", ""))
        if base_price < 0:
            messages.append("base_price must be >= 0")
    except ValueError as e:
        messages.append(f"base_price: {e}")

    is_active = True
    try:
        is_active = parse_bool(record.get("is_active", ""), True)
    except ValueError as e:
        messages.append(f"is_active: {e}")

    inventory_rows = []
    for city in cities:
        in_stock_col, stock_qty_col, price_override_col = city_columns(city.slug)

        in_stock = False
        try:
            in_stock = parse_bool(record.get(in_stock_col, ""), False)
        except ValueError as e:
            messages.append(f"{in_stock_col}: {e}")

        stock_qty = None
        try:
            stock_qty = parse_nullable_int(record.get(stock_qty_col, ""))
            if stock_qty is not None and stock_qty < 0:
                messages.append(f"{stock_qty_col} must be >= 0")
        except ValueError as e:
            messages.append(f"{stock_qty_col}: {e}")

        price_override = None
        try:
            price_override = parse_nullable_number(record.get(price_override_col, ""))
            if price_override is not None and price_override < 0:
                messages.append(f"{price_override_col} must be >= 0")
        except ValueError as e:
            messages.append(f"{price_override_col}: {e}")

        inventory_rows.append({
            "product_id": product_id,
            "city_id": city.id,
            "in_stock": in_stock,
            "stock_qty": stock_qty,
            "price_override": price_override,
        })

    product = {
        "id": product_id,
        "title": title,
        "description": description,
        "category_slug": category_slug,
        "base_price": base_price,
        "image_url": image_url,
        "is_active": is_active,
    }
    return product, inventory_rows, messages, generated_id


def import_products_table(
    db: Session,
    table: List[List[str]],
    *,
    delimiter: Optional[str] = None,
    dry_run: bool = False,
    strict: bool = False,
    image_base_url: Optional[str] = None,
    image_items_dir: Optional[str] = None,
) -> ImportResult:
    if not table:
        raise ImportFormatError("CSV is empty")

    base_url = normalize_image_base_url(image_base_url)
    headers = [cell.strip().lower() for cell in table[0]]
    header_set = set(headers)

    cities = get_cities(db)
    if not cities:
        raise ImportFormatError("No cities found in DB")

    missing_base = [col for col in BASE_COLUMNS if col not in header_set]
    if missing_base:
        raise ImportFormatError(f"CSV is missing required columns: {', '.join(missing_base)}")

    missing_city = [col for city in cities for col in city_columns(city.slug) if col not in header_set]
    if missing_city:
        raise ImportFormatError(f"CSV is missing city columns: {', '.join(missing_city)}")

    records: List[Dict[str, str]] = []
    products: List[dict] = []
    inventory: List[dict] = []
    errors: List[RowError] = []
    generated_ids = False

    for index, cells in enumerate(table[1:], start=1):
        if all(not cell.strip() for cell in cells):
            continue

        record: Dict[str, str] = {}
        for position, key in enumerate(headers):
            if key:
                record[key] = cells[position].strip() if position < len(cells) else ""

        # Номер строки в файле, заголовок это строка 1
        row_num = index + 1
        records.append(record)

        product, inventory_rows, messages, generated_id = _validate_row(
            record, cities, base_url, image_items_dir
        )
        generated_ids = generated_ids or generated_id

        if messages or product["base_price"] is None:
            errors.append(RowError(
                row_num=row_num,
                id=product["id"] or None,
                title=product["title"] or None,
                messages=messages or ["Invalid row"],
            ))
            continue

        products.append(product)
        inventory.extend(inventory_rows)

    if not products:
        raise ImportFormatError("No valid rows to import", details=errors)

    if strict and errors:
        raise ImportRowsInvalid(f"Found {len(errors)} invalid row(s) (strict mode, aborting)", details=errors)

    existing_ids = fetch_existing_product_ids(db, [p["id"] for p in products])
    inserted = sum(1 for p in products if p["id"] not in existing_ids)
    updated = len(products) - inserted

    if not dry_run:
        try:
            upsert_products(db, products)
            upsert_inventory(db, inventory)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Импорт товаров: добавлено {inserted}, обновлено {updated}, остатков {len(inventory)}")

    output_xlsx_base64 = None
    if generated_ids:
        sheet_rows = [headers] + [[record.get(h, "") for h in headers] for record in records]
        output_xlsx_base64 = base64.b64encode(build_workbook(sheet_rows)).decode("ascii")

    return ImportResult(
        delimiter=delimiter,
        cities=[{"id": c.id, "slug": c.slug, "name": c.name} for c in cities],
        total_rows=len(records),
        valid_rows=len(products),
        invalid_rows=len(errors),
        inserted=inserted,
        updated=updated,
        inventory_rows=len(inventory),
        generated_ids=generated_ids,
        output_xlsx_base64=output_xlsx_base64,
        errors=errors,
        headers=headers,
        records=records,
    )


def import_products_csv(db: Session, csv_text: str, **options) -> ImportResult:
    delimiter = detect_delimiter(csv_text)
    table = parse_delimited(csv_text, delimiter)
    return import_products_table(db, table, delimiter=delimiter, **options)
