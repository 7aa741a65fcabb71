"""
Импорт товаров из CSV/XLSX в БД из командной строки.

    storefront-import-products products.csv [--dry-run] [--strict] [--out out.csv]

Если в файле были пустые id, рядом пишется копия с проставленными id
(<имя>.with_ids.<расширение>), чтобы повторный импорт обновлял те же товары.
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from storefront.core.exceptions import ImportFormatError
from storefront.db.base import Base
from storefront.db.session import SessionLocal, engine
from storefront.services.csv_decode import decode_csv_buffer
from storefront.services.delimited import detect_delimiter, parse_delimited, stringify_rows
from storefront.services.products_import import RowError, import_products_table
from storefront.services.spreadsheet import build_workbook, read_workbook_rows

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Импорт товаров и остатков из CSV/XLSX")
    parser.add_argument("file", help="CSV или XLSX в формате экспорта админки")
    parser.add_argument("--dry-run", action="store_true", help="только проверить, ничего не записывать")
    parser.add_argument("--strict", action="store_true", help="прервать импорт при любой ошибочной строке")
    parser.add_argument("--out", default=None, help="куда записать файл с проставленными id")
    parser.add_argument("--encoding", default=None, help="кодировка CSV (по умолчанию определяется)")
    return parser


def default_output_path(file_path: str) -> str:
    root, ext = os.path.splitext(file_path)
    return f"{root}.with_ids{ext or '.csv'}"


def print_errors(errors: List[RowError]) -> None:
    print(f"Errors ({len(errors)}):", file=sys.stderr)
    for error in errors:
        title = f" ({error.title})" if error.title else ""
        print(f"- row {error.row_num}{title}: {'; '.join(error.messages)}", file=sys.stderr)


def read_table(file_path: str, encoding: Optional[str]):
    """Возвращает (таблица, разделитель). Лист XLSX считается таблицей с ";"."""
    with open(file_path, "rb") as f:
        data = f.read()

    if file_path.lower().endswith(".xlsx"):
        return read_workbook_rows(data), ";"

    decoded = decode_csv_buffer(data, encoding)
    logger.info(f"Кодировка {file_path}: {decoded.encoding}")
    delimiter = detect_delimiter(decoded.text)
    return parse_delimited(decoded.text, delimiter), delimiter


def write_output(path: str, headers: List[str], records, delimiter: Optional[str]) -> None:
    rows = [headers] + [[record.get(h, "") for h in headers] for record in records]
    if path.lower().endswith(".xlsx"):
        with open(path, "wb") as f:
            f.write(build_workbook(rows))
    else:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(stringify_rows(rows, delimiter or ","))


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    file_path = os.path.abspath(args.file)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        table, delimiter = read_table(file_path, args.encoding)
        result = import_products_table(db, table, delimiter=delimiter, dry_run=args.dry_run, strict=args.strict)
    except ImportFormatError as e:
        print(e.message, file=sys.stderr)
        if e.details:
            print_errors(e.details)
        return 1
    except (OSError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 1
    finally:
        db.close()

    output_path = args.out or (default_output_path(file_path) if result.generated_ids else None)
    if output_path:
        write_output(output_path, result.headers, result.records, delimiter)

    print(f"File: {file_path}")
    print(f"Cities: {', '.join(city['slug'] for city in result.cities)}")
    print(f"Rows: total={result.total_rows} valid={result.valid_rows} skipped={result.invalid_rows}")
    print(f"Products: add={result.inserted} update={result.updated}")
    print(f"Inventory rows: {result.inventory_rows} ({'dry-run' if args.dry_run else 'written'})")
    if output_path:
        print(f"Output: {output_path}")

    if result.errors:
        print_errors(result.errors)
        return 1
    return 0


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    sys.exit(run())


if __name__ == "__main__":
    main()
