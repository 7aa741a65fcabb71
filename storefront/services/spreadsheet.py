import io
from datetime import date, datetime
from typing import Any, List, Sequence

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from storefront.core.exceptions import ImportFormatError

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        # Excel хранит 12 как 12.0
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def read_workbook_rows(data: bytes) -> List[List[str]]:
    """Читает первый лист .xlsx в таблицу строк (как после разбора CSV)."""
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFormatError(f"Cannot read spreadsheet: {str(e)[:100]}")

    try:
        if not wb.sheetnames:
            raise ImportFormatError("Spreadsheet is empty")
        ws = wb[wb.sheetnames[0]]

        rows: List[List[str]] = []
        for row in ws.iter_rows(values_only=True):
            cells = [_cell_to_str(value) for value in row]
            if all(not cell.strip() for cell in cells):
                continue
            rows.append(cells)
    finally:
        wb.close()

    if not rows:
        raise ImportFormatError("Spreadsheet has no rows")
    return rows


def build_workbook(rows: Sequence[Sequence[Any]], sheet_title: str = "products") -> bytes:
    """Собирает .xlsx, первая строка с заголовками оформляется."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_title

    for row in rows:
        ws.append(list(row))

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="4F81BD", end_color="4F81BD", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center")

    if rows:
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment

        for index, header in enumerate(rows[0], start=1):
            ws.column_dimensions[get_column_letter(index)].width = max(12, min(len(str(header)) + 4, 40))

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
