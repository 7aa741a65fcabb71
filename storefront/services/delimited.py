from typing import List, Sequence

from storefront.core.exceptions import ImportFormatError


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith("\ufeff") else text


def detect_delimiter(text: str) -> str:
    """Выбирает разделитель по первой строке: tab, затем запятая, иначе точка с запятой."""
    first_line = strip_bom(text).split("\n", 1)[0].rstrip("\r")
    semi = first_line.count(";")
    comma = first_line.count(",")
    tab = first_line.count("\t")

    if tab >= semi and tab >= comma:
        return "\t"
    if comma >= semi:
        return ","
    return ";"


def parse_delimited(text: str, delimiter: str) -> List[List[str]]:
    """
    Разбирает CSV-текст в таблицу строк.

    Кавычка переключает режим экранирования, "" внутри кавычек даёт одну
    кавычку. CR вне кавычек игнорируется, LF завершает строку. Пустые строки
    в конце файла отбрасываются.
    """
    rows: List[List[str]] = []
    row: List[str] = []
    value: List[str] = []
    in_quotes = False

    normalized = strip_bom(text)
    length = len(normalized)
    i = 0
    while i < length:
        ch = normalized[i]

        if in_quotes:
            if ch == '"':
                if i + 1 < length and normalized[i + 1] == '"':
                    value.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                value.append(ch)
            i += 1
            continue

        if ch == '"':
            in_quotes = True
        elif ch == delimiter:
            row.append("".join(value))
            value = []
        elif ch == "\r":
            pass
        elif ch == "\n":
            row.append("".join(value))
            value = []
            rows.append(row)
            row = []
        else:
            value.append(ch)
        i += 1

    if in_quotes:
        raise ImportFormatError("CSV parse error: unclosed quote")

    row.append("".join(value))
    rows.append(row)

    while rows and all(not cell.strip() for cell in rows[-1]):
        rows.pop()

    return rows


def quote_cell(value: str, delimiter: str) -> str:
    if '"' in value or "\n" in value or "\r" in value or delimiter in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def stringify_rows(rows: Sequence[Sequence[str]], delimiter: str) -> str:
    """Обратная операция: кавычки только там, где без них нельзя."""
    return "\n".join(delimiter.join(quote_cell(str(cell), delimiter) for cell in row) for row in rows)
