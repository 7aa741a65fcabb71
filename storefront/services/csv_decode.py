"""
Определение кодировки CSV, выгруженного из Excel/1С.

Файлы приходят в UTF-8, CP1251, CP866 или KOI8-R. Декодируем всеми
вариантами и выбираем текст с лучшей эвристической оценкой.
"""
import re
from typing import NamedTuple, Optional

# Имя кодировки (как в API) -> кодек Python
ENCODINGS = {
    "utf-8": "utf-8",
    "windows-1251": "cp1251",
    "ibm866": "cp866",
    "koi8-r": "koi8_r",
}

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_CYRILLIC_RE = re.compile(r"[А-Яа-яЁё]")
# Типичные следы UTF-8, прочитанного как CP1251/CP866
_MOJIBAKE_RU_RE = re.compile(r"[РС][А-яЁё]")
_MOJIBAKE_LATIN_RE = re.compile(r"[ÐÑ].")
_HEADER_RE = re.compile(r"(^|[\r\n])[ \t]*id[;, \t]+title[;, \t]+description", re.IGNORECASE)


class DecodedText(NamedTuple):
    text: str
    encoding: str


def score_decoded_text(text: str) -> int:
    """Чем больше оценка, тем вероятнее, что кодировка угадана."""
    score = 0

    cyrillic = _CYRILLIC_RE.findall(text)
    cyrillic_count = len(cyrillic)
    suspicious = sum(1 for ch in cyrillic if ch in ("Р", "С"))
    suspicious_ratio = suspicious / cyrillic_count if cyrillic_count else 0.0

    if _HEADER_RE.search(text):
        score += 500

    score -= text.count("\ufffd") * 1000
    score -= len(_CONTROL_RE.findall(text)) * 200
    score -= len(_MOJIBAKE_RU_RE.findall(text)) * 3
    score -= len(_MOJIBAKE_LATIN_RE.findall(text)) * 3

    if suspicious_ratio > 0.45:
        score -= int((suspicious_ratio - 0.45) * 2500 + 0.5)

    score += min(cyrillic_count, 300)
    return score


def decode_csv_buffer(data: bytes, forced_encoding: Optional[str] = None) -> DecodedText:
    if forced_encoding is not None:
        if forced_encoding not in ENCODINGS:
            raise ValueError(f"Unsupported encoding: {forced_encoding}")
        return DecodedText(data.decode(ENCODINGS[forced_encoding], errors="replace"), forced_encoding)

    best: Optional[DecodedText] = None
    best_score = 0
    for name, codec in ENCODINGS.items():
        text = data.decode(codec, errors="replace")
        score = score_decoded_text(text)
        if best is None or score > best_score:
            best, best_score = DecodedText(text, name), score

    return best
