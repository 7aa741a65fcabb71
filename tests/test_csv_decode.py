import pytest

from storefront.services.csv_decode import decode_csv_buffer, score_decoded_text

SAMPLE = (
    "id;title;description;base_price\n"
    ";Телефон;Описание товара для витрины;1000\n"
    ";Чехол;Прочный и тонкий;200\n"
)


@pytest.mark.parametrize("codec, expected", [
    ("utf-8", "utf-8"),
    ("cp1251", "windows-1251"),
    ("cp866", "ibm866"),
    ("koi8_r", "koi8-r"),
])
def test_detects_encoding(codec, expected):
    decoded = decode_csv_buffer(SAMPLE.encode(codec))

    assert decoded.encoding == expected
    assert "Телефон" in decoded.text


def test_forced_encoding_skips_detection():
    decoded = decode_csv_buffer(SAMPLE.encode("utf-8"), "windows-1251")

    assert decoded.encoding == "windows-1251"
    assert "Телефон" not in decoded.text


def test_unknown_forced_encoding():
    with pytest.raises(ValueError):
        decode_csv_buffer(b"id;title", "latin-1")


def test_score_prefers_header_and_penalises_replacement_chars():
    clean = score_decoded_text("id;title;description\nТовар")
    broken = score_decoded_text("id;title;description\n\ufffd\ufffd")

    assert clean > 500
    assert broken < 0
