import base64
import io
import uuid

import openpyxl
import pytest

from storefront.core.exceptions import ImportFormatError
from storefront.crud import product as crud_product
from storefront.models import Inventory, Product
from storefront.services.products_import import (
    ImportRowsInvalid,
    import_products_csv,
    parse_bool,
    parse_nullable_int,
    parse_number,
)

HEADER = (
    "id;title;description;category_slug;base_price;image_url;is_active;"
    "blg_in_stock;blg_stock_qty;blg_price_override;vvo_in_stock;vvo_stock_qty;vvo_price_override"
)


def make_csv(*rows):
    return "\n".join((HEADER,) + rows) + "\n"


@pytest.mark.parametrize("raw, expected", [
    ("1000", 1000.0),
    ("1 234,5", 1234.5),
    ("1 000.25", 1000.25),
    ("0", 0.0),
])
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "nan", "1,2,3"])
def test_parse_number_rejects(raw):
    with pytest.raises(ValueError):
        parse_number(raw)


def test_parse_bool_and_int():
    assert parse_bool("Yes", False) is True
    assert parse_bool("n", True) is False
    assert parse_bool("", True) is True
    with pytest.raises(ValueError):
        parse_bool("maybe", False)

    assert parse_nullable_int("") is None
    assert parse_nullable_int("12") == 12
    with pytest.raises(ValueError):
        parse_nullable_int("1.5")


def test_import_new_products_generates_ids(db_session, cities):
    csv_text = make_csv(
        ";Телефон;;Phones;1 000;https://cdn.example.com/phone.jpg;;true;3;;1;;950",
        ";Чехол;Силикон;;200;;false;0;;;yes;10;",
    )

    result = import_products_csv(db_session, csv_text)

    assert result.delimiter == ";"
    assert [c["slug"] for c in result.cities] == ["blg", "vvo"]
    assert (result.total_rows, result.valid_rows, result.invalid_rows) == (2, 2, 0)
    assert (result.inserted, result.updated) == (2, 0)
    assert result.inventory_rows == 4
    assert result.generated_ids is True
    assert all(uuid.UUID(record["id"]) for record in result.records)

    phone = db_session.query(Product).filter(Product.title == "Телефон").one()
    assert phone.category_slug == "phones"
    assert phone.base_price == 1000
    assert phone.description is None
    assert phone.is_active is True

    case = db_session.query(Product).filter(Product.title == "Чехол").one()
    assert case.is_active is False
    assert case.category_slug == "other"

    vvo_phone = db_session.get(Inventory, (phone.id, cities.vvo.id))
    assert vvo_phone.in_stock is True
    assert vvo_phone.price_override == 950
    blg_phone = db_session.get(Inventory, (phone.id, cities.blg.id))
    assert blg_phone.stock_qty == 3

    workbook = openpyxl.load_workbook(io.BytesIO(base64.b64decode(result.output_xlsx_base64)))
    sheet = workbook.active
    assert sheet.title == "products"
    assert [cell.value for cell in sheet[1]][:3] == ["id", "title", "description"]
    assert sheet.max_row == 3


def test_import_updates_existing_product(db_session, seeded):
    csv_text = make_csv(
        f"{seeded.phone.id};Телефон 2;;phones;1100;;true;;;;true;1;",
    )

    result = import_products_csv(db_session, csv_text)

    assert (result.inserted, result.updated) == (0, 1)
    assert result.generated_ids is False
    assert result.output_xlsx_base64 is None

    db_session.expire_all()
    phone = db_session.get(Product, seeded.phone.id)
    assert phone.title == "Телефон 2"
    assert phone.base_price == 1100
    assert db_session.get(Inventory, (phone.id, seeded.cities.vvo.id)).price_override is None


def test_invalid_rows_are_reported_and_skipped(db_session, cities):
    csv_text = make_csv(
        "not-a-uuid;Плохой id;;;100;;;;;;;;",
        ";;Без названия;;100;;;;;;;;",
        ";Плохая цена;;;-5;;;;;;;;",
        "",
        ";Хороший;;;100;;;;;;;;",
        ";Плохой флаг;;;100;;maybe;;;;;x;",
    )

    result = import_products_csv(db_session, csv_text)

    assert result.valid_rows == 1
    errors = {error.row_num: error for error in result.errors}
    assert sorted(errors) == [2, 3, 4, 7]
    assert errors[2].messages == ["id must be a UUID (got: not-a-uuid)"]
    assert errors[3].messages == ["title is required"]
    assert errors[4].messages == ["base_price must be >= 0"]
    assert "is_active: Invalid boolean: maybe" in errors[7].messages
    assert any(m.startswith("vvo_stock_qty") for m in errors[7].messages)
    assert db_session.query(Product).count() == 1


def test_dry_run_writes_nothing(db_session, cities):
    result = import_products_csv(db_session, make_csv(";Телефон;;;100;;;;;;;;"), dry_run=True)

    assert result.inserted == 1
    assert db_session.query(Product).count() == 0


def test_strict_mode_aborts(db_session, cities):
    csv_text = make_csv(";Телефон;;;100;;;;;;;;", ";;;;100;;;;;;;;")

    with pytest.raises(ImportRowsInvalid) as exc:
        import_products_csv(db_session, csv_text, strict=True)

    assert len(exc.value.details) == 1
    assert db_session.query(Product).count() == 0


def test_missing_columns(db_session, cities):
    with pytest.raises(ImportFormatError) as exc:
        import_products_csv(db_session, "id;title;description\n;x;y\n")

    assert exc.value.message.startswith("CSV is missing required columns: category_slug")


def test_missing_city_columns(db_session, cities):
    header = "id;title;description;category_slug;base_price;image_url;is_active;vvo_in_stock"
    with pytest.raises(ImportFormatError) as exc:
        import_products_csv(db_session, header + "\n;x;;;1;;;\n")

    assert "blg_in_stock" in exc.value.message


def test_no_cities(db_session):
    with pytest.raises(ImportFormatError) as exc:
        import_products_csv(db_session, make_csv(";Телефон;;;100;;;;;;;;"))

    assert exc.value.message == "No cities found in DB"


def test_no_valid_rows(db_session, cities):
    with pytest.raises(ImportFormatError) as exc:
        import_products_csv(db_session, make_csv(";;;;100;;;;;;;;"))

    assert exc.value.message == "No valid rows to import"


def test_image_file_names_resolved_against_base_url(db_session, cities, tmp_path):
    (tmp_path / "phone 1.webp").write_bytes(b"img")

    result = import_products_csv(
        db_session,
        make_csv(";Телефон;;;100;phone 1;;;;;;;", ";Чехол;;;100;case.png;;;;;;;"),
        image_base_url="https://shop.example.com/static/items",
        image_items_dir=str(tmp_path),
    )

    assert result.valid_rows == 2
    urls = {p.title: p.image_url for p in db_session.query(Product).all()}
    assert urls["Телефон"] == "https://shop.example.com/static/items/phone%201.webp"
    assert urls["Чехол"] == "https://shop.example.com/static/items/case.png"


def test_relative_image_without_base_url_is_an_error(db_session, cities):
    result = import_products_csv(db_session, make_csv(
        ";Телефон;;;100;phone.jpg;;;;;;;",
        ";Чехол;;;100;;;;;;;;",
    ))

    assert result.errors[0].messages == ["image_url is not a valid URL (got: phone.jpg)"]


def test_large_import_is_upserted_in_batches(db_session, cities, monkeypatch):
    calls = []
    real_upsert = crud_product.upsert_rows

    def recording_upsert(db, model, rows, conflict_columns):
        calls.append((model.__tablename__, len(rows)))
        real_upsert(db, model, rows, conflict_columns)

    monkeypatch.setattr(crud_product, "upsert_rows", recording_upsert)
    ids = [str(uuid.uuid4()) for _ in range(260)]
    csv_text = make_csv(*(f"{product_id};Товар {n};;;{100 + n};;true;1;;;0;;" for n, product_id in enumerate(ids)))

    result = import_products_csv(db_session, csv_text)

    assert (result.inserted, result.updated, result.inventory_rows) == (260, 0, 520)
    assert calls == [("products", 200), ("products", 60), ("inventory", 500), ("inventory", 20)]
    assert db_session.query(Product).count() == 260
    assert db_session.query(Inventory).count() == 520

    calls.clear()
    again = import_products_csv(db_session, csv_text)

    assert (again.inserted, again.updated) == (0, 260)
    assert db_session.query(Product).count() == 260
    assert db_session.query(Inventory).count() == 520
