"""Tests for the receipt workbook layout."""
from datetime import date

from openpyxl import load_workbook

from tests.conftest import make_image_bytes

from receipt_export.models import ExportFilters, ReceiptRecord, RequesterInfo
from receipt_export.services.image_fetcher import ImageAbsent, ImagePresent
from receipt_export.services.workbook_builder import (
    FIRST_DATA_ROW,
    HEADER_ROW,
    IMAGE_ROW_HEIGHT,
    ReceiptWorkbookBuilder,
)

HEADERS = ["Store/Provider", "Amount", "Date", "Category", "Description", "Receipt Image"]


def row_values(sheet, row):
    return [sheet.cell(row=row, column=col).value for col in range(1, 7)]


def merged(sheet):
    return sorted(str(r) for r in sheet.merged_cells.ranges)


def cvs_record(**overrides):
    data = {
        "id": "r-1",
        "store_name": "CVS Pharmacy",
        "amount": 25.99,
        "receipt_date": "2024-03-15",
        "category": "Pharmacy",
        "image_id": None,
    }
    data.update(overrides)
    return ReceiptRecord(**data)


def test_single_record_layout():
    builder = ReceiptWorkbookBuilder(today=date(2024, 3, 20))
    row = builder.add_record(cvs_record())
    summary_row = builder.finalize()
    sheet = builder.sheet

    assert sheet.title == "Receipts Export"
    assert sheet["A1"].value == "Healthcare Receipt Export - Mar 20, 2024"
    assert sheet["A2"].value is None
    assert row_values(sheet, 3) == [None] * 6
    assert row_values(sheet, HEADER_ROW) == HEADERS
    assert merged(sheet) == ["A1:F1"]

    assert row == FIRST_DATA_ROW
    assert row_values(sheet, row) == ["CVS Pharmacy", "$25.99", "Mar 15, 2024", "Pharmacy", "", "No image"]
    assert summary_row == row + 1
    assert row_values(sheet, summary_row) == ["TOTAL:", "$25.99", "1 receipts", "", "", "0 images"]
    assert builder.images_embedded == 0


def test_header_and_row_styles():
    builder = ReceiptWorkbookBuilder()
    builder.add_record(cvs_record())
    builder.finalize()
    sheet = builder.sheet

    header = sheet.cell(row=HEADER_ROW, column=1)
    assert header.font.bold
    assert header.font.color.rgb.endswith("FFFFFF")
    assert header.fill.fill_type == "solid"
    assert header.fill.fgColor.rgb.endswith("3498DB")
    assert header.alignment.horizontal == "center"
    assert header.border.left.style == "thin"

    data = sheet.cell(row=FIRST_DATA_ROW, column=5)
    assert data.alignment.horizontal == "left"
    assert data.alignment.vertical == "top"
    assert data.alignment.wrap_text
    assert data.border.bottom.color.rgb.endswith("E0E0E0")

    total = sheet.cell(row=FIRST_DATA_ROW + 1, column=2)
    assert total.font.bold
    assert total.fill.fgColor.rgb.endswith("ECF0F1")


def test_column_widths():
    builder = ReceiptWorkbookBuilder()
    builder.finalize()
    widths = [builder.sheet.column_dimensions[letter].width for letter in "ABCDEF"]
    # Amount is widened from 12 to the 15 minimum
    assert widths == [25, 15, 15, 20, 40, 20]


def test_filter_row_lists_active_filters():
    builder = ReceiptWorkbookBuilder(filters=ExportFilters(search="aspirin", category="Pharmacy"))
    sheet = builder.sheet
    assert sheet["A2"].value == 'Filters Applied: Search: "aspirin", Category: Pharmacy'
    assert sheet["A2"].font.italic
    assert merged(sheet) == ["A1:F1", "A2:F2"]
    assert row_values(sheet, HEADER_ROW) == HEADERS


def test_filter_row_category_only():
    builder = ReceiptWorkbookBuilder(filters=ExportFilters(category="Dental"))
    assert builder.sheet["A2"].value == "Filters Applied: Category: Dental"


def test_filter_row_absent_for_all_category_and_blank_search():
    for filters in [ExportFilters(), ExportFilters(search="", category="all"), ExportFilters(category="all")]:
        builder = ReceiptWorkbookBuilder(filters=filters)
        assert builder.sheet["A2"].value is None
        assert merged(builder.sheet) == ["A1:F1"]
        # data still starts at the same row
        assert builder.add_record(cvs_record()) == FIRST_DATA_ROW


def test_embeds_present_image(png_bytes):
    builder = ReceiptWorkbookBuilder()
    row = builder.add_record(cvs_record(image_id="png-1"), ImagePresent(png_bytes, "image/png"))

    assert builder.images_embedded == 1
    images = builder.sheet._images
    assert len(images) == 1
    assert images[0].anchor == f"F{row}"
    assert (images[0].width, images[0].height) == (150, 100)
    assert builder.sheet.row_dimensions[row].height == IMAGE_ROW_HEIGHT
    assert builder.sheet.cell(row=row, column=6).value == "Image attached"


def test_absent_image_keeps_placeholder_without_embedding():
    builder = ReceiptWorkbookBuilder()
    row = builder.add_record(cvs_record(image_id="missing-1"), ImageAbsent("status 404"))
    summary = builder.finalize()

    assert builder.sheet.cell(row=row, column=6).value == "Image attached"
    assert builder.sheet._images == []
    assert builder.sheet.row_dimensions[row].height is None
    assert builder.sheet.cell(row=summary, column=6).value == "0 images"


def test_undecodable_image_is_skipped():
    builder = ReceiptWorkbookBuilder()
    builder.add_record(cvs_record(image_id="garbage-1"), ImagePresent(b"not an image", "image/png"))
    assert builder.images_embedded == 0
    assert builder.sheet._images == []


def test_image_ignored_when_record_declares_none(png_bytes):
    builder = ReceiptWorkbookBuilder()
    row = builder.add_record(cvs_record(image_id=None), ImagePresent(png_bytes, "image/png"))
    assert builder.images_embedded == 0
    assert builder.sheet.cell(row=row, column=6).value == "No image"


def test_total_treats_bad_amounts_as_zero():
    builder = ReceiptWorkbookBuilder()
    for amount in [10, "5.50", None, "oops", 1000.25]:
        builder.add_record(cvs_record(amount=amount))
    summary = builder.finalize()

    assert builder.sheet.cell(row=FIRST_DATA_ROW + 3, column=2).value == "$0.00"
    assert row_values(builder.sheet, summary)[:3] == ["TOTAL:", "$1,015.75", "5 receipts"]


def test_rows_follow_input_order_and_missing_fields_are_blank():
    builder = ReceiptWorkbookBuilder()
    builder.add_record(ReceiptRecord(store_name="B Clinic", amount=1))
    builder.add_record(ReceiptRecord(amount=2, receipt_date="not a date"))
    builder.add_record(ReceiptRecord(store_name="A Lab", amount=3))
    sheet = builder.sheet

    assert [sheet.cell(row=FIRST_DATA_ROW + i, column=1).value for i in range(3)] == ["B Clinic", "", "A Lab"]
    assert row_values(sheet, FIRST_DATA_ROW + 1) == ["", "$2.00", "not a date", "", "", "No image"]
    assert sheet.cell(row=FIRST_DATA_ROW, column=3).value == "Invalid Date"


def test_finalize_is_idempotent_and_blocks_new_rows():
    builder = ReceiptWorkbookBuilder()
    builder.add_record(cvs_record())
    first = builder.finalize()
    assert builder.finalize() == first
    try:
        builder.add_record(cvs_record())
    except RuntimeError:
        pass
    else:
        raise AssertionError("add_record after finalize should fail")


def test_save_round_trip(tmp_path, png_bytes):
    builder = ReceiptWorkbookBuilder(
        requester=RequesterInfo(name="Dana Example", email="dana@example.com"),
        filters=ExportFilters(search="cvs"),
    )
    builder.add_record(cvs_record(image_id="png-1"), ImagePresent(png_bytes, "image/png"))
    builder.add_record(cvs_record(id="r-2", store_name="Walgreens", amount="4.01"))
    path = tmp_path / "out.xlsx"
    builder.save(path)

    workbook = load_workbook(path)
    sheet = workbook["Receipts Export"]
    assert workbook.properties.creator == "Dana Example"
    assert workbook.properties.subject == "Healthcare Receipt Export"
    assert sheet["A2"].value == 'Filters Applied: Search: "cvs"'
    assert sheet.cell(row=FIRST_DATA_ROW + 1, column=1).value == "Walgreens"
    assert sheet.cell(row=FIRST_DATA_ROW + 2, column=2).value == "$30.00"
    assert sheet.cell(row=FIRST_DATA_ROW + 2, column=6).value == "1 images"
    assert len(sheet._images) == 1


def test_default_creator():
    builder = ReceiptWorkbookBuilder()
    assert builder.workbook.properties.creator == "RxReceipts User"


def test_truncated_image_is_skipped_and_workbook_still_saves(tmp_path):
    truncated = make_image_bytes("BMP")[:200]
    builder = ReceiptWorkbookBuilder()
    row = builder.add_record(cvs_record(image_id="bmp-1"), ImagePresent(truncated, "image/bmp"))
    assert builder.images_embedded == 0
    assert builder.sheet._images == []
    assert builder.sheet.cell(row=row, column=6).value == "Image attached"

    path = tmp_path / "out.xlsx"
    builder.save(path)
    assert load_workbook(path)["Receipts Export"].cell(row=row, column=1).value == "CVS Pharmacy"


def test_non_native_image_format_is_embedded_as_png(tmp_path):
    builder = ReceiptWorkbookBuilder()
    builder.add_record(cvs_record(image_id="bmp-1"), ImagePresent(make_image_bytes("BMP"), "image/bmp"))
    assert builder.images_embedded == 1
    assert builder.sheet._images[0].format == "png"

    path = tmp_path / "out.xlsx"
    builder.save(path)
    assert len(load_workbook(path)["Receipts Export"]._images) == 1


def test_total_beyond_default_decimal_precision(tmp_path):
    builder = ReceiptWorkbookBuilder()
    builder.add_record(cvs_record(amount=1e30))
    builder.add_record(cvs_record(amount="1"))
    summary = builder.finalize()

    assert builder.sheet.cell(row=FIRST_DATA_ROW, column=2).value == "$1,000,000,000,000,000,000,000,000,000,000.00"
    assert builder.sheet.cell(row=summary, column=2).value == "$1,000,000,000,000,000,000,000,000,000,001.00"
    builder.save(tmp_path / "out.xlsx")


def test_non_string_text_fields_are_rendered():
    builder = ReceiptWorkbookBuilder()
    row = builder.add_record(ReceiptRecord(store_name=42, category=True, description={"note": "copay"}))
    assert row_values(builder.sheet, row)[:5] == ["42", "$0.00", "Invalid Date", "true", '{"note": "copay"}']
