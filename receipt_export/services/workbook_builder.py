"""Receipt workbook construction using openpyxl.

Sheet layout (columns A-F):

    row 1   title, merged across all columns
    row 2   "Filters Applied: ..." when filters are active, otherwise empty
    row 3   spacer
    row 4   column headers
    row 5+  one row per receipt, in input order
    last    TOTAL summary row

Data always starts at row 5, whether or not the filter line is present.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from openpyxl import Workbook
from openpyxl.drawing.image import Image as SheetImage
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from PIL import Image as PILImage

from receipt_export.models import ExportFilters, ReceiptRecord, RequesterInfo
from receipt_export.services.image_fetcher import ImageFetchResult, ImagePresent
from receipt_export.utils.formatting import coerce_amount, format_currency, format_date, money_context
from receipt_export.utils.logging import logger

SHEET_TITLE = "Receipts Export"
DEFAULT_CREATOR = "RxReceipts User"
WORKBOOK_SUBJECT = "Healthcare Receipt Export"
WORKBOOK_DESCRIPTION = "Exported receipt data from RxReceipts application"

# (header, width)
COLUMNS = (
    ("Store/Provider", 25),
    ("Amount", 12),
    ("Date", 15),
    ("Category", 20),
    ("Description", 40),
    ("Receipt Image", 20),
)
IMAGE_COLUMN = len(COLUMNS)
MIN_TEXT_COLUMN_WIDTH = 15

TITLE_ROW = 1
FILTER_ROW = 2
HEADER_ROW = 4
FIRST_DATA_ROW = 5

IMAGE_WIDTH = 150
IMAGE_HEIGHT = 100
IMAGE_ROW_HEIGHT = 100

# Formats openpyxl writes as-is; anything else is re-encoded to PNG
NATIVE_IMAGE_FORMATS = ("png", "jpeg", "gif")
PNG_MODES = ("1", "L", "LA", "P", "RGB", "RGBA")

IMAGE_ATTACHED = "Image attached"
NO_IMAGE = "No image"

# Style constants
TITLE_FONT = Font(bold=True, size=16, color="2C3E50")
TITLE_ALIGNMENT = Alignment(horizontal="center")
FILTER_FONT = Font(italic=True, color="7F8C8D")

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="3498DB", end_color="3498DB", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
HEADER_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

_light_side = Side(style="thin", color="E0E0E0")
DATA_BORDER = Border(left=_light_side, right=_light_side, top=_light_side, bottom=_light_side)
DATA_ALIGNMENT = Alignment(horizontal="left", vertical="top", wrap_text=True)

SUMMARY_FONT = Font(bold=True)
SUMMARY_FILL = PatternFill(start_color="ECF0F1", end_color="ECF0F1", fill_type="solid")


class ReceiptWorkbookBuilder:
    """Build the export workbook one receipt at a time."""

    def __init__(
        self,
        filters: Optional[ExportFilters] = None,
        requester: Optional[RequesterInfo] = None,
        today: Optional[date] = None,
    ):
        self.filters = filters or ExportFilters()
        self.requester = requester or RequesterInfo()
        self.today = today or date.today()

        self.workbook = Workbook()
        self.sheet: Worksheet = self.workbook.active
        self.sheet.title = SHEET_TITLE

        self._next_row = FIRST_DATA_ROW
        self._record_count = 0
        self._images_embedded = 0
        self._total = Decimal("0")
        self._finalized = False

        self._set_properties()
        self._write_title()
        self._write_filters()
        self._write_header()

    @property
    def record_count(self) -> int:
        return self._record_count

    @property
    def images_embedded(self) -> int:
        return self._images_embedded

    @property
    def total(self) -> Decimal:
        return self._total

    def _set_properties(self):
        now = datetime.now()
        props = self.workbook.properties
        props.creator = self.requester.name or DEFAULT_CREATOR
        props.subject = WORKBOOK_SUBJECT
        props.description = WORKBOOK_DESCRIPTION
        props.created = now
        props.modified = now

    def _merge_full_width(self, row: int):
        self.sheet.merge_cells(
            start_row=row, start_column=1, end_row=row, end_column=len(COLUMNS)
        )

    def _write_title(self):
        cell = self.sheet.cell(
            row=TITLE_ROW,
            column=1,
            value=f"{WORKBOOK_SUBJECT} - {format_date(self.today)}",
        )
        cell.font = TITLE_FONT
        cell.alignment = TITLE_ALIGNMENT
        self._merge_full_width(TITLE_ROW)

    def _write_filters(self):
        parts = self.filters.summary_parts()
        if not parts:
            return
        cell = self.sheet.cell(
            row=FILTER_ROW, column=1, value=f"Filters Applied: {', '.join(parts)}"
        )
        cell.font = FILTER_FONT
        self._merge_full_width(FILTER_ROW)

    def _write_header(self):
        for col_idx, (title, width) in enumerate(COLUMNS, start=1):
            cell = self.sheet.cell(row=HEADER_ROW, column=col_idx, value=title)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = HEADER_ALIGNMENT
            cell.border = HEADER_BORDER
            self.sheet.column_dimensions[get_column_letter(col_idx)].width = width

    def add_record(self, record: ReceiptRecord, image: Optional[ImageFetchResult] = None) -> int:
        """Append one receipt row and embed its image when one was fetched.

        Returns the sheet row number used.
        """
        if self._finalized:
            raise RuntimeError("Workbook already finalized; cannot add more receipts")

        row = self._next_row
        values = (
            record.store_name or "",
            format_currency(record.amount),
            format_date(record.receipt_date),
            record.category or "",
            record.description or "",
            IMAGE_ATTACHED if record.image_id else NO_IMAGE,
        )
        for col_idx, value in enumerate(values, start=1):
            cell = self.sheet.cell(row=row, column=col_idx, value=value)
            cell.alignment = DATA_ALIGNMENT
            cell.border = DATA_BORDER

        if record.image_id and isinstance(image, ImagePresent):
            self._embed_image(row, record, image)

        with money_context():
            self._total += coerce_amount(record.amount)
        self._record_count += 1
        self._next_row += 1
        return row

    def _embed_image(self, row: int, record: ReceiptRecord, image: ImagePresent):
        try:
            picture = SheetImage(BytesIO(_sheet_ready_bytes(image.content)))
        except Exception as e:
            # Undecodable bytes degrade to the placeholder text, like a failed download
            logger.warning(
                f"Failed to process image for receipt {record.id}: {e}",
                extra={"record_id": record.id, "image_id": record.image_id},
            )
            return

        picture.width = IMAGE_WIDTH
        picture.height = IMAGE_HEIGHT
        self.sheet.add_image(picture, f"{get_column_letter(IMAGE_COLUMN)}{row}")
        self.sheet.row_dimensions[row].height = IMAGE_ROW_HEIGHT
        self._images_embedded += 1

    def finalize(self) -> int:
        """Write the summary row and widen narrow columns. Returns the summary row number."""
        if self._finalized:
            return self._next_row

        row = self._next_row
        values = (
            "TOTAL:",
            format_currency(self._total),
            f"{self._record_count} receipts",
            "",
            "",
            f"{self._images_embedded} images",
        )
        for col_idx, value in enumerate(values, start=1):
            cell = self.sheet.cell(row=row, column=col_idx, value=value)
            cell.font = SUMMARY_FONT
            cell.fill = SUMMARY_FILL

        for col_idx in range(1, IMAGE_COLUMN):
            dimension = self.sheet.column_dimensions[get_column_letter(col_idx)]
            dimension.width = max(dimension.width or 0, MIN_TEXT_COLUMN_WIDTH)

        self._finalized = True
        return row

    def save(self, path: Union[str, Path]):
        """Finalize (if needed) and write the workbook to ``path``."""
        self.finalize()
        self.workbook.save(str(path))


def _sheet_ready_bytes(content: bytes) -> bytes:
    """Fully decode ``content`` and return bytes openpyxl can write.

    Truncated or corrupt images raise here rather than later in ``save``.
    """
    with PILImage.open(BytesIO(content)) as decoded:
        decoded.load()
        if (decoded.format or "").lower() in NATIVE_IMAGE_FORMATS:
            return content
        converted = decoded if decoded.mode in PNG_MODES else decoded.convert("RGBA")
        buffer = BytesIO()
        converted.save(buffer, format="PNG")
        return buffer.getvalue()
