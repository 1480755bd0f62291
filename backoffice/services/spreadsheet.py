"""
Rate card <-> .xlsx workbook.

Sheet layout shared by export, template and preview import::

    row 1   Müşteri Adı:        <customer>
    row 2   Başlangıç Tarihi:   <dd.mm.yyyy or ->
    row 3   Bitiş Tarihi:       <dd.mm.yyyy or ->
    row 4   (blank)
    row 5   Kategori | Hizmet Adı | Birim Fiyat
    row 6+  one row per (category, service); a category without services
            gets a row with blank service and price

The upload import reads a flat sheet instead: header in row 1, one service per
row, columns located by header text.
"""
import re
from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Tuple
from zipfile import BadZipFile

import structlog
from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import ValidationError
from ..schemas.ratecards import RateCard, RateCardCategoryInput, RateCardServiceInput, RateCardSheet


logger = structlog.get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_TITLE = "Rate Card"

LABEL_CUSTOMER = "Müşteri Adı:"
LABEL_START = "Başlangıç Tarihi:"
LABEL_END = "Bitiş Tarihi:"
COL_CATEGORY = "Kategori"
COL_SERVICE = "Hizmet Adı"
COL_PRICE = "Birim Fiyat"
HEADER = [COL_CATEGORY, COL_SERVICE, COL_PRICE]
HEADER_ROW = 5
COLUMN_WIDTHS = {"A": 20, "B": 30, "C": 15}

TEMPLATE_FILENAME = "rate-card-template.xlsx"
TEMPLATE_ROWS = [
    ("Ekip & Ekipman", "Kameraman", "5000"),
    ("Ekip & Ekipman", "Ses Teknisyeni", "3000"),
    ("Post Prodüksiyon", "Video Kurgu", "4000"),
    ("Prodüksiyon Harcama", "Ulaşım", "2000"),
]

_TR_ASCII = str.maketrans({
    "ç": "c", "Ç": "C", "ğ": "g", "Ğ": "G",
    "ı": "i", "İ": "I", "ö": "o", "Ö": "O",
    "ş": "s", "Ş": "S", "ü": "u", "Ü": "U",
})

_DATE_FORMATS = ("%d.%m.%Y", "%Y-%m-%d", "%d/%m/%Y")


# ---------- text helpers ----------
def to_ascii(text: str) -> str:
    """Transliterate Turkish letters, then drop anything else outside ASCII."""
    return text.translate(_TR_ASCII).encode("ascii", "ignore").decode("ascii")


def export_filename(customer_name: str, ext: str = "xlsx") -> str:
    safe = to_ascii(customer_name).replace('"', "").strip() or "export"
    return f"rate-card-{safe}.{ext}"


def format_price(price: Decimal) -> str:
    text = format(Decimal(price).normalize(), "f")
    return "0" if text in ("-0", "") else text


def format_date(value: Optional[date]) -> str:
    return value.strftime("%d.%m.%Y") if value else "-"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _cell(row: Sequence[Any], idx: Optional[int]) -> Any:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


# ---------- coercion ----------
def parse_price(value: Any) -> Decimal:
    """Coerce a price cell to Decimal.

    Numbers pass through. Text is normalised for thousands/decimal separators
    ("1.250,00 ₺" -> 1250.00, "1,250.5" -> 1250.5) and then stripped of
    everything except digits, "." and "-". Raises ValueError for empty,
    non-numeric or negative prices.
    """
    if isinstance(value, bool):
        raise ValueError("price must be a number")
    if isinstance(value, (int, float, Decimal)):
        price = Decimal(str(value))
    else:
        text = _text(value)
        if not text:
            raise ValueError("price is empty")
        if "," in text and "." in text:
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        elif "," in text:
            if text.count(",") == 1 and re.search(r",\d{1,2}(?!\d)", text):
                text = text.replace(",", ".")
            else:
                text = text.replace(",", "")
        elif text.count(".") > 1:
            text = text.replace(".", "")
        cleaned = re.sub(r"[^0-9.\-]", "", text)
        try:
            price = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"price {value!r} is not a number") from None
    if not price.is_finite():
        raise ValueError(f"price {value!r} is not a number")
    if price < 0:
        raise ValueError("price must not be negative")
    return price


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _text(value)
    if not text or text == "-":
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError(f"unrecognised date {text!r}") from None


def parse_days(value: Any) -> Optional[int]:
    text = _text(value)
    if not text:
        return None
    try:
        days = int(Decimal(text.replace(",", ".")))
    except InvalidOperation:
        raise ValueError(f"days {text!r} is not a number") from None
    if days < 1:
        raise ValueError("days must be at least 1")
    return days


# ---------- workbook I/O ----------
def _write_workbook(rows: List[List[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    for r, values in enumerate(rows, start=1):
        for c, value in enumerate(values, start=1):
            cell = ws.cell(row=r, column=c)
            cell.value = value
            if r > HEADER_ROW and c == 3:
                cell.number_format = "@"
    for letter, width in COLUMN_WIDTHS.items():
        ws.column_dimensions[letter].width = width
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _read_rows(data: bytes) -> List[Tuple[Any, ...]]:
    try:
        wb = load_workbook(BytesIO(data), data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
        raise ValidationError("File is not a readable .xlsx workbook", {"reason": str(e)}) from e
    ws = wb.worksheets[0]
    return [tuple(r) for r in ws.iter_rows(values_only=True)]


def _layout_rows(customer_name: str, start: Any, end: Any, lines: List[List[Any]]) -> List[List[Any]]:
    return [
        [LABEL_CUSTOMER, customer_name],
        [LABEL_START, start],
        [LABEL_END, end],
        [],
        list(HEADER),
        *lines,
    ]


# ---------- export ----------
def export_rate_card(card: RateCard) -> Tuple[bytes, str]:
    lines: List[List[Any]] = []
    for category in card.categories:
        if not category.services:
            # a bare category row keeps empty categories in the export
            lines.append([category.name, None, None])
        for service in category.services:
            lines.append([category.name, service.name, format_price(service.price)])
    rows = _layout_rows(card.customer_name, format_date(card.start_date), format_date(card.end_date), lines)
    return _write_workbook(rows), export_filename(card.customer_name)


def build_template(today: Optional[date] = None) -> Tuple[bytes, str]:
    today = today or date.today()
    try:
        next_year = today.replace(year=today.year + 1)
    except ValueError:
        next_year = today.replace(year=today.year + 1, day=28)
    rows = _layout_rows("Test Müşteri", today.isoformat(), next_year.isoformat(), [list(r) for r in TEMPLATE_ROWS])
    return _write_workbook(rows), TEMPLATE_FILENAME


# ---------- preview import ----------
def parse_preview(data: bytes) -> RateCardSheet:
    """Read a workbook laid out like an export.

    All row problems are collected and raised together as one
    ValidationError whose details list ``{"row", "column", "message"}``.
    """
    rows = _read_rows(data)
    header = rows[HEADER_ROW - 1] if len(rows) >= HEADER_ROW else ()
    positions: Dict[str, int] = {}
    for idx, value in enumerate(header):
        name = _text(value)
        if name in HEADER and name not in positions:
            positions[name] = idx
    missing = [name for name in HEADER if name not in positions]
    if missing:
        raise ValidationError(
            f"Missing columns: {', '.join(missing)}",
            {"missing": missing, "header_row": HEADER_ROW},
        )

    errors: List[Dict[str, Any]] = []
    meta: Dict[str, Optional[date]] = {}
    for row_no, field in ((2, "start_date"), (3, "end_date")):
        raw = _cell(rows[row_no - 1], 1)
        try:
            meta[field] = parse_date(raw)
        except ValueError as e:
            errors.append({"row": row_no, "column": "B", "message": str(e)})
            meta[field] = None

    groups: "OrderedDict[str, List[RateCardServiceInput]]" = OrderedDict()
    for row_no, row in enumerate(rows[HEADER_ROW:], start=HEADER_ROW + 1):
        category = _text(_cell(row, positions[COL_CATEGORY]))
        service = _text(_cell(row, positions[COL_SERVICE]))
        raw_price = _cell(row, positions[COL_PRICE])
        if not service and not _text(raw_price):
            if category:
                groups.setdefault(category, [])
            continue
        row_errors = []
        if not category:
            row_errors.append({"row": row_no, "column": COL_CATEGORY, "message": "category is empty"})
        if not service:
            row_errors.append({"row": row_no, "column": COL_SERVICE, "message": "service name is empty"})
        try:
            price = parse_price(raw_price)
        except ValueError as e:
            row_errors.append({"row": row_no, "column": COL_PRICE, "message": str(e)})
        if row_errors:
            errors.extend(row_errors)
            continue
        groups.setdefault(category, []).append(RateCardServiceInput(name=service, price=price))

    if errors:
        raise ValidationError("Workbook has invalid rows", errors)
    if not groups:
        raise ValidationError("Workbook contains no categories")

    customer = _text(_cell(rows[0], 1)) or None
    logger.info("ratecard_sheet_parsed", mode="preview", categories=len(groups))
    return RateCardSheet(
        customer_name=customer,
        start_date=meta["start_date"],
        end_date=meta["end_date"],
        categories=[RateCardCategoryInput(name=name, services=services) for name, services in groups.items()],
    )


# ---------- upload (positional) import ----------
def _header_key(value: Any) -> str:
    return to_ascii(_text(value)).lower()


def _find_column(keys: List[str], match) -> Optional[int]:
    for idx, key in enumerate(keys):
        if match(key):
            return idx
    return None


def parse_upload(data: bytes) -> List[RateCardSheet]:
    """Read a flat sheet holding services for one or more customers.

    The first row is the header. Columns are matched on header text
    (müşteri, kategori, hizmet, fiyat; optional birim and gün). A row with a
    blank customer is skipped, a blank category continues the customer's
    previous category, and a row naming only a category opens that category.
    """
    rows = _read_rows(data)
    if len(rows) < 2:
        raise ValidationError("Workbook needs a header row and at least one data row")
    keys = [_header_key(v) for v in rows[0]]
    cols = {
        "customer": _find_column(keys, lambda k: "musteri" in k),
        "category": _find_column(keys, lambda k: "kategori" in k),
        "service": _find_column(keys, lambda k: "hizmet" in k),
        "price": _find_column(keys, lambda k: "fiyat" in k),
    }
    missing = [name for name, idx in cols.items() if idx is None]
    if missing:
        raise ValidationError(f"Required columns not found: {', '.join(missing)}", {"missing": missing})
    cols["unit"] = _find_column(keys, lambda k: "birim" in k and "fiyat" not in k)
    cols["days"] = _find_column(keys, lambda k: "gun" in k)

    customers: "OrderedDict[str, OrderedDict[str, List[RateCardServiceInput]]]" = OrderedDict()
    last_category: Dict[str, str] = {}
    errors: List[Dict[str, Any]] = []
    for row_no, row in enumerate(rows[1:], start=2):
        customer = _text(_cell(row, cols["customer"]))
        if not customer:
            continue
        categories = customers.setdefault(customer, OrderedDict())
        category = _text(_cell(row, cols["category"]))
        if category:
            last_category[customer] = category
        else:
            category = last_category.get(customer, "")
        service = _text(_cell(row, cols["service"]))
        raw_price = _cell(row, cols["price"])

        if not service and not _text(raw_price):
            if category:
                categories.setdefault(category, [])
            continue
        if not category:
            errors.append({"row": row_no, "column": "kategori", "message": "no category for this service"})
            continue
        if not service:
            errors.append({"row": row_no, "column": "hizmet", "message": "price given without a service"})
            continue
        try:
            price = parse_price(raw_price)
        except ValueError as e:
            errors.append({"row": row_no, "column": "fiyat", "message": str(e)})
            continue
        try:
            days = parse_days(_cell(row, cols["days"]))
        except ValueError as e:
            errors.append({"row": row_no, "column": "gun", "message": str(e)})
            continue
        unit = _text(_cell(row, cols["unit"])) or None
        categories.setdefault(category, []).append(
            RateCardServiceInput(name=service, price=price, unit=unit, days=days)
        )

    if errors:
        raise ValidationError("Workbook has invalid rows", errors)
    if not customers:
        raise ValidationError("Workbook contains no customers")

    logger.info("ratecard_sheet_parsed", mode="upload", customers=len(customers))
    return [
        RateCardSheet(
            customer_name=customer,
            categories=[RateCardCategoryInput(name=name, services=services) for name, services in cats.items()],
        )
        for customer, cats in customers.items()
    ]
