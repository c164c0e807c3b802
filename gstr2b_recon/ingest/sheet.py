"""
Spreadsheet plumbing shared by the purchase register and GSTR-2B parsers.

Both ledgers arrive as exported sheets with title rows above the header,
free-form column names and total rows at the bottom. This module turns the
raw upload into rows of cell values, locates the header, maps columns and
coerces individual cells.
"""

import csv
import io
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Sequence

from openpyxl import load_workbook
from pydantic import ValidationError

from gstr2b_recon.core.config import settings
from gstr2b_recon.core.exceptions import SheetFormatError

logger = logging.getLogger(__name__)

INVOICE_NO = "INVOICE_NO"
SUPPLIER_GSTIN = "SUPPLIER_GSTIN"
INVOICE_DATE = "INVOICE_DATE"
IGST = "IGST"
CGST = "CGST"
SGST = "SGST"

REQUIRED_COLUMNS = (INVOICE_NO, SUPPLIER_GSTIN, INVOICE_DATE, IGST, CGST, SGST)

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d-%b-%Y", "%Y/%m/%d")
ISO_DATETIME = re.compile(r"\d{4}-\d{2}-\d{2}T")

Row = Sequence[Any]
ColumnRule = Callable[[str], bool]


class CellError(ValueError):
    pass


def read_rows(content: bytes, filename: str) -> List[List[Any]]:
    """Read the first sheet of an .xlsx workbook or a .csv file into rows."""
    name = (filename or "").lower()
    if name.endswith(".xlsx") or name.endswith(".xlsm"):
        return _read_xlsx(content)
    if name.endswith(".csv"):
        return _read_csv(content)
    raise SheetFormatError(f"Unsupported file type for '{filename}'. Upload .xlsx or .csv")


def _read_xlsx(content: bytes) -> List[List[Any]]:
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise SheetFormatError(f"Could not open workbook: {e}") from e
    try:
        ws = wb.worksheets[0]
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _read_csv(content: bytes) -> List[List[Any]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise SheetFormatError("Invalid encoding. CSV files must be UTF-8") from e
    return [list(row) for row in csv.reader(io.StringIO(text))]


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def is_blank_row(row: Row) -> bool:
    return all(cell_text(c) == "" for c in row)


def is_invoice_no_header(text: str) -> bool:
    return "INVOICE" in text and ("NO" in text or "NUM" in text) and "DATE" not in text


def _header_hits(text: str) -> int:
    hits = 0
    if is_invoice_no_header(text):
        hits += 1
    if "SUPPLIER" in text and "GST" in text:
        hits += 1
    if "INVOICE" in text and "DATE" in text:
        hits += 1
    return hits


def find_header_row(rows: Sequence[Row], label: str) -> int:
    for i, row in enumerate(rows[: settings.HEADER_SCAN_ROWS]):
        hits = sum(_header_hits(cell_text(c).upper()) for c in row)
        if hits >= 2:
            logger.info(f"{label} header found at row {i + 1}")
            return i
    raise SheetFormatError(f"{label} header row not found in the first {settings.HEADER_SCAN_ROWS} rows")


def map_columns(header: Row, rules: Dict[str, ColumnRule]) -> Dict[str, int]:
    """First column satisfying each rule wins."""
    columns: Dict[str, int] = {}
    for idx, cell in enumerate(header):
        text = cell_text(cell).upper()
        if not text:
            continue
        for key, rule in rules.items():
            if key not in columns and rule(text):
                columns[key] = idx
    return columns


def require_columns(columns: Dict[str, int], label: str) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise SheetFormatError(f"Missing required columns in {label} file: {', '.join(missing)}")


def base_rules() -> Dict[str, ColumnRule]:
    return {
        INVOICE_NO: is_invoice_no_header,
        SUPPLIER_GSTIN: lambda h: "SUPPLIER" in h and "GST" in h,
        INVOICE_DATE: lambda h: "INVOICE" in h and "DATE" in h,
        IGST: lambda h: "IGST" in h,
        CGST: lambda h: "CGST" in h,
        SGST: lambda h: "SGST" in h,
    }


def cell_at(row: Row, columns: Dict[str, int], key: str) -> Any:
    idx = columns.get(key)
    if idx is None or idx >= len(row):
        return None
    return row[idx]


_AMOUNT_CLEANUP = re.compile(r"[,\s₹]|^RS\.?", re.IGNORECASE)


def parse_amount(value: Any, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    text = _AMOUNT_CLEANUP.sub("", str(value).strip())
    if text in ("", "-"):
        return Decimal("0")
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise CellError(f"{field} must be numeric, got '{value}'") from e


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = cell_text(value)
    if not text:
        return None
    # "2025-09-01 00:00:00" and ISO "2025-09-01T10:00:00" carry a time part we ignore
    text = text.split(" ")[0]
    if ISO_DATETIME.match(text):
        text = text[:10]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def is_total_row(row: Row, invoice_value: Any, markers: Sequence[str]) -> bool:
    first = cell_text(row[0]).lower() if row else ""
    invoice = cell_text(invoice_value).lower()
    return first in markers or invoice in markers


def rejection_reason(error: Exception) -> str:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        return f"{field}: {first.get('msg')}"
    return str(error)
