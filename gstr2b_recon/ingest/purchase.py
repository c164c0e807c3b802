import logging
from typing import List

from pydantic import BaseModel, ValidationError

from gstr2b_recon.core.config import settings
from gstr2b_recon.core.exceptions import SheetFormatError
from gstr2b_recon.ingest.sheet import (
    CGST,
    IGST,
    INVOICE_DATE,
    INVOICE_NO,
    SGST,
    SUPPLIER_GSTIN,
    CellError,
    base_rules,
    cell_at,
    cell_text,
    find_header_row,
    is_blank_row,
    is_total_row,
    map_columns,
    parse_amount,
    parse_date,
    read_rows,
    rejection_reason,
    require_columns,
)
from gstr2b_recon.schemas.invoice import PurchaseInvoiceRecord, RejectedRow

logger = logging.getLogger(__name__)

PARTICULARS = "PARTICULARS"
GROSS_TOTAL = "GROSS_TOTAL"

TOTAL_MARKERS = ("grand total", "total")


class ParsedPurchaseRegister(BaseModel):
    records: List[PurchaseInvoiceRecord] = []
    rejected: List[RejectedRow] = []


def _is_gross_total(header: str) -> bool:
    if any(tax in header for tax in ("IGST", "CGST", "SGST", "TAX")):
        return False
    return "GROSS" in header or "TOTAL" in header


def parse_purchase_register(content: bytes, filename: str) -> ParsedPurchaseRegister:
    """
    Parse a purchase register export into purchase invoice records.

    Rows without an invoice number, blank rows and total rows are skipped.
    Rows without a usable invoice date or with non-numeric amounts are
    rejected and reported back with their sheet row number.
    """
    rows = read_rows(content, filename)
    header_idx = find_header_row(rows, "Purchase")

    rules = base_rules()
    rules[PARTICULARS] = lambda h: "PARTICULAR" in h or "NAME" in h
    rules[GROSS_TOTAL] = _is_gross_total
    columns = map_columns(rows[header_idx], rules)
    require_columns(columns, "purchase")

    data_rows = rows[header_idx + 1:]
    if len(data_rows) > settings.MAX_UPLOAD_ROWS:
        raise SheetFormatError(f"Purchase file exceeds the limit of {settings.MAX_UPLOAD_ROWS} rows")

    parsed = ParsedPurchaseRegister()
    for offset, row in enumerate(data_rows):
        row_number = header_idx + offset + 2
        if is_blank_row(row):
            continue
        raw_invoice = cell_at(row, columns, INVOICE_NO)
        if is_total_row(row, raw_invoice, TOTAL_MARKERS) or not cell_text(raw_invoice):
            continue

        invoice_date = parse_date(cell_at(row, columns, INVOICE_DATE))
        if invoice_date is None:
            logger.warning(f"Purchase row {row_number}: invalid invoice date for {cell_text(raw_invoice)}")
            parsed.rejected.append(RejectedRow(row_number=row_number, reason="Missing or invalid invoice date"))
            continue

        try:
            record = PurchaseInvoiceRecord(
                supplier_gstin=cell_text(cell_at(row, columns, SUPPLIER_GSTIN)),
                invoice_no=cell_text(raw_invoice),
                invoice_date=invoice_date,
                igst=parse_amount(cell_at(row, columns, IGST), "igst"),
                cgst=parse_amount(cell_at(row, columns, CGST), "cgst"),
                sgst=parse_amount(cell_at(row, columns, SGST), "sgst"),
                particulars=cell_text(cell_at(row, columns, PARTICULARS)) or None,
                gross_total=parse_amount(cell_at(row, columns, GROSS_TOTAL), "gross_total"),
            )
        except (CellError, ValidationError) as e:
            logger.warning(f"Purchase row {row_number}: {e}")
            parsed.rejected.append(RejectedRow(row_number=row_number, reason=rejection_reason(e)))
            continue

        parsed.records.append(record)

    logger.info(f"Purchase parser loaded {len(parsed.records)} invoices, rejected {len(parsed.rejected)}")
    return parsed

