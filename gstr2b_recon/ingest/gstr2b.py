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
from gstr2b_recon.schemas.invoice import GovernmentInvoiceRecord, RejectedRow

logger = logging.getLogger(__name__)

TAXABLE_VALUE = "TAXABLE_VALUE"
INVOICE_VALUE = "INVOICE_VALUE"
LEGAL_NAME = "LEGAL_NAME"

TOTAL_MARKERS = ("total", "grand total")


class ParsedGstr2B(BaseModel):
    records: List[GovernmentInvoiceRecord] = []
    rejected: List[RejectedRow] = []


def parse_gstr2b(content: bytes, filename: str) -> ParsedGstr2B:
    """
    Parse a GSTR-2B export into government invoice records.

    Zero-tax rows are kept. The statement date is optional; a row whose
    date cannot be read keeps the invoice with no date.
    """
    rows = read_rows(content, filename)
    header_idx = find_header_row(rows, "GSTR-2B")

    rules = base_rules()
    rules[TAXABLE_VALUE] = lambda h: "TAXABLE" in h and "VALUE" in h
    rules[INVOICE_VALUE] = lambda h: "INVOICE" in h and "VALUE" in h
    rules[LEGAL_NAME] = lambda h: "PARTICULARS" in h or "LEGAL" in h or "NAME" in h
    columns = map_columns(rows[header_idx], rules)
    require_columns(columns, "GSTR-2B")

    data_rows = rows[header_idx + 1:]
    if len(data_rows) > settings.MAX_UPLOAD_ROWS:
        raise SheetFormatError(f"GSTR-2B file exceeds the limit of {settings.MAX_UPLOAD_ROWS} rows")

    parsed = ParsedGstr2B()
    for offset, row in enumerate(data_rows):
        row_number = header_idx + offset + 2
        if is_blank_row(row):
            continue
        raw_invoice = cell_at(row, columns, INVOICE_NO)
        if is_total_row(row, raw_invoice, TOTAL_MARKERS) or not cell_text(raw_invoice):
            continue

        try:
            taxable = cell_at(row, columns, TAXABLE_VALUE)
            invoice_value = cell_at(row, columns, INVOICE_VALUE)
            record = GovernmentInvoiceRecord(
                supplier_gstin=cell_text(cell_at(row, columns, SUPPLIER_GSTIN)),
                invoice_no=cell_text(raw_invoice),
                invoice_date=parse_date(cell_at(row, columns, INVOICE_DATE)),
                igst=parse_amount(cell_at(row, columns, IGST), "igst"),
                cgst=parse_amount(cell_at(row, columns, CGST), "cgst"),
                sgst=parse_amount(cell_at(row, columns, SGST), "sgst"),
                taxable_value=parse_amount(taxable, "taxable_value") if cell_text(taxable) else None,
                invoice_value=parse_amount(invoice_value, "invoice_value") if cell_text(invoice_value) else None,
                legal_name=cell_text(cell_at(row, columns, LEGAL_NAME)) or None,
            )
        except (CellError, ValidationError) as e:
            logger.warning(f"GSTR-2B row {row_number}: {e}")
            parsed.rejected.append(RejectedRow(row_number=row_number, reason=rejection_reason(e)))
            continue

        parsed.records.append(record)

    logger.info(f"GSTR-2B parser loaded {len(parsed.records)} invoices, rejected {len(parsed.rejected)}")
    return parsed
