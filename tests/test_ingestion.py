import io
from datetime import date, datetime
from decimal import Decimal

import pytest
from openpyxl import Workbook
from pydantic import ValidationError

from gstr2b_recon.core.exceptions import SheetFormatError
from gstr2b_recon.ingest.gstr2b import parse_gstr2b
from gstr2b_recon.ingest.purchase import parse_purchase_register
from gstr2b_recon.ingest.sheet import parse_amount, parse_date, CellError
from gstr2b_recon.schemas.invoice import GovernmentInvoiceRecord

PURCHASE_CSV = (
    "Acme Traders Purchase Register\n"
    "Period: Sep 2025\n"
    "\n"
    "Date,Particulars,Supplier GSTIN,Invoice No,Invoice Date,Gross Total,IGST,CGST,SGST\n"
    "2025-09-02,Alpha Supplies,29ABCDE1234F1Z5,INV/001,02/09/2025,\"1,118.00\",118.00,,\n"
    "2025-09-03,Beta Metals,27AAAAA0000A1Z5,B-77,2025-09-03,590,,45,45\n"
    "2025-09-04,Gamma Tools,29ABCDE1234F1Z5,G-1,not a date,100,18,,\n"
    "2025-09-05,Delta Paper,29ABCDE1234F1Z5,D-9,05-Sep-2025,100,abc,,\n"
    ",,,,,,,,\n"
    "Grand Total,,,,,1808,136,45,45\n"
)

GSTR2B_CSV = (
    "GSTIN of supplier,Trade/Legal name,Invoice number,Invoice Date,Taxable Value,Integrated Tax,Central Tax,State/UT Tax\n"
)


def csv_bytes(text):
    return text.encode("utf-8")


def test_purchase_csv_parses_records_and_rejections():
    parsed = parse_purchase_register(csv_bytes(PURCHASE_CSV), "register.csv")

    assert [r.invoice_no for r in parsed.records] == ["INV/001", "B-77"]
    first = parsed.records[0]
    assert first.supplier_gstin == "29ABCDE1234F1Z5"
    assert first.invoice_date == date(2025, 9, 2)
    assert first.igst == Decimal("118.00")
    assert first.cgst == Decimal("0")
    assert first.gross_total == Decimal("1118.00")
    assert first.particulars == "Alpha Supplies"

    assert [r.row_number for r in parsed.rejected] == [7, 8]
    assert "date" in parsed.rejected[0].reason.lower()
    assert "igst" in parsed.rejected[1].reason


def test_purchase_csv_with_bom():
    parsed = parse_purchase_register(b"\xef\xbb\xbf" + csv_bytes(PURCHASE_CSV), "register.csv")
    assert len(parsed.records) == 2


def test_unsupported_file_type():
    with pytest.raises(SheetFormatError):
        parse_purchase_register(b"irrelevant", "register.pdf")


def test_missing_header_row():
    with pytest.raises(SheetFormatError, match="header row not found"):
        parse_purchase_register(csv_bytes("a,b,c\n1,2,3\n"), "register.csv")


def test_missing_required_columns():
    content = csv_bytes("Supplier GSTIN,Invoice No,Invoice Date\n29ABCDE1234F1Z5,INV/1,2025-09-01\n")
    with pytest.raises(SheetFormatError, match="IGST"):
        parse_purchase_register(content, "register.csv")


def build_gstr2b_workbook():
    wb = Workbook()
    ws = wb.active
    ws.title = "B2B"
    ws.append(["Goods and Services Tax - GSTR-2B"])
    ws.append([])
    ws.append(["Supplier GSTIN", "Legal Name", "Invoice No", "Invoice Date", "Taxable Value",
               "Invoice Value", "IGST", "CGST", "SGST"])
    ws.append(["29ABCDE1234F1Z5", "Alpha Supplies", "INV/001", datetime(2025, 9, 2), 1000, None, 118, None, None])
    ws.append(["27AAAAA0000A1Z5", "Beta Metals", "B-77", "bad date", 500, 590, 0, 45, 45])
    ws.append(["29ABCDE1234F1Z5", "Zero Rated", "Z-1", "2025-09-10", 100, 100, 0, 0, 0])
    ws.append(["Total", None, None, None, 1600, None, 118, 45, 45])
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def test_gstr2b_xlsx():
    parsed = parse_gstr2b(build_gstr2b_workbook(), "gstr2b.xlsx")

    assert parsed.rejected == []
    assert [r.invoice_no for r in parsed.records] == ["INV/001", "B-77", "Z-1"]

    first, second, zero = parsed.records
    assert first.invoice_date == date(2025, 9, 2)
    assert first.legal_name == "Alpha Supplies"
    assert first.invoice_value == Decimal("1118")
    assert second.invoice_date is None
    assert second.invoice_value == Decimal("590")
    assert zero.igst + zero.cgst + zero.sgst == 0


def test_gstr2b_invoice_value_derived_when_absent():
    record = GovernmentInvoiceRecord(
        supplier_gstin="29ABCDE1234F1Z5", invoice_no="1", taxable_value="1000", igst="118",
    )
    assert record.invoice_value == Decimal("1118")

    given = GovernmentInvoiceRecord(invoice_no="2", igst="18", invoice_value="150")
    assert given.invoice_value == Decimal("150")


def test_gstr2b_record_with_bad_amount_fails_validation():
    with pytest.raises(ValidationError):
        GovernmentInvoiceRecord(supplier_gstin="29ABCDE1234F1Z5", invoice_no="1", igst="abc")


def test_gstr2b_unreadable_workbook():
    with pytest.raises(SheetFormatError):
        parse_gstr2b(b"not a zip", "gstr2b.xlsx")


def test_gstr2b_csv_needs_its_own_columns():
    with pytest.raises(SheetFormatError):
        parse_gstr2b(csv_bytes(GSTR2B_CSV), "gstr2b.csv")


@pytest.mark.parametrize("raw,expected", [
    (None, Decimal("0")),
    ("", Decimal("0")),
    (12, Decimal("12")),
    (12.5, Decimal("12.5")),
    ("1,234.50", Decimal("1234.50")),
    ("Rs. 99", Decimal("99")),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw, "igst") == expected


def test_parse_amount_rejects_text():
    with pytest.raises(CellError):
        parse_amount("twelve", "igst")


@pytest.mark.parametrize("raw", [
    "2025-09-02", "02/09/2025", "02-09-2025", "02-Sep-2025", "2025/09/02", "2025-09-02 00:00:00",
    "2025-09-02T10:00:00",
    datetime(2025, 9, 2, 14, 30), date(2025, 9, 2),
])
def test_parse_date_formats(raw):
    assert parse_date(raw) == date(2025, 9, 2)


@pytest.mark.parametrize("raw", ["15-Oct-2025", "15-OCT-2025"])
def test_parse_date_keeps_month_names_containing_t(raw):
    assert parse_date(raw) == date(2025, 10, 15)


def test_parse_date_invalid():
    assert parse_date("yesterday") is None
    assert parse_date(None) is None
