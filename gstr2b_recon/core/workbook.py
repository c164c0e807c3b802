import io
import logging
from typing import Iterable, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.worksheet.worksheet import Worksheet

from gstr2b_recon.core.exceptions import ReportRenderingError
from gstr2b_recon.schemas.reconciliation import ReconciliationResult, ReconciliationStatus
from gstr2b_recon.schemas.report import ActionReport, UploadResponse

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F3864", end_color="1F3864", fill_type="solid")

STATUS_FILLS = {
    ReconciliationStatus.MATCHED: PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"),
    ReconciliationStatus.MATCHED_WITH_TOLERANCE: PatternFill(start_color="E2EFDA", end_color="E2EFDA", fill_type="solid"),
    ReconciliationStatus.MISMATCH: PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid"),
    ReconciliationStatus.MISSING_IN_2B: PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid"),
    ReconciliationStatus.MISSING_IN_PURCHASE: PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid"),
}

RESULT_COLUMNS = [
    "Supplier GSTIN",
    "Invoice No",
    "Invoice Month",
    "Status",
    "Purchase Tax",
    "GSTR-2B Tax",
    "ITC at Risk",
    "Match Strategy",
    "Remarks",
]


def _write_table(ws: Worksheet, headers: Sequence[str], rows: Iterable[Sequence]) -> None:
    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
    for row in rows:
        ws.append(list(row))
    for idx, header in enumerate(headers, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = max(14, len(header) + 4)
    ws.freeze_panes = "A2"


def _result_row(r: ReconciliationResult) -> List:
    return [
        r.supplier_gstin,
        r.invoice_no,
        r.invoice_month or "",
        r.status.value,
        float(r.purchase_tax),
        float(r.gstr2b_tax),
        float(r.itc_at_risk),
        r.match_strategy.value if r.match_strategy else "",
        r.remarks,
    ]


def _write_results(ws: Worksheet, results: Sequence[ReconciliationResult]) -> None:
    _write_table(ws, RESULT_COLUMNS, (_result_row(r) for r in results))
    status_col = RESULT_COLUMNS.index("Status") + 1
    for row_idx, r in enumerate(results, start=2):
        ws.cell(row=row_idx, column=status_col).fill = STATUS_FILLS[r.status]


def _to_bytes(wb: Workbook, name: str) -> bytes:
    buffer = io.BytesIO()
    try:
        wb.save(buffer)
    except Exception as e:
        logger.error(f"Workbook build failed for {name}: {e}")
        raise ReportRenderingError(f"{name} could not be generated") from e
    return buffer.getvalue()


def build_ca_workbook(
    results: Sequence[ReconciliationResult],
    upload: UploadResponse,
    action: ActionReport,
) -> bytes:
    """
    Renders the full reconciliation as a workbook for the auditor.

    Sheets: Executive Summary, Reconciliation Details, Missing Invoices,
    Matched Invoices, Monthly Summary, Supplier Summary.
    """
    wb = Workbook()

    ws = wb.active
    ws.title = "Executive Summary"
    overview = upload.summary
    _write_table(ws, ["Metric", "Value"], [
        ["Period", upload.run.period],
        ["Total Invoices in GSTR-2B", overview.total_invoices_in_2b],
        ["Total Invoices in Purchase Register", overview.total_invoices_in_purchase],
        ["Matched Invoices", overview.matched_invoices],
        ["Unmatched Invoices", overview.unmatched_invoices],
        ["Mismatches", upload.mismatch],
        ["Missing in GSTR-2B", upload.missing_in_2b],
        ["Missing in Purchase Register", upload.missing_in_purchase],
        ["ITC Available in GSTR-2B", float(overview.total_itc_available_in_2b)],
        ["ITC Claimed in Purchase Register", float(overview.total_itc_claimed_in_purchase)],
        ["ITC at Risk", float(overview.itc_at_risk)],
        ["ITC Unclaimed", float(action.summary.itc_unclaimed)],
        ["Compliance Rate (%)", overview.compliance_rate],
    ])
    ws.column_dimensions["A"].width = 38

    _write_results(wb.create_sheet("Reconciliation Details"), results)

    missing = [r for r in results if r.status in (ReconciliationStatus.MISSING_IN_2B, ReconciliationStatus.MISSING_IN_PURCHASE)]
    _write_results(wb.create_sheet("Missing Invoices"), missing)

    _write_results(wb.create_sheet("Matched Invoices"), upload.matched_items)

    _write_table(
        wb.create_sheet("Monthly Summary"),
        ["Month", "Invoices", "GSTR-2B Tax", "ITC Claimed", "ITC at Risk"],
        (
            [m.month, m.total_invoices, float(m.total_tax), float(m.itc_claimed), float(m.itc_at_risk)]
            for m in action.monthly_analysis
        ),
    )

    _write_table(
        wb.create_sheet("Supplier Summary"),
        ["Supplier GSTIN", "Invoices", "Matched", "Mismatch", "Missing in 2B",
         "Missing in Purchase", "Purchase Tax", "GSTR-2B Tax", "ITC at Risk", "Risk Level"],
        (
            [s.supplier_gstin, s.total_invoices, s.matched_count, s.mismatch_count,
             s.missing_in_2b_count, s.missing_in_purchase_count, float(s.purchase_tax),
             float(s.gstr2b_tax), float(s.itc_at_risk), s.risk_level.value]
            for s in action.supplier_analysis
        ),
    )

    logger.info(f"CA workbook rendered with {len(results)} results")
    return _to_bytes(wb, "CA workbook")


def build_mismatch_workbook(results: Sequence[ReconciliationResult]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Mismatches"
    _write_results(ws, [r for r in results if not r.status.is_matched])
    return _to_bytes(wb, "Mismatch workbook")
