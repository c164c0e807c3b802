import logging
import re
from dataclasses import dataclass
from typing import List

from fastapi import APIRouter, File, Response, UploadFile

from gstr2b_recon.core.pdf import build_risk_pdf
from gstr2b_recon.core.reconciliation import reconcile
from gstr2b_recon.core.reporting import (
    build_action_report,
    build_detailed_report,
    build_upload_response,
)
from gstr2b_recon.core.workbook import XLSX_MEDIA_TYPE, build_ca_workbook, build_mismatch_workbook
from gstr2b_recon.ingest.gstr2b import ParsedGstr2B, parse_gstr2b
from gstr2b_recon.ingest.purchase import ParsedPurchaseRegister, parse_purchase_register
from gstr2b_recon.schemas.reconciliation import ReconciliationResult
from gstr2b_recon.schemas.report import ActionReport, DetailedReport, RejectedRows, UploadResponse

router = APIRouter(prefix="/reconcile")
logger = logging.getLogger(__name__)


@dataclass
class ReconciliationRun:
    purchase: ParsedPurchaseRegister
    gstr2b: ParsedGstr2B
    results: List[ReconciliationResult]

    @property
    def rejected(self) -> RejectedRows:
        return RejectedRows(purchase=self.purchase.rejected, gstr2b=self.gstr2b.rejected)


async def _run(purchase_file: UploadFile, gstr2b_file: UploadFile) -> ReconciliationRun:
    purchase = parse_purchase_register(await purchase_file.read(), purchase_file.filename)
    gstr2b = parse_gstr2b(await gstr2b_file.read(), gstr2b_file.filename)

    logger.info(
        f"Reconciling {len(purchase.records)} purchase invoices "
        f"against {len(gstr2b.records)} GSTR-2B invoices"
    )
    # Use AUTHORITATIVE RECONCILIATION ENGINE
    results = reconcile(purchase.records, gstr2b.records)
    return ReconciliationRun(purchase=purchase, gstr2b=gstr2b, results=results)


def _upload_summary(run: ReconciliationRun) -> UploadResponse:
    return build_upload_response(run.purchase.records, run.gstr2b.records, run.results, run.rejected)


def _action_report(run: ReconciliationRun) -> ActionReport:
    return build_action_report(run.results, len(run.purchase.records), len(run.gstr2b.records))


def _attachment_name(prefix: str, period: str, extension: str) -> str:
    safe_period = re.sub(r"[^A-Za-z0-9-]+", "_", period)
    return f"{prefix}_{safe_period}.{extension}"


@router.post("/upload", response_model=UploadResponse)
async def upload_and_reconcile(
    purchase_file: UploadFile = File(...),
    gstr2b_file: UploadFile = File(...),
):
    run = await _run(purchase_file, gstr2b_file)
    return _upload_summary(run)


@router.post("/detailed-report", response_model=DetailedReport)
async def detailed_report(
    purchase_file: UploadFile = File(...),
    gstr2b_file: UploadFile = File(...),
):
    run = await _run(purchase_file, gstr2b_file)
    return build_detailed_report(run.results)


@router.post("/generate-report", response_model=ActionReport)
async def generate_report(
    purchase_file: UploadFile = File(...),
    gstr2b_file: UploadFile = File(...),
):
    run = await _run(purchase_file, gstr2b_file)
    return _action_report(run)


@router.post("/download-report")
async def download_report(
    purchase_file: UploadFile = File(...),
    gstr2b_file: UploadFile = File(...),
):
    run = await _run(purchase_file, gstr2b_file)
    upload = _upload_summary(run)
    content = build_ca_workbook(run.results, upload, _action_report(run))
    filename = _attachment_name("GSTR2B_Reconciliation", upload.run.period, "xlsx")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/download-mismatches")
async def download_mismatches(
    purchase_file: UploadFile = File(...),
    gstr2b_file: UploadFile = File(...),
):
    run = await _run(purchase_file, gstr2b_file)
    content = build_mismatch_workbook(run.results)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=GSTR2B_Mismatches.xlsx"},
    )


@router.post("/download-report/pdf")
async def download_report_pdf(
    purchase_file: UploadFile = File(...),
    gstr2b_file: UploadFile = File(...),
):
    run = await _run(purchase_file, gstr2b_file)
    upload = _upload_summary(run)
    pdf_bytes = build_risk_pdf(upload, _action_report(run))
    filename = _attachment_name("GSTR2B_Risk_Report", upload.run.period, "pdf")
    logger.info(f"PDF risk report generated: {filename}")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
