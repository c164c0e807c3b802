from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from gstr2b_recon.schemas.invoice import RejectedRow
from gstr2b_recon.schemas.reconciliation import Amount, ReconciliationResult, ReconciliationRunSummary
from gstr2b_recon.schemas.supplier import SupplierSummary


class RejectedRows(BaseModel):
    purchase: List[RejectedRow] = []
    gstr2b: List[RejectedRow] = []


# Upload summary

class UploadOverview(BaseModel):
    total_invoices_in_2b: int = 0
    total_invoices_in_purchase: int = 0
    matched_invoices: int = 0
    unmatched_invoices: int = 0
    total_itc_available_in_2b: Amount = Decimal("0.00")
    total_itc_claimed_in_purchase: Amount = Decimal("0.00")
    itc_at_risk: Amount = Decimal("0.00")
    compliance_rate: float = 0.0


class UploadResponse(BaseModel):
    purchase_count: int
    gstr2b_count: int
    total_results: int
    matched: int = 0
    mismatch: int = 0
    missing_in_2b: int = 0
    missing_in_purchase: int = 0
    itc_at_risk: Amount = Decimal("0.00")
    status_breakdown: Dict[str, int] = {}
    all_mismatches: List[ReconciliationResult] = []
    missing_in_purchase_list: List[ReconciliationResult] = []
    missing_in_2b_list: List[ReconciliationResult] = []
    matched_items: List[ReconciliationResult] = []
    summary: UploadOverview
    run: ReconciliationRunSummary
    rejected_rows: RejectedRows = Field(default_factory=RejectedRows)


# Detailed mismatch report

class MismatchDetail(BaseModel):
    supplier_gstin: str
    invoice_no: str
    invoice_month: Optional[str] = None
    status: str
    purchase_tax: Amount
    gstr2b_tax: Amount
    tax_difference: Amount
    itc_at_risk: Amount
    action_required: str
    priority: str
    remarks: str = ""


class MonthRisk(BaseModel):
    month: str
    count: int = 0
    total_risk: Amount = Decimal("0.00")


class DetailedReport(BaseModel):
    total_mismatches: int = 0
    total_itc_at_risk: Amount = Decimal("0.00")
    mismatches_by_action: Dict[str, List[MismatchDetail]] = {}
    all_mismatches: List[MismatchDetail] = []
    month_wise_summary: List[MonthRisk] = []


# Action report

class ActionItem(BaseModel):
    action: str
    priority: str
    supplier_gstin: str
    invoice_no: str
    invoice_month: Optional[str] = None
    tax_amount: Optional[Amount] = None
    purchase_tax: Optional[Amount] = None
    gstr2b_tax: Optional[Amount] = None
    reason: str = ""


class MonthlyAnalysis(BaseModel):
    month: str
    total_invoices: int = 0
    total_tax: Amount = Decimal("0.00")
    itc_claimed: Amount = Decimal("0.00")
    itc_at_risk: Amount = Decimal("0.00")


class MissingInvoice(BaseModel):
    supplier_gstin: str
    invoice_no: str
    invoice_month: Optional[str] = None
    tax_amount: Amount


class ActionReportSummary(BaseModel):
    total_invoices: int = 0
    matched_invoices: int = 0
    compliance_score: float = 100.0
    itc_available: Amount = Decimal("0.00")
    itc_claimed: Amount = Decimal("0.00")
    itc_at_risk: Amount = Decimal("0.00")
    itc_unclaimed: Amount = Decimal("0.00")


class ActionReport(BaseModel):
    summary: ActionReportSummary
    status_breakdown: Dict[str, int] = {}
    action_items: List[ActionItem] = []
    supplier_analysis: List[SupplierSummary] = []
    monthly_analysis: List[MonthlyAnalysis] = []
    top_missing_by_value: List[MissingInvoice] = []
    purchase_invoice_count: int = 0
    gstr2b_invoice_count: int = 0
