"""
Report builders over reconciliation results.

These only aggregate what the engine already decided; no status or amount
is recomputed here apart from totals over the input ledgers.
"""

from collections import Counter
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from gstr2b_recon.core.amounts import round_amount, sum_amounts, tax_total
from gstr2b_recon.core.config import settings
from gstr2b_recon.core.normalizer import normalize_gstin
from gstr2b_recon.core.supplier_aggregation import aggregate_supplier_risk
from gstr2b_recon.schemas.invoice import GovernmentInvoiceRecord, PurchaseInvoiceRecord
from gstr2b_recon.schemas.reconciliation import (
    ReconciliationResult,
    ReconciliationRunSummary,
    ReconciliationStatus,
)
from gstr2b_recon.schemas.report import (
    ActionItem,
    ActionReport,
    ActionReportSummary,
    DetailedReport,
    MismatchDetail,
    MissingInvoice,
    MonthlyAnalysis,
    MonthRisk,
    RejectedRows,
    UploadOverview,
    UploadResponse,
)

ACTION_BY_STATUS = {
    ReconciliationStatus.MISSING_IN_PURCHASE: "Add to Purchase Register",
    ReconciliationStatus.MISSING_IN_2B: "Follow up with Supplier",
    ReconciliationStatus.MISMATCH: "Verify Tax Amount",
}

NO_MONTH = "N/A"


def action_for_status(status: ReconciliationStatus) -> str:
    return ACTION_BY_STATUS.get(status, "Review")


def priority_for(amount: Decimal) -> str:
    if amount > settings.HIGH_PRIORITY_THRESHOLD:
        return "HIGH"
    if amount > settings.MEDIUM_PRIORITY_THRESHOLD:
        return "MEDIUM"
    return "LOW"


def period_covered(results: Sequence[ReconciliationResult]) -> str:
    months = sorted(r.invoice_month for r in results if r.invoice_month)
    if not months:
        return NO_MONTH
    return months[0] if months[0] == months[-1] else f"{months[0]} to {months[-1]}"


def status_breakdown(results: Sequence[ReconciliationResult]) -> Dict[str, int]:
    return dict(Counter(r.status.value for r in results))


def compliance_percent(matched: int, denominator: int) -> float:
    if denominator <= 0:
        return 100.0
    return round(matched * 100.0 / denominator, 2)


def summarize_run(results: Sequence[ReconciliationResult]) -> ReconciliationRunSummary:
    counts = Counter(r.status for r in results)
    return ReconciliationRunSummary(
        period=period_covered(results),
        total_invoices=len(results),
        matched_count=counts[ReconciliationStatus.MATCHED] + counts[ReconciliationStatus.MATCHED_WITH_TOLERANCE],
        mismatch_count=counts[ReconciliationStatus.MISMATCH],
        missing_count=counts[ReconciliationStatus.MISSING_IN_2B] + counts[ReconciliationStatus.MISSING_IN_PURCHASE],
        itc_at_risk=sum_amounts(r.itc_at_risk for r in results),
    )


def build_upload_response(
    purchases: Sequence[PurchaseInvoiceRecord],
    gstr2b_records: Sequence[GovernmentInvoiceRecord],
    results: Sequence[ReconciliationResult],
    rejected: Optional[RejectedRows] = None,
) -> UploadResponse:
    matched_items = [r for r in results if r.status.is_matched]
    missing_in_purchase = [r for r in results if r.status == ReconciliationStatus.MISSING_IN_PURCHASE]
    missing_in_2b = [r for r in results if r.status == ReconciliationStatus.MISSING_IN_2B]
    all_mismatches = [r for r in results if not r.status.is_matched]

    all_mismatches.sort(key=lambda r: -r.gstr2b_tax)
    missing_in_purchase.sort(key=lambda r: -r.gstr2b_tax)

    itc_at_risk = sum_amounts(r.itc_at_risk for r in results)
    mismatch_count = sum(1 for r in results if r.status == ReconciliationStatus.MISMATCH)

    overview = UploadOverview(
        total_invoices_in_2b=len(gstr2b_records),
        total_invoices_in_purchase=len(purchases),
        matched_invoices=len(matched_items),
        unmatched_invoices=len(all_mismatches),
        total_itc_available_in_2b=sum_amounts(tax_total(g) for g in gstr2b_records),
        total_itc_claimed_in_purchase=sum_amounts(tax_total(p) for p in purchases),
        itc_at_risk=itc_at_risk,
        compliance_rate=compliance_percent(len(matched_items), max(len(gstr2b_records), len(purchases))),
    )

    return UploadResponse(
        purchase_count=len(purchases),
        gstr2b_count=len(gstr2b_records),
        total_results=len(results),
        matched=len(matched_items),
        mismatch=mismatch_count,
        missing_in_2b=len(missing_in_2b),
        missing_in_purchase=len(missing_in_purchase),
        itc_at_risk=itc_at_risk,
        status_breakdown=status_breakdown(results),
        all_mismatches=all_mismatches,
        missing_in_purchase_list=missing_in_purchase,
        missing_in_2b_list=missing_in_2b,
        matched_items=matched_items,
        summary=overview,
        run=summarize_run(results),
        rejected_rows=rejected or RejectedRows(),
    )


def build_detailed_report(results: Sequence[ReconciliationResult]) -> DetailedReport:
    details: List[MismatchDetail] = []
    for r in results:
        if r.status.is_matched:
            continue
        details.append(MismatchDetail(
            supplier_gstin=r.supplier_gstin,
            invoice_no=r.invoice_no,
            invoice_month=r.invoice_month,
            status=r.status.value,
            purchase_tax=r.purchase_tax,
            gstr2b_tax=r.gstr2b_tax,
            tax_difference=round_amount(abs(r.gstr2b_tax - r.purchase_tax)),
            itc_at_risk=r.itc_at_risk,
            action_required=action_for_status(r.status),
            priority=priority_for(r.itc_at_risk),
            remarks=r.remarks,
        ))

    # stable sort keeps result order among equal risks
    details.sort(key=lambda d: -d.itc_at_risk)

    by_action: Dict[str, List[MismatchDetail]] = {}
    months: Dict[str, MonthRisk] = {}
    for d in details:
        by_action.setdefault(d.action_required, []).append(d)
        month = d.invoice_month or NO_MONTH
        entry = months.setdefault(month, MonthRisk(month=month))
        entry.count += 1
        entry.total_risk = round_amount(entry.total_risk + d.itc_at_risk)

    return DetailedReport(
        total_mismatches=len(details),
        total_itc_at_risk=sum_amounts(d.itc_at_risk for d in details),
        mismatches_by_action=by_action,
        all_mismatches=details,
        month_wise_summary=sorted(months.values(), key=lambda m: m.month),
    )


def build_action_report(
    results: Sequence[ReconciliationResult],
    purchase_count: int = 0,
    gstr2b_count: int = 0,
) -> ActionReport:
    counts = Counter(r.status for r in results)
    matched = counts[ReconciliationStatus.MATCHED] + counts[ReconciliationStatus.MATCHED_WITH_TOLERANCE]

    itc_claimed = sum_amounts(r.purchase_tax for r in results)
    itc_at_risk = sum_amounts(r.itc_at_risk for r in results)
    itc_available = sum_amounts(
        max(r.gstr2b_tax, r.purchase_tax)
        for r in results
        if r.status.is_matched or r.status == ReconciliationStatus.MISSING_IN_PURCHASE
    )

    missing_in_purchase = sorted(
        (r for r in results if r.status == ReconciliationStatus.MISSING_IN_PURCHASE),
        key=lambda r: -r.gstr2b_tax,
    )

    action_items: List[ActionItem] = [
        ActionItem(
            action="ADD_TO_PURCHASE_REGISTER",
            priority="HIGH",
            supplier_gstin=r.supplier_gstin,
            invoice_no=r.invoice_no,
            invoice_month=r.invoice_month,
            tax_amount=r.gstr2b_tax,
            reason="Invoice exists in GSTR-2B but not in purchase register",
        )
        for r in missing_in_purchase
    ]
    action_items.extend(
        ActionItem(
            action="VERIFY_SUPPLIER_GSTIN",
            priority="MEDIUM",
            supplier_gstin=r.supplier_gstin,
            invoice_no=r.invoice_no,
            invoice_month=r.invoice_month,
            purchase_tax=r.purchase_tax,
            gstr2b_tax=r.gstr2b_tax,
            reason=r.remarks,
        )
        for r in results
        if _gstin_differs(r)
    )

    return ActionReport(
        summary=ActionReportSummary(
            total_invoices=len(results),
            matched_invoices=matched,
            compliance_score=compliance_percent(matched, len(results)),
            itc_available=itc_available,
            itc_claimed=itc_claimed,
            itc_at_risk=itc_at_risk,
            itc_unclaimed=round_amount(itc_available - itc_claimed),
        ),
        status_breakdown=status_breakdown(results),
        action_items=action_items,
        supplier_analysis=aggregate_supplier_risk(results),
        monthly_analysis=monthly_analysis(results),
        top_missing_by_value=[
            MissingInvoice(
                supplier_gstin=r.supplier_gstin,
                invoice_no=r.invoice_no,
                invoice_month=r.invoice_month,
                tax_amount=r.gstr2b_tax,
            )
            for r in missing_in_purchase[: settings.TOP_MISSING_LIMIT]
        ],
        purchase_invoice_count=purchase_count,
        gstr2b_invoice_count=gstr2b_count,
    )


def _gstin_differs(r: ReconciliationResult) -> bool:
    return r.matched_gstin is not None and normalize_gstin(r.matched_gstin) != normalize_gstin(r.supplier_gstin)


def monthly_analysis(results: Sequence[ReconciliationResult]) -> List[MonthlyAnalysis]:
    months: Dict[str, MonthlyAnalysis] = {}
    for r in results:
        month = r.invoice_month or NO_MONTH
        entry = months.setdefault(month, MonthlyAnalysis(month=month))
        entry.total_invoices += 1
        entry.total_tax = round_amount(entry.total_tax + r.gstr2b_tax)
        if r.status == ReconciliationStatus.MISSING_IN_PURCHASE:
            entry.itc_at_risk = round_amount(entry.itc_at_risk + r.itc_at_risk)
        else:
            entry.itc_claimed = round_amount(entry.itc_claimed + r.purchase_tax)
    return sorted(months.values(), key=lambda m: m.month)
