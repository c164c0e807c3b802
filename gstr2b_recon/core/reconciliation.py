import logging
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Set

from gstr2b_recon.core.amounts import ZERO, round_amount, tax_total
from gstr2b_recon.core.config import settings
from gstr2b_recon.core.exceptions import ReconciliationIntegrityError
from gstr2b_recon.core.indexer import Gstr2BIndex, IndexedRecord
from gstr2b_recon.core.matcher import MatchOutcome, find_best_match
from gstr2b_recon.core.normalizer import normalize_gstin
from gstr2b_recon.schemas.invoice import GovernmentInvoiceRecord, PurchaseInvoiceRecord
from gstr2b_recon.schemas.reconciliation import ReconciliationResult, ReconciliationStatus

# AUTHORITATIVE RECONCILIATION ENGINE – DO NOT DUPLICATE
# Every status, tax delta and ITC-at-risk figure in the service comes from here.

logger = logging.getLogger(__name__)


def invoice_month(value: Optional[date]) -> Optional[str]:
    return value.strftime("%Y-%m") if value else None


def build_remarks(purchase: PurchaseInvoiceRecord, match: GovernmentInvoiceRecord, reason: str) -> str:
    parts = [reason]
    if normalize_gstin(purchase.supplier_gstin) != normalize_gstin(match.supplier_gstin):
        parts.append("GSTIN mismatch")
    parts.append(f"Purchase GSTIN: {purchase.supplier_gstin}")
    parts.append(f"2B GSTIN: {match.supplier_gstin}")
    parts.append(f"Purchase Inv: {purchase.invoice_no}")
    parts.append(f"2B Inv: {match.invoice_no}")
    return " | ".join(parts)


def classify(purchase_tax: Decimal, gstr2b_tax: Decimal, tolerance: Decimal) -> ReconciliationStatus:
    if purchase_tax == gstr2b_tax:
        return ReconciliationStatus.MATCHED
    if abs(purchase_tax - gstr2b_tax) <= tolerance:
        return ReconciliationStatus.MATCHED_WITH_TOLERANCE
    return ReconciliationStatus.MISMATCH


def _matched_result(
    purchase: PurchaseInvoiceRecord,
    purchase_tax: Decimal,
    outcome: MatchOutcome,
    tolerance: Decimal,
) -> ReconciliationResult:
    match = outcome.entry.record
    gstr2b_tax = outcome.entry.tax
    status = classify(purchase_tax, gstr2b_tax, tolerance)

    if status == ReconciliationStatus.MATCHED:
        reason = "Matched"
        at_risk = ZERO
    else:
        reason = f"Tax amount differs by {round_amount(abs(purchase_tax - gstr2b_tax))}"
        at_risk = ZERO if status == ReconciliationStatus.MATCHED_WITH_TOLERANCE else max(ZERO, purchase_tax - gstr2b_tax)

    return ReconciliationResult(
        supplier_gstin=purchase.supplier_gstin,
        invoice_no=purchase.invoice_no,
        status=status,
        purchase_tax=purchase_tax,
        gstr2b_tax=gstr2b_tax,
        itc_at_risk=round_amount(at_risk),
        remarks=build_remarks(purchase, match, reason),
        invoice_month=invoice_month(purchase.invoice_date or match.invoice_date),
        match_strategy=outcome.strategy,
        matched_gstin=match.supplier_gstin,
        matched_invoice_no=match.invoice_no,
    )


def _missing_in_2b(purchase: PurchaseInvoiceRecord, purchase_tax: Decimal) -> ReconciliationResult:
    return ReconciliationResult(
        supplier_gstin=purchase.supplier_gstin,
        invoice_no=purchase.invoice_no,
        status=ReconciliationStatus.MISSING_IN_2B,
        purchase_tax=purchase_tax,
        gstr2b_tax=ZERO,
        itc_at_risk=purchase_tax,
        remarks="No matching invoice found in GSTR-2B",
        invoice_month=invoice_month(purchase.invoice_date),
    )


def _missing_in_purchase(entry: IndexedRecord) -> ReconciliationResult:
    record = entry.record
    return ReconciliationResult(
        supplier_gstin=record.supplier_gstin,
        invoice_no=record.invoice_no,
        status=ReconciliationStatus.MISSING_IN_PURCHASE,
        purchase_tax=ZERO,
        gstr2b_tax=entry.tax,
        itc_at_risk=entry.tax,
        remarks="Invoice present in GSTR-2B but not in purchase register",
        invoice_month=invoice_month(record.invoice_date),
    )


def reconcile(
    purchases: Sequence[PurchaseInvoiceRecord],
    gstr2b_records: Sequence[GovernmentInvoiceRecord],
    *,
    tolerance: Optional[Decimal] = None,
    date_window_days: Optional[int] = None,
) -> List[ReconciliationResult]:
    """
    Reconcile the purchase register against the GSTR-2B statement.

    Results follow purchase order first (one per purchase line), then
    statement order for every GSTR-2B record that no purchase line matched.
    Phase 2 only starts once every purchase line has been matched, since it
    reads the completed claimed set.

    Distinct GSTR-2B records can share one exact key (e.g. "INV001" and
    "1NV0O1" from the same supplier). Claiming the key through one of them
    does not account for the others: each is still reported as missing in
    the purchase register, with a warning for the key collision.

    Several purchase lines may resolve to the same GSTR-2B record through
    the looser strategies; that is reported in the log, not prevented.
    """
    if tolerance is None:
        tolerance = settings.TAX_TOLERANCE

    index = Gstr2BIndex(gstr2b_records)
    claimed_keys: Set[str] = set()
    claimed_positions: Set[int] = set()
    results: List[ReconciliationResult] = []

    # Phase 1: purchase-driven
    for purchase in purchases:
        purchase_tax = tax_total(purchase)
        outcome = find_best_match(purchase, index, purchase_tax, date_window_days)

        if outcome is None:
            results.append(_missing_in_2b(purchase, purchase_tax))
            continue

        entry = outcome.entry
        if entry.position in claimed_positions:
            logger.warning(
                f"GSTR-2B invoice {entry.record.invoice_no} ({entry.record.supplier_gstin}) "
                f"matched again by purchase invoice {purchase.invoice_no} via {outcome.strategy.value}"
            )
        claimed_positions.add(entry.position)
        claimed_keys.add(entry.exact_key)
        results.append(_matched_result(purchase, purchase_tax, outcome, tolerance))

    # Phase 2: statement-driven
    unclaimed: List[IndexedRecord] = []
    for entry in index.entries:
        if entry.position in claimed_positions:
            continue
        if entry.exact_key in claimed_keys:
            logger.warning(
                f"GSTR-2B invoice {entry.record.invoice_no} ({entry.record.supplier_gstin}) "
                f"shares claimed key {entry.exact_key} with a matched record; reporting it as missing in purchase"
            )
        unclaimed.append(entry)
    results.extend(_missing_in_purchase(e) for e in unclaimed)

    check_run(purchases, index, claimed_positions, unclaimed, results)

    counts = Counter(r.status.value for r in results)
    logger.info(
        f"Reconciliation COMPLETED. Purchases: {len(purchases)}, GSTR-2B: {len(index)}, "
        f"Results: {len(results)}, Breakdown: {dict(counts)}"
    )
    return results


def check_run(
    purchases: Sequence[PurchaseInvoiceRecord],
    index: Gstr2BIndex,
    claimed_positions: Set[int],
    unclaimed: Sequence[IndexedRecord],
    results: Sequence[ReconciliationResult],
) -> None:
    """
    Every GSTR-2B record is either referenced by a matched result or
    reported once as missing in purchase, never both and never neither.
    """
    emitted = [e.position for e in unclaimed]
    if len(set(emitted)) != len(emitted):
        raise ReconciliationIntegrityError("A GSTR-2B record was reported as missing in purchase more than once")

    both = claimed_positions.intersection(emitted)
    if both:
        raise ReconciliationIntegrityError(
            f"GSTR-2B records at positions {sorted(both)} were both matched and reported missing"
        )

    dropped = set(range(len(index))) - claimed_positions - set(emitted)
    if dropped:
        raise ReconciliationIntegrityError(
            f"GSTR-2B records at positions {sorted(dropped)} produced no reconciliation result"
        )

    expected = len(purchases) + len(unclaimed)
    if len(results) != expected:
        raise ReconciliationIntegrityError(
            f"Expected {expected} results ({len(purchases)} purchase + {len(unclaimed)} unclaimed), got {len(results)}"
        )
    purchase_side = sum(1 for r in results if r.status != ReconciliationStatus.MISSING_IN_PURCHASE)
    if purchase_side != len(purchases):
        raise ReconciliationIntegrityError(
            f"{len(purchases)} purchase invoices produced {purchase_side} purchase-side results"
        )
