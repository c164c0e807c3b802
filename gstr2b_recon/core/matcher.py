import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from gstr2b_recon.core.config import settings
from gstr2b_recon.core.indexer import Gstr2BIndex, IndexedRecord
from gstr2b_recon.core.normalizer import (
    fold_confusables,
    normalize_gstin,
    normalize_invoice_number,
    numeric_suffix,
    strip_boilerplate,
)
from gstr2b_recon.schemas.invoice import PurchaseInvoiceRecord
from gstr2b_recon.schemas.reconciliation import MatchStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchOutcome:
    entry: IndexedRecord
    strategy: MatchStrategy


def closest_by_tax(candidates: Sequence[IndexedRecord], target: Decimal) -> Optional[IndexedRecord]:
    """Smallest absolute tax difference wins; ties go to the earlier record."""
    if not candidates:
        return None
    return min(candidates, key=lambda c: (abs(c.tax - target), c.position))


def is_invoice_fuzzy_match(left: str, right: str) -> bool:
    if left == right:
        return True
    if fold_confusables(left) == fold_confusables(right):
        return True
    return strip_boilerplate(left) == strip_boilerplate(right)


def is_date_close(left: Optional[date], right: Optional[date], days: int) -> bool:
    if left is None or right is None:
        return False
    return abs((left - right).days) <= days


def find_best_match(
    purchase: PurchaseInvoiceRecord,
    index: Gstr2BIndex,
    purchase_tax: Decimal,
    date_window_days: Optional[int] = None,
) -> Optional[MatchOutcome]:
    """
    Locate the GSTR-2B record corresponding to one purchase line.

    Strategies run from strictest to loosest and the first one that yields
    any candidate decides the match:

    1. EXACT: same GSTIN and invoice key, tax-closest candidate.
    2. FUZZY_INVOICE: same GSTIN, invoice equal after re-folding or after
       stripping series decorations, dated within the window. First
       qualifying record in statement order.
    3. INVOICE_ONLY: invoice key alone, tax-closest candidate.
    4. NUMERIC: digits of the invoice number alone, tax-closest candidate.
    """
    if date_window_days is None:
        date_window_days = settings.FUZZY_DATE_WINDOW_DAYS

    gstin_key = normalize_gstin(purchase.supplier_gstin)
    invoice_key = normalize_invoice_number(purchase.invoice_no)

    candidate = closest_by_tax(index.exact(gstin_key + "|" + invoice_key), purchase_tax)
    if candidate is not None:
        return MatchOutcome(candidate, MatchStrategy.EXACT)

    for entry in index.same_supplier(gstin_key):
        if is_invoice_fuzzy_match(invoice_key, entry.invoice_key) and is_date_close(
            purchase.invoice_date, entry.record.invoice_date, date_window_days
        ):
            return MatchOutcome(entry, MatchStrategy.FUZZY_INVOICE)

    candidate = closest_by_tax(index.invoice_only(invoice_key), purchase_tax)
    if candidate is not None:
        return MatchOutcome(candidate, MatchStrategy.INVOICE_ONLY)

    candidate = closest_by_tax(index.numeric(numeric_suffix(purchase.invoice_no)), purchase_tax)
    if candidate is not None:
        return MatchOutcome(candidate, MatchStrategy.NUMERIC)

    logger.debug(f"No GSTR-2B candidate for {purchase.supplier_gstin} / {purchase.invoice_no}")
    return None
