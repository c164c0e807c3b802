from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from gstr2b_recon.schemas.invoice import GovernmentInvoiceRecord, PurchaseInvoiceRecord

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def round_amount(value: Optional[Decimal]) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def sum_amounts(values: Iterable[Optional[Decimal]]) -> Decimal:
    """Exact sum, rounded once at the end, so addition order never matters."""
    return round_amount(sum((v for v in values if v is not None), Decimal("0")))


def tax_total(record: Union[PurchaseInvoiceRecord, GovernmentInvoiceRecord]) -> Decimal:
    return sum_amounts((record.igst, record.cgst, record.sgst))
