from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Decimal internally, plain number on the wire
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ReconciliationStatus(str, Enum):
    MATCHED = "MATCHED"
    MATCHED_WITH_TOLERANCE = "MATCHED_WITH_TOLERANCE"
    MISMATCH = "MISMATCH"
    MISSING_IN_2B = "MISSING_IN_2B"
    MISSING_IN_PURCHASE = "MISSING_IN_PURCHASE"

    @property
    def is_matched(self) -> bool:
        return self in (ReconciliationStatus.MATCHED, ReconciliationStatus.MATCHED_WITH_TOLERANCE)


class MatchStrategy(str, Enum):
    EXACT = "EXACT"
    FUZZY_INVOICE = "FUZZY_INVOICE"
    INVOICE_ONLY = "INVOICE_ONLY"
    NUMERIC = "NUMERIC"


class ReconciliationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    supplier_gstin: str
    invoice_no: str
    status: ReconciliationStatus
    purchase_tax: Amount = Decimal("0.00")
    gstr2b_tax: Amount = Decimal("0.00")
    itc_at_risk: Amount = Field(default=Decimal("0.00"), ge=0)
    remarks: str = ""
    invoice_month: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}$")
    match_strategy: Optional[MatchStrategy] = None
    matched_gstin: Optional[str] = None
    matched_invoice_no: Optional[str] = None


class ReconciliationRunSummary(BaseModel):
    period: str = "N/A"
    total_invoices: int = 0
    matched_count: int = 0
    mismatch_count: int = 0
    missing_count: int = 0
    itc_at_risk: Amount = Decimal("0.00")
