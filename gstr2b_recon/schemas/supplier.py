from decimal import Decimal
from enum import Enum
from pydantic import BaseModel

from gstr2b_recon.schemas.reconciliation import Amount

class SupplierRiskLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

class SupplierSummary(BaseModel):
    supplier_gstin: str
    total_invoices: int = 0
    matched_count: int = 0
    mismatch_count: int = 0
    missing_in_2b_count: int = 0
    missing_in_purchase_count: int = 0
    purchase_tax: Amount = Decimal("0.00")
    gstr2b_tax: Amount = Decimal("0.00")
    itc_at_risk: Amount = Decimal("0.00")
    risk_level: SupplierRiskLevel = SupplierRiskLevel.LOW
