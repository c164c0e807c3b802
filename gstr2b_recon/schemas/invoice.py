from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PurchaseInvoiceRecord(BaseModel):
    """One line of the taxpayer's purchase register."""

    model_config = ConfigDict(frozen=True)

    supplier_gstin: str = ""
    invoice_no: str = ""
    invoice_date: date
    igst: Decimal = Field(default=Decimal("0"), ge=0)
    cgst: Decimal = Field(default=Decimal("0"), ge=0)
    sgst: Decimal = Field(default=Decimal("0"), ge=0)
    particulars: Optional[str] = None
    gross_total: Decimal = Decimal("0")

    @field_validator('supplier_gstin', 'invoice_no', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator('igst', 'cgst', 'sgst', 'gross_total', mode='before')
    @classmethod
    def none_to_zero(cls, v):
        return Decimal("0") if v is None else v


class GovernmentInvoiceRecord(BaseModel):
    """One supplier-reported invoice from the GSTR-2B statement."""

    model_config = ConfigDict(frozen=True)

    supplier_gstin: str = ""
    invoice_no: str = ""
    invoice_date: Optional[date] = None
    igst: Decimal = Field(default=Decimal("0"), ge=0)
    cgst: Decimal = Field(default=Decimal("0"), ge=0)
    sgst: Decimal = Field(default=Decimal("0"), ge=0)
    taxable_value: Optional[Decimal] = None
    invoice_value: Optional[Decimal] = None
    legal_name: Optional[str] = None

    @field_validator('supplier_gstin', 'invoice_no', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator('igst', 'cgst', 'sgst', mode='before')
    @classmethod
    def none_to_zero(cls, v):
        return Decimal("0") if v is None else v

    @model_validator(mode='after')
    def derive_invoice_value(self):
        # invoice value = taxable value + total tax when the statement omits it
        if self.invoice_value is None:
            taxable = self.taxable_value or Decimal("0")
            object.__setattr__(self, 'invoice_value', taxable + self.igst + self.cgst + self.sgst)
        return self


class RejectedRow(BaseModel):
    """A ledger row refused during ingestion, with its 1-based sheet row number."""

    row_number: int
    reason: str
