from decimal import Decimal
from typing import Dict, List, Sequence

from gstr2b_recon.core.amounts import round_amount
from gstr2b_recon.core.normalizer import normalize_gstin
from gstr2b_recon.schemas.reconciliation import ReconciliationResult, ReconciliationStatus
from gstr2b_recon.schemas.supplier import SupplierRiskLevel, SupplierSummary

RISK_ORDER = {SupplierRiskLevel.HIGH: 0, SupplierRiskLevel.MEDIUM: 1, SupplierRiskLevel.LOW: 2}


def aggregate_supplier_risk(results: Sequence[ReconciliationResult]) -> List[SupplierSummary]:
    """
    Aggregates existing reconciliation results by supplier GSTIN.
    DOES NOT perform any new reconciliation logic.
    """
    supplier_map: Dict[str, Dict] = {}

    for r in results:
        gstin = normalize_gstin(r.supplier_gstin)
        data = supplier_map.setdefault(gstin, {
            "display_gstin": r.supplier_gstin,
            "total_invoices": 0,
            "matched_count": 0,
            "mismatch_count": 0,
            "missing_in_2b_count": 0,
            "missing_in_purchase_count": 0,
            "purchase_tax": Decimal("0"),
            "gstr2b_tax": Decimal("0"),
            "itc_at_risk": Decimal("0"),
        })

        data["total_invoices"] += 1
        data["purchase_tax"] += r.purchase_tax
        data["gstr2b_tax"] += r.gstr2b_tax
        data["itc_at_risk"] += r.itc_at_risk

        if r.status.is_matched:
            data["matched_count"] += 1
        elif r.status == ReconciliationStatus.MISMATCH:
            data["mismatch_count"] += 1
        elif r.status == ReconciliationStatus.MISSING_IN_2B:
            data["missing_in_2b_count"] += 1
        elif r.status == ReconciliationStatus.MISSING_IN_PURCHASE:
            data["missing_in_purchase_count"] += 1

    summaries = []
    for gstin, data in supplier_map.items():
        if data["mismatch_count"] > 0 or data["missing_in_2b_count"] > 0:
            risk_level = SupplierRiskLevel.HIGH
        elif data["matched_count"] < data["total_invoices"]:
            risk_level = SupplierRiskLevel.MEDIUM
        else:
            risk_level = SupplierRiskLevel.LOW

        summaries.append(SupplierSummary(
            supplier_gstin=data["display_gstin"],
            total_invoices=data["total_invoices"],
            matched_count=data["matched_count"],
            mismatch_count=data["mismatch_count"],
            missing_in_2b_count=data["missing_in_2b_count"],
            missing_in_purchase_count=data["missing_in_purchase_count"],
            purchase_tax=round_amount(data["purchase_tax"]),
            gstr2b_tax=round_amount(data["gstr2b_tax"]),
            itc_at_risk=round_amount(data["itc_at_risk"]),
            risk_level=risk_level
        ))

    return sorted(summaries, key=lambda x: (RISK_ORDER[x.risk_level], -x.itc_at_risk))
