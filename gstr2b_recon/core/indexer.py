"""
Lookup snapshot over the GSTR-2B statement.

Built once per reconciliation run in a single pass. Each record is reachable
under every projection at the same time, so a later matching strategy can
still find it when a stricter key missed. The mappings are frozen after
construction.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, List, Mapping, Sequence, Tuple

from gstr2b_recon.core.amounts import tax_total
from gstr2b_recon.core.normalizer import normalize_gstin, normalize_invoice_number, numeric_suffix
from gstr2b_recon.schemas.invoice import GovernmentInvoiceRecord


def exact_key(gstin: str, invoice_no: str) -> str:
    return normalize_gstin(gstin) + "|" + normalize_invoice_number(invoice_no)


@dataclass(frozen=True)
class IndexedRecord:
    position: int
    record: GovernmentInvoiceRecord
    gstin_key: str
    invoice_key: str
    exact_key: str
    tax: Decimal


Bucket = Tuple[IndexedRecord, ...]


def _freeze(buckets: Dict[str, List[IndexedRecord]]) -> Mapping[str, Bucket]:
    return MappingProxyType({k: tuple(v) for k, v in buckets.items()})


class Gstr2BIndex:
    def __init__(self, records: Sequence[GovernmentInvoiceRecord]):
        by_exact: Dict[str, List[IndexedRecord]] = defaultdict(list)
        by_invoice: Dict[str, List[IndexedRecord]] = defaultdict(list)
        by_numeric: Dict[str, List[IndexedRecord]] = defaultdict(list)
        by_gstin: Dict[str, List[IndexedRecord]] = defaultdict(list)
        entries: List[IndexedRecord] = []

        for position, record in enumerate(records):
            gstin_key = normalize_gstin(record.supplier_gstin)
            invoice_key = normalize_invoice_number(record.invoice_no)
            entry = IndexedRecord(
                position=position,
                record=record,
                gstin_key=gstin_key,
                invoice_key=invoice_key,
                exact_key=gstin_key + "|" + invoice_key,
                tax=tax_total(record),
            )
            entries.append(entry)

            by_exact[entry.exact_key].append(entry)
            by_gstin[gstin_key].append(entry)
            # an empty projection carries no identity, so it is never a key
            if invoice_key:
                by_invoice[invoice_key].append(entry)
            numeric_key = numeric_suffix(record.invoice_no)
            if numeric_key:
                by_numeric[numeric_key].append(entry)

        self.entries: Bucket = tuple(entries)
        self.by_exact = _freeze(by_exact)
        self.by_invoice = _freeze(by_invoice)
        self.by_numeric = _freeze(by_numeric)
        self.by_gstin = _freeze(by_gstin)

    def __len__(self) -> int:
        return len(self.entries)

    def exact(self, key: str) -> Bucket:
        return self.by_exact.get(key, ())

    def invoice_only(self, key: str) -> Bucket:
        return self.by_invoice.get(key, ()) if key else ()

    def numeric(self, key: str) -> Bucket:
        return self.by_numeric.get(key, ()) if key else ()

    def same_supplier(self, gstin_key: str) -> Bucket:
        return self.by_gstin.get(gstin_key, ())
