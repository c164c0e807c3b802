from datetime import date
from decimal import Decimal

import pytest

from gstr2b_recon.core.exceptions import ReconciliationIntegrityError
from gstr2b_recon.core.indexer import Gstr2BIndex, exact_key
from gstr2b_recon.core.reconciliation import check_run, reconcile
from gstr2b_recon.schemas.invoice import GovernmentInvoiceRecord, PurchaseInvoiceRecord
from gstr2b_recon.schemas.reconciliation import MatchStrategy, ReconciliationStatus

GSTIN = "29ABCDE1234F1Z5"
OTHER_GSTIN = "27AAAAA0000A1Z5"


def purchase(invoice_no, igst="0", gstin=GSTIN, on=date(2025, 9, 10), cgst="0", sgst="0"):
    return PurchaseInvoiceRecord(
        supplier_gstin=gstin,
        invoice_no=invoice_no,
        invoice_date=on,
        igst=Decimal(igst),
        cgst=Decimal(cgst),
        sgst=Decimal(sgst),
    )


def gstr2b(invoice_no, igst="0", gstin=GSTIN, on=date(2025, 9, 10), cgst="0", sgst="0"):
    return GovernmentInvoiceRecord(
        supplier_gstin=gstin,
        invoice_no=invoice_no,
        invoice_date=on,
        igst=Decimal(igst),
        cgst=Decimal(cgst),
        sgst=Decimal(sgst),
    )


def test_exact_match():
    results = reconcile([purchase("INV/001", "118.00")], [gstr2b("INV/001", "118.00")])

    assert len(results) == 1
    r = results[0]
    assert r.status == ReconciliationStatus.MATCHED
    assert r.itc_at_risk == Decimal("0.00")
    assert r.match_strategy == MatchStrategy.EXACT
    assert r.invoice_month == "2025-09"


def test_within_tolerance():
    results = reconcile([purchase("INV/001", "100.00")], [gstr2b("INV/001", "100.90")])

    assert results[0].status == ReconciliationStatus.MATCHED_WITH_TOLERANCE
    assert results[0].itc_at_risk == Decimal("0.00")


def test_tolerance_boundary_is_inclusive():
    results = reconcile([purchase("INV/001", "100.00")], [gstr2b("INV/001", "101.00")])
    assert results[0].status == ReconciliationStatus.MATCHED_WITH_TOLERANCE


def test_custom_tolerance():
    results = reconcile(
        [purchase("INV/001", "100.00")],
        [gstr2b("INV/001", "100.90")],
        tolerance=Decimal("0.50"),
    )
    assert results[0].status == ReconciliationStatus.MISMATCH


def test_under_claim_mismatch_has_no_risk():
    results = reconcile([purchase("INV/001", "100.00")], [gstr2b("INV/001", "150.00")])

    assert results[0].status == ReconciliationStatus.MISMATCH
    assert results[0].itc_at_risk == Decimal("0.00")


def test_over_claim_mismatch_risk_is_excess():
    results = reconcile([purchase("INV/001", "150.00")], [gstr2b("INV/001", "100.00")])

    assert results[0].status == ReconciliationStatus.MISMATCH
    assert results[0].itc_at_risk == Decimal("50.00")
    assert "Tax amount differs by 50.00" in results[0].remarks


def test_missing_in_2b():
    results = reconcile([purchase("INV/777", "90.00")], [])

    assert len(results) == 1
    r = results[0]
    assert r.status == ReconciliationStatus.MISSING_IN_2B
    assert r.gstr2b_tax == Decimal("0.00")
    assert r.itc_at_risk == Decimal("90.00")
    assert r.match_strategy is None


def test_missing_in_purchase():
    results = reconcile([], [gstr2b("INV/888", "45.50")])

    assert len(results) == 1
    r = results[0]
    assert r.status == ReconciliationStatus.MISSING_IN_PURCHASE
    assert r.purchase_tax == Decimal("0.00")
    assert r.itc_at_risk == Decimal("45.50")


def test_empty_inputs():
    assert reconcile([], []) == []


def test_confusable_invoice_numbers_match_exactly():
    results = reconcile([purchase("1NV0O1", "10")], [gstr2b("INV001", "10")])

    assert results[0].status == ReconciliationStatus.MATCHED
    assert results[0].match_strategy == MatchStrategy.EXACT


def test_series_decorations_match_exactly():
    results = reconcile([purchase("FY25-26/123", "10")], [gstr2b("123/25-26", "10")])
    assert results[0].match_strategy == MatchStrategy.EXACT


def test_tax_is_summed_then_rounded_once():
    results = reconcile([purchase("A1", igst="5.005")], [])
    assert results[0].purchase_tax == Decimal("5.01")

    split = reconcile([purchase("A1", cgst="2.5025", sgst="2.5025")], [])
    assert split[0].purchase_tax == Decimal("5.01")


def test_exact_candidates_pick_closest_tax():
    statement = [gstr2b("INV/5", "80.00"), gstr2b("INV/5", "99.00"), gstr2b("INV/5", "120.00")]
    results = reconcile([purchase("INV/5", "100.00")], statement)

    assert results[0].gstr2b_tax == Decimal("99.00")
    assert results[0].status == ReconciliationStatus.MATCHED_WITH_TOLERANCE


def test_tax_ties_go_to_earlier_record():
    statement = [gstr2b("INV/5", "90.00", on=date(2025, 9, 1)), gstr2b("INV/5", "110.00", on=date(2025, 8, 1))]
    results = reconcile([purchase("INV/5", "100.00", on=date(2025, 9, 1))], statement)

    assert results[0].gstr2b_tax == Decimal("90.00")


def test_duplicate_statement_record_is_not_dropped():
    statement = [gstr2b("INV/5", "100.00"), gstr2b("INV/5", "100.00")]
    results = reconcile([purchase("INV/5", "100.00")], statement)

    assert [r.status for r in results] == [
        ReconciliationStatus.MATCHED,
        ReconciliationStatus.MISSING_IN_PURCHASE,
    ]


def test_colliding_statement_keys_are_all_accounted_for(caplog):
    # "INV001" and "1NV0O1" normalize to the same exact key
    statement = [gstr2b("INV001", "100"), gstr2b("1NV0O1", "999")]

    with caplog.at_level("WARNING"):
        results = reconcile([purchase("INV001", "100")], statement)

    assert len(results) == 2
    matched, missing = results
    assert matched.status == ReconciliationStatus.MATCHED
    assert matched.matched_invoice_no == "INV001"
    assert missing.status == ReconciliationStatus.MISSING_IN_PURCHASE
    assert missing.invoice_no == "1NV0O1"
    assert missing.itc_at_risk == Decimal("999.00")
    assert "shares claimed key" in caplog.text


def test_check_run_rejects_a_dropped_statement_record():
    statement = [gstr2b("INV001", "100"), gstr2b("1NV0O1", "999")]
    index = Gstr2BIndex(statement)
    matched = reconcile([purchase("INV001", "100")], statement[:1])

    with pytest.raises(ReconciliationIntegrityError, match="produced no reconciliation result"):
        check_run([purchase("INV001", "100")], index, {0}, [], matched)


def test_check_run_rejects_a_record_both_matched_and_missing():
    statement = [gstr2b("INV001", "100")]
    index = Gstr2BIndex(statement)

    with pytest.raises(ReconciliationIntegrityError, match="both matched and reported missing"):
        check_run([], index, {0}, list(index.entries), [])


def test_fuzzy_invoice_within_date_window():
    # doubled series prefix only goes away on the second strip
    statement = [gstr2b("FY25-26/5", "50", on=date(2025, 9, 20))]
    results = reconcile([purchase("FY25-26/FY25-26/5", "50", on=date(2025, 9, 1))], statement)

    assert results[0].status == ReconciliationStatus.MATCHED
    assert results[0].match_strategy == MatchStrategy.FUZZY_INVOICE


def test_fuzzy_invoice_outside_date_window():
    statement = [gstr2b("FY25-26/5", "50", on=date(2025, 11, 20))]
    results = reconcile([purchase("FY25-26/FY25-26/5", "50", on=date(2025, 9, 1))], statement)

    assert [r.status for r in results] == [
        ReconciliationStatus.MISSING_IN_2B,
        ReconciliationStatus.MISSING_IN_PURCHASE,
    ]


def test_fuzzy_invoice_needs_both_dates():
    statement = [gstr2b("FY25-26/5", "50", on=None)]
    results = reconcile([purchase("FY25-26/FY25-26/5", "50")], statement)

    assert results[0].status == ReconciliationStatus.MISSING_IN_2B


def test_invoice_only_match_flags_gstin_mismatch():
    results = reconcile(
        [purchase("INV/42", "18", gstin=GSTIN)],
        [gstr2b("INV/42", "18", gstin=OTHER_GSTIN)],
    )

    r = results[0]
    assert r.match_strategy == MatchStrategy.INVOICE_ONLY
    assert r.status == ReconciliationStatus.MATCHED
    assert "GSTIN mismatch" in r.remarks
    assert r.matched_gstin == OTHER_GSTIN
    assert r.supplier_gstin == GSTIN


def test_numeric_match():
    results = reconcile(
        [purchase("BILL-0042", "18", gstin=GSTIN)],
        [gstr2b("INV0042", "18", gstin=OTHER_GSTIN)],
    )

    assert results[0].match_strategy == MatchStrategy.NUMERIC
    assert results[0].status == ReconciliationStatus.MATCHED


def test_invoice_without_digits_does_not_match_on_numeric_key():
    results = reconcile(
        [purchase("ABC", "18", gstin=GSTIN)],
        [gstr2b("XYZ", "18", gstin=OTHER_GSTIN)],
    )

    assert [r.status for r in results] == [
        ReconciliationStatus.MISSING_IN_2B,
        ReconciliationStatus.MISSING_IN_PURCHASE,
    ]


def test_stricter_strategy_wins():
    statement = [
        gstr2b("INV/7", "10", gstin=OTHER_GSTIN),
        gstr2b("INV/7", "500", gstin=GSTIN),
    ]
    results = reconcile([purchase("INV/7", "10")], statement)

    assert results[0].match_strategy == MatchStrategy.EXACT
    assert results[0].gstr2b_tax == Decimal("500.00")
    assert results[0].status == ReconciliationStatus.MISMATCH


def test_many_to_one_matching_is_allowed(caplog):
    statement = [gstr2b("INV/9", "18", gstin=OTHER_GSTIN)]
    purchases = [purchase("INV/9", "18", gstin=GSTIN), purchase("INV/9", "18", gstin="33ZZZZZ9999Z1Z9")]

    with caplog.at_level("WARNING"):
        results = reconcile(purchases, statement)

    assert len(results) == 2
    assert all(r.status == ReconciliationStatus.MATCHED for r in results)
    assert "matched again" in caplog.text


def test_result_ordering_is_purchases_then_unclaimed_statement():
    purchases = [purchase("P-1", "1"), purchase("A/2", "2"), purchase("P-3", "3")]
    statement = [gstr2b("X-9", "9", gstin=OTHER_GSTIN), gstr2b("A/2", "2"), gstr2b("Y-8", "8", gstin=OTHER_GSTIN)]

    results = reconcile(purchases, statement)

    assert [r.invoice_no for r in results] == ["P-1", "A/2", "P-3", "X-9", "Y-8"]
    assert [r.status for r in results[3:]] == [ReconciliationStatus.MISSING_IN_PURCHASE] * 2


@pytest.fixture
def mixed_ledgers():
    purchases = [
        purchase("INV/001", "118.00"),
        purchase("INV/002", "150.00"),
        purchase("INV/003", "100.00"),
        purchase("INV/404", "10.00"),
        purchase("1NV0O5", "20.00"),
    ]
    statement = [
        gstr2b("INV/001", "118.00"),
        gstr2b("INV/002", "100.00"),
        gstr2b("INV/003", "100.90"),
        gstr2b("INV005", "20.00"),
        gstr2b("INV/999", "33.00"),
        gstr2b("INV/998", "44.00", gstin=OTHER_GSTIN),
    ]
    return purchases, statement


def test_completeness(mixed_ledgers):
    purchases, statement = mixed_ledgers
    results = reconcile(purchases, statement)

    purchase_side = [r for r in results if r.status != ReconciliationStatus.MISSING_IN_PURCHASE]
    assert len(purchase_side) == len(purchases)

    claimed = {
        exact_key(r.matched_gstin, r.matched_invoice_no)
        for r in results
        if r.matched_gstin is not None
    }
    for record in statement:
        key = exact_key(record.supplier_gstin, record.invoice_no)
        missing = [
            r for r in results
            if r.status == ReconciliationStatus.MISSING_IN_PURCHASE
            and exact_key(r.supplier_gstin, r.invoice_no) == key
        ]
        assert (key in claimed) != bool(missing)


def test_single_classification_and_non_negative_risk(mixed_ledgers):
    purchases, statement = mixed_ledgers
    results = reconcile(purchases, statement)

    assert len(results) == 7
    for r in results:
        assert r.itc_at_risk >= 0
        assert r.status in ReconciliationStatus


def test_idempotence(mixed_ledgers):
    purchases, statement = mixed_ledgers
    assert reconcile(purchases, statement) == reconcile(purchases, statement)


def test_inputs_are_not_modified(mixed_ledgers):
    purchases, statement = mixed_ledgers
    before = ([p.model_dump() for p in purchases], [g.model_dump() for g in statement])
    reconcile(purchases, statement)
    assert before == ([p.model_dump() for p in purchases], [g.model_dump() for g in statement])
