from fastapi.testclient import TestClient
from gstr2b_recon.main import app
from gstr2b_recon.core.audit import audit_repo
from gstr2b_recon.core.config import settings
from gstr2b_recon.core.middleware import action_for_endpoint
from gstr2b_recon.schemas.audit import AuditAction, AuditStatus
import hashlib

client = TestClient(app)

EMPTY_HASH = hashlib.sha256(b"").hexdigest()

PURCHASE_CSV = (
    "Supplier GSTIN,Invoice No,Invoice Date,IGST,CGST,SGST\n"
    "29ABCDE1234F1Z5,INV/001,2025-09-02,118.00,0,0\n"
)
GSTR2B_CSV = PURCHASE_CSV


def files():
    return {
        "purchase_file": ("purchase.csv", PURCHASE_CSV, "text/csv"),
        "gstr2b_file": ("gstr2b.csv", GSTR2B_CSV, "text/csv"),
    }


def test_health_is_audited():
    audit_repo.clear()

    response = client.get("/health")
    assert response.status_code == 200

    health_log = next((l for l in audit_repo.get_all() if l.endpoint == "/health"), None)
    assert health_log is not None
    # Always hashed, even when the body is empty
    assert health_log.input_hash == EMPTY_HASH
    assert health_log.action_type == AuditAction.HEALTH_CHECK
    assert health_log.status == AuditStatus.SUCCESS
    assert health_log.output_hash == hashlib.sha256(response.content).hexdigest()


def test_reconcile_upload_is_audited():
    audit_repo.clear()

    response = client.post("/api/reconcile/upload", files=files())
    assert response.status_code == 200

    log = audit_repo.get_all()[-1]
    assert log.endpoint == "/api/reconcile/upload"
    assert log.method == "POST"
    assert log.action_type == AuditAction.RECONCILE
    assert log.status == AuditStatus.SUCCESS
    assert log.status_code == 200
    assert log.input_hash not in (None, EMPTY_HASH)
    assert log.output_hash == hashlib.sha256(response.content).hexdigest()


def test_rejected_upload_is_audited_as_failure():
    audit_repo.clear()

    bad = files()
    bad["purchase_file"] = ("purchase.txt", "nothing", "text/plain")
    response = client.post("/api/reconcile/upload", files=bad)
    assert response.status_code == 400

    log = audit_repo.get_all()[-1]
    assert log.status == AuditStatus.FAILURE
    assert log.status_code == 400


def test_unknown_endpoint_is_audited():
    audit_repo.clear()

    client.get("/non-existent-endpoint")
    log404 = next((l for l in audit_repo.get_all() if l.endpoint == "/non-existent-endpoint"), None)
    assert log404 is not None
    assert log404.action_type == AuditAction.UNKNOWN
    assert log404.status == AuditStatus.FAILURE


def test_row_limit(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_ROWS", 1)
    big = PURCHASE_CSV + "29ABCDE1234F1Z5,INV/002,2025-09-03,18.00,0,0\n"
    payload = files()
    payload["purchase_file"] = ("purchase.csv", big, "text/csv")

    response = client.post("/api/reconcile/upload", files=payload)
    assert response.status_code == 400
    assert "exceeds the limit" in response.json()["detail"]


def test_action_types():
    assert action_for_endpoint("/api/reconcile/upload") == AuditAction.RECONCILE
    assert action_for_endpoint("/api/reconcile/detailed-report") == AuditAction.REPORT
    assert action_for_endpoint("/api/reconcile/generate-report") == AuditAction.REPORT
    assert action_for_endpoint("/api/reconcile/download-report/pdf") == AuditAction.DOWNLOAD
    assert action_for_endpoint("/api/reconcile/download-mismatches") == AuditAction.DOWNLOAD


if __name__ == "__main__":
    test_health_is_audited()
    test_reconcile_upload_is_audited()
