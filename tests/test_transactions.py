# tests/test_transactions.py
# Reconciliation, status updates, listing and the QuickBooks CSV export

import uuid
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from midwestea.core.config import settings
from midwestea.models.payment import InvoiceToImport, Transaction
from midwestea.services.invoice_service import create_single_invoice


@pytest.fixture
def transaction(db, student, emt_class):
    row = Transaction(
        invoice_number=100001,
        student_id=student.id,
        class_id=emt_class.id,
        transaction_type="registration_fee",
        quantity=1,
        amount_due=30000,
        due_date=date(2026, 11, 10),
        created_at=datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
    )
    db.add(row)
    db.commit()
    return row


# ── Auth Guard ────────────────────────────────────────────────────────────────

def test_reconcile_requires_token(client):
    response = client.post("/api/transactions/reconcile", json={"transactionId": str(uuid.uuid4())})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_reconcile_rejects_non_admin(client, non_admin_headers):
    response = client.post(
        "/api/transactions/reconcile",
        json={"transactionId": str(uuid.uuid4())},
        headers=non_admin_headers,
    )
    assert response.status_code == 403


# ── Reconcile ─────────────────────────────────────────────────────────────────

def test_reconcile_unknown_transaction(client, admin_headers):
    response = client.post(
        "/api/transactions/reconcile",
        json={"transactionId": str(uuid.uuid4())},
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Transaction not found"}


def test_reconcile_requires_string_id(client, admin_headers):
    response = client.post(
        "/api/transactions/reconcile",
        json={"transactionId": 42},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "transactionId is required and must be a string"


def test_reconcile_and_unreconcile(client, db, admin_headers, transaction):
    response = client.post(
        "/api/transactions/reconcile",
        json={"transactionId": str(transaction.id)},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "transactionId": str(transaction.id)}

    db.refresh(transaction)
    assert transaction.reconciled is True
    assert transaction.reconciliation_date is not None

    response = client.post(
        "/api/transactions/unreconcile",
        json={"transactionId": str(transaction.id)},
        headers=admin_headers,
    )
    assert response.status_code == 200

    db.refresh(transaction)
    assert transaction.reconciled is False
    assert transaction.reconciliation_date is None


def test_unreconcile_requires_id(client, admin_headers):
    response = client.post("/api/transactions/unreconcile", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Transaction ID is required"


# ── Status & Listing ──────────────────────────────────────────────────────────

def test_update_status(client, db, admin_headers, transaction):
    response = client.patch(
        f"/api/transactions/{transaction.id}/status",
        json={"status": "paid"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "paid"
    db.refresh(transaction)
    assert transaction.transaction_status == "paid"


def test_update_status_rejects_unknown_status(client, admin_headers, transaction):
    response = client.patch(
        f"/api/transactions/{transaction.id}/status",
        json={"status": "lost"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid status")


def test_list_transactions_joins_names(client, admin_headers, transaction):
    response = client.get("/api/transactions", headers=admin_headers)
    assert response.status_code == 200
    rows = response.json()
    assert len(rows) == 1
    assert rows[0]["student_name"] == "Jane Doe"
    assert rows[0]["class_code"] == "EMT-001"


# ── CSV Export ────────────────────────────────────────────────────────────────

def test_export_marks_downloaded_then_reports_nothing_new(client, db, admin_headers, transaction):
    response = client.get("/api/export-transactions-csv", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == (
        'attachment; filename="midwestea-invoices-100126-100126.csv"'
    )

    lines = response.text.strip().split("\n")
    assert lines[0].startswith("InvoiceNo,Customer,InvoiceDate,DueDate")
    assert lines[1] == (
        "100001,Jane Doe,10/1/2026,11/10/2026,,,EMT-001,Registration Fee,"
        '"Registration Fee for EMT Basic starting on December 1, 2026",'
        "1,1,300.00,N,,12/1/2026"
    )

    db.refresh(transaction)
    assert transaction.downloaded is True

    response = client.get("/api/export-transactions-csv", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"success": False, "message": "No new invoices to download", "count": 0}


# ── Staged Invoices ───────────────────────────────────────────────────────────

def test_export_invoices_empty_table(client, admin_headers):
    response = client.get("/api/export-invoices-csv", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"success": False, "message": "No invoices found in table", "count": 0}


def test_export_invoices_csv(client, db, admin_headers, emt_class):
    db.add(InvoiceToImport(
        invoice_number=100001,
        customer_email="pat@example.com",
        invoice_date=date(2026, 10, 1),
        due_date=date(2026, 11, 10),
        item="EMT:EMT-001:registration",
        item_amount=82500,
        item_quantity=1,
        item_rate=0.5,
        subcategory="EMT-001",
    ))
    db.commit()

    response = client.get("/api/export-invoices-csv", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith('attachment; filename="invoices_export_')

    lines = response.text.strip().split("\n")
    assert lines[0] == (
        "InvoiceNo,Customer,InvoiceDate,DueDate,Item,ItemDescription,"
        "ItemQuantity,ItemRate,ItemAmount,Taxable"
    )
    assert lines[1] == "100001,pat@example.com,10/1/2026,11/10/2026,Registration,EMT-001,1,0.5,825.00,N"


def test_export_invoices_requires_admin(client, non_admin_headers):
    response = client.get("/api/export-invoices-csv", headers=non_admin_headers)
    assert response.status_code == 403


def test_sync_stripe_invoices_requires_key(client, admin_headers):
    response = client.post("/api/sync-stripe-invoices", headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["error"] == "STRIPE_SECRET_KEY is not set"


def test_sync_stripe_invoices_backfills_new_intents(client, db, admin_headers, emt_class, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
    create_single_invoice(
        db,
        customer_email="old@example.com",
        amount_cents=5000,
        payment_date=date(2026, 9, 1),
        payment_intent_id="pi_known",
    )
    db.commit()

    intents = [
        {"id": "pi_known", "status": "succeeded", "receipt_email": "old@example.com", "amount": 5000},
        {"id": "pi_pending", "status": "processing", "receipt_email": "pat@example.com", "amount": 30000},
        {
            "id": "pi_new",
            "status": "succeeded",
            "receipt_email": "pat@example.com",
            "amount": 30000,
            "created": 1790000000,
            "metadata": {"class_id": "EMT-001"},
        },
        {"id": "pi_anonymous", "status": "succeeded", "amount": 1000, "metadata": {}},
    ]
    with patch(
        "midwestea.services.stripe_service.list_payment_intents",
        return_value=intents,
    ) as list_intents:
        response = client.post("/api/sync-stripe-invoices", params={"limit": 50}, headers=admin_headers)

    assert response.status_code == 200
    list_intents.assert_called_once_with(limit=50)
    body = response.json()
    assert body["success"] is True
    assert body["results"] == {
        "total": 4,
        "processed": 1,
        "skipped": 2,
        "created": 2,
        "errors": 1,
        "errorDetails": [
            {"payment_intent_id": "pi_anonymous", "error": "No customer email on payment intent"},
        ],
    }

    new_rows = db.query(InvoiceToImport).filter(
        InvoiceToImport.stripe_payment_intent_id == "pi_new",
    ).order_by(InvoiceToImport.invoice_number).all()
    assert [row.invoice_number for row in new_rows] == [100002, 100003]
    assert all(row.customer_email == "pat@example.com" for row in new_rows)


def test_sync_stripe_invoices_rejects_large_limit(client, admin_headers):
    response = client.post("/api/sync-stripe-invoices", params={"limit": 500}, headers=admin_headers)
    assert response.status_code == 400
