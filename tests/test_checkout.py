# tests/test_checkout.py
# Public checkout endpoints: Stripe session, QuickBooks invoice, payment link, ensure-user

import uuid
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from midwestea.core.config import settings
from midwestea.models.class_ import Class
from midwestea.models.student import Student
from midwestea.services.quickbooks_service import QuickBooksError


@pytest.fixture
def stripe_key(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")


# ── Stripe Checkout Session ───────────────────────────────────────────────────

def test_checkout_session_requires_class_id(client):
    response = client.post(
        "/api/checkout/create-checkout-session",
        json={"email": "jane@example.com", "fullName": "Jane Doe"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Class ID is required"}


def test_checkout_session_checks_email_first(client):
    response = client.post("/api/checkout/create-checkout-session", json={"classId": "EMT-001"})
    assert response.status_code == 400
    assert response.json()["error"] == "Email is required"


def test_checkout_session_without_stripe_key(client, emt_class):
    response = client.post(
        "/api/checkout/create-checkout-session",
        json={"email": "jane@example.com", "fullName": "Jane Doe", "classId": "EMT-001"},
    )
    assert response.status_code == 500
    assert response.json()["error"] == "Stripe secret key is not configured"


def test_checkout_session_unknown_class(client, stripe_key):
    response = client.post(
        "/api/checkout/create-checkout-session",
        json={"email": "jane@example.com", "fullName": "Jane Doe", "classId": "EMT-999"},
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Class not found with class_id: EMT-999"


def test_checkout_session_returns_url(client, stripe_key, emt_class):
    with patch(
        "midwestea.services.stripe_service.find_or_create_customer",
        return_value=SimpleNamespace(id="cus_1"),
    ), patch(
        "midwestea.services.stripe_service.create_checkout_session",
        return_value=SimpleNamespace(url="https://checkout.stripe.com/c/pay/cs_1"),
    ) as create_session:
        response = client.post(
            "/api/checkout/create-checkout-session",
            json={"email": "jane@example.com", "fullName": "Jane Doe", "classId": "EMT-001"},
            headers={"Origin": "https://www.midwestea.com"},
        )

    assert response.status_code == 200
    assert response.json() == {"checkoutUrl": "https://checkout.stripe.com/c/pay/cs_1"}
    kwargs = create_session.call_args.kwargs
    assert kwargs["price_id"] == "price_123"
    assert kwargs["origin"] == "https://www.midwestea.com"


def test_checkout_session_without_url(client, stripe_key, emt_class):
    with patch(
        "midwestea.services.stripe_service.find_or_create_customer",
        return_value=SimpleNamespace(id="cus_1"),
    ), patch(
        "midwestea.services.stripe_service.create_checkout_session",
        return_value=SimpleNamespace(url=None),
    ):
        response = client.post(
            "/api/checkout/create-checkout-session",
            json={"email": "jane@example.com", "fullName": "Jane Doe", "classId": "EMT-001"},
        )
    assert response.status_code == 500
    assert response.json()["error"] == "Failed to generate checkout URL. Please try again."


# ── QuickBooks Invoice ────────────────────────────────────────────────────────

def _qb_patches(invoice: dict, category=None, subcategory=None):
    return (
        patch("midwestea.services.quickbooks_service.get_or_create_customer", return_value={"Id": "58"}),
        patch("midwestea.services.quickbooks_service.get_or_create_item", return_value={"Id": "7"}),
        patch("midwestea.services.quickbooks_service.find_or_create_category", side_effect=category),
        patch("midwestea.services.quickbooks_service.find_or_create_subcategory", side_effect=subcategory),
        patch("midwestea.services.quickbooks_service.create_invoice", return_value=invoice),
    )


def test_create_invoice_uses_registration_fee(client, emt_class):
    customer, item, category, subcategory, create = _qb_patches(
        {"Id": "901", "InvoiceLink": "https://qbo.example/inv/901"},
        category=lambda name: {"Id": "C1"},
        subcategory=lambda name: {"Id": "D1"},
    )
    with customer, item as get_item, category, subcategory, create as create_invoice:
        response = client.post(
            "/api/checkout/create-invoice",
            json={"email": "jane@example.com", "classId": "EMT-001"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["invoiceId"] == "901"
    assert body["paymentUrl"] == "https://qbo.example/inv/901"
    get_item.assert_called_once_with("registration fee")
    kwargs = create_invoice.call_args.kwargs
    assert kwargs["unit_price_cents"] == 30000
    assert kwargs["category_id"] == "C1"
    assert kwargs["subcategory_id"] == "D1"
    assert kwargs["custom_fields"] == [("ClassID", "EMT-001")]


def test_create_invoice_uses_tuition_without_fee(client, db, emt_class):
    emt_class.registration_fee = None
    db.commit()

    customer, item, category, subcategory, create = _qb_patches(
        {"Id": "902", "PaymentLink": "https://pay.example/902"},
        category=lambda name: None,
        subcategory=lambda name: None,
    )
    with customer, item as get_item, category, subcategory, create as create_invoice:
        response = client.post(
            "/api/checkout/create-invoice",
            json={"email": "jane@example.com", "classId": "EMT-001"},
        )

    assert response.status_code == 200
    assert response.json()["paymentUrl"] == "https://pay.example/902"
    get_item.assert_called_once_with("tuition")
    assert create_invoice.call_args.kwargs["unit_price_cents"] == 165000


def test_create_invoice_survives_category_failures(client, emt_class):
    customer, item, category, subcategory, create = _qb_patches(
        {"Id": "903"},
        category=QuickBooksError("Duplicate Name Exists Error", code="6240"),
        subcategory=QuickBooksError("Feature not enabled"),
    )
    with customer, item, category, subcategory, create as create_invoice:
        response = client.post(
            "/api/checkout/create-invoice",
            json={"email": "jane@example.com", "classId": "EMT-001"},
        )

    assert response.status_code == 200
    kwargs = create_invoice.call_args.kwargs
    assert kwargs["category_id"] is None
    assert kwargs["subcategory_id"] is None
    # Neither link on the invoice: falls back to the QuickBooks web UI
    assert response.json()["paymentUrl"].endswith("/app/invoice?txnId=903")


def test_create_invoice_rejects_free_class(client, db, emt_class):
    emt_class.registration_fee = 0
    emt_class.price = 0
    db.commit()

    response = client.post(
        "/api/checkout/create-invoice",
        json={"email": "jane@example.com", "classId": "EMT-001"},
    )
    assert response.status_code == 400


def test_create_invoice_unknown_class(client):
    response = client.post(
        "/api/checkout/create-invoice",
        json={"email": "jane@example.com", "classId": "NOPE-1"},
    )
    assert response.status_code == 404
    assert response.json()["error"] == 'Class with ID "NOPE-1" not found'


# ── Payment Link ──────────────────────────────────────────────────────────────

def test_get_payment_link(client, emt_class):
    response = client.post("/api/checkout/get-payment-link", json={"classId": "EMT-001"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "paymentUrl": "https://buy.stripe.com/test_emt"}


def test_get_payment_link_unknown_class(client):
    response = client.post("/api/checkout/get-payment-link", json={"classId": "EMT-404"})
    assert response.status_code == 404
    assert response.json()["error"] == 'Class "EMT-404" not found'


def test_get_payment_link_missing_link(client, db, course):
    db.add(Class(course_uuid=course.id, class_id="EMT-002", course_code="EMT", is_online=True))
    db.commit()
    response = client.post("/api/checkout/get-payment-link", json={"classId": "EMT-002"})
    assert response.status_code == 400


# ── Ensure User ───────────────────────────────────────────────────────────────

def test_ensure_user_creates_student(client, db):
    user_id = uuid.uuid4()
    with patch(
        "midwestea.services.supabase_auth.find_or_create_user",
        return_value=({"id": str(user_id), "email": "new@example.com"}, False),
    ):
        response = client.post("/api/checkout/ensure-user", json={"email": " New@Example.com "})

    assert response.status_code == 200
    body = response.json()
    assert body["userExisted"] is False
    assert body["studentExists"] is False
    assert body["message"] == "User and student created successfully"

    student = db.query(Student).filter(Student.id == user_id).first()
    assert student.email == "new@example.com"


def test_ensure_user_existing(client, student):
    with patch(
        "midwestea.services.supabase_auth.find_or_create_user",
        return_value=({"id": str(student.id), "email": student.email}, True),
    ):
        response = client.post("/api/checkout/ensure-user", json={"email": student.email})

    assert response.json()["message"] == "User and student already exist"
