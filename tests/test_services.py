# tests/test_services.py
# Pure helpers and service functions that need no HTTP round trip

from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest

from midwestea.core.config import settings
from midwestea.models.class_ import Class
from midwestea.models.log import EmailLog, Log
from midwestea.services import audit_log, email_service, quickbooks_service
from midwestea.services.course_catalog import generate_class_id, get_course_code_from_slug
from midwestea.services.formatting import (
    cents_to_dollars,
    format_csv_date,
    format_currency,
    format_long_date,
    format_mmddyy,
    split_full_name,
)
from midwestea.services.invoice_service import invoice_due_dates, next_invoice_number
from midwestea.services.transaction_export import _format_rate, export_filename, item_name


# ── Formatting ────────────────────────────────────────────────────────────────

def test_currency_and_dates():
    assert format_currency(123456) == "$1,234.56"
    assert format_currency(None) == "—"
    assert cents_to_dollars(165000) == "1650.00"
    assert cents_to_dollars(None) == "0.00"
    assert format_long_date("2025-03-07") == "March 7, 2025"
    assert format_long_date(None) == ""
    assert format_csv_date(datetime(2025, 3, 7, 22, 15)) == "3/7/2025"
    assert format_mmddyy(date(2025, 3, 7)) == "030725"
    assert format_long_date("not a date") == ""


def test_split_full_name():
    assert split_full_name("Ada Byron Lovelace") == ("Ada", "Byron Lovelace")
    assert split_full_name("  Cher ") == ("Cher", None)
    assert split_full_name("") == (None, None)


# ── Course Catalog ────────────────────────────────────────────────────────────

def test_course_code_from_slug():
    assert get_course_code_from_slug("Emergency-Medical-Technician ") == "EMT"
    assert get_course_code_from_slug("bloodborne-pathodgens") == "PATH"
    assert get_course_code_from_slug("nothing") is None


def test_generate_class_id_skips_non_numeric_suffixes(db, course):
    for class_id in ("EMT-001", "EMT-007", "EMT-ONLINE"):
        db.add(Class(course_uuid=course.id, class_id=class_id, course_code="EMT"))
    db.commit()
    assert generate_class_id(db, "emt") == "EMT-008"
    assert generate_class_id(db, "PARA") == "PARA-001"


# ── Invoices ──────────────────────────────────────────────────────────────────

def test_invoice_due_dates(emt_class):
    assert invoice_due_dates(emt_class) == (date(2026, 11, 10), date(2026, 12, 8))
    assert invoice_due_dates(Class(class_id="X-001")) == (None, None)


def test_first_invoice_number(db):
    assert next_invoice_number(db) == 100001


# ── Transaction Export ────────────────────────────────────────────────────────

def test_export_helpers():
    assert _format_rate(None) == "1"
    assert _format_rate(2.0) == "2"
    assert _format_rate(1.5) == "1.5"
    assert item_name("tuition_b") == "Tuition"
    assert item_name("registration_fee") == "Registration Fee"


def test_export_filename_spans_earliest_to_latest():
    created = [datetime(2026, 10, 3), None, datetime(2026, 9, 28)]
    assert export_filename(created) == "midwestea-invoices-092826-100326.csv"
    assert export_filename([]) == "midwestea-invoices-010101-010101.csv"


# ── Audit Log Rendering ───────────────────────────────────────────────────────

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("delta, expected", [
    (timedelta(seconds=2), "just now"),
    (timedelta(seconds=40), "40 seconds ago"),
    (timedelta(minutes=1), "1 minute ago"),
    (timedelta(hours=5), "5 hours ago"),
    (timedelta(days=1), "1 day ago"),
    (timedelta(days=30), "Sep 18, 2026"),
])
def test_format_timestamp(delta, expected):
    assert audit_log.format_timestamp(NOW - delta, now=NOW) == expected


def test_format_detail_update_message(admin):
    log = Log(
        action_type="detail_updated",
        reference_type="class",
        field_name="registration_fee",
        old_value="100",
        new_value="200",
        timestamp=NOW - timedelta(minutes=3),
    )
    log.admin = admin
    message = audit_log.format_log_message(log, now=NOW)
    assert message.startswith("Dana Admin updated the ")
    assert message.endswith('from "100" to "200" – 3 minutes ago')


def test_format_payment_and_heartbeat_messages(student):
    paid = Log(action_type="payment_success", amount=30000, timestamp=NOW)
    assert audit_log.format_log_message(paid, student=student, now=NOW) == (
        "Jane Doe (jane@example.com) paid $300.00 – just now"
    )
    beat = Log(action_type="heartbeat", message=audit_log.HEARTBEAT_MESSAGE, timestamp=NOW)
    assert audit_log.format_log_message(beat, now=NOW) == (
        "standard chron job to keep db active – just now"
    )


def test_field_label_falls_back_to_title_case():
    assert audit_log.get_field_label("class", "some_new_field") == "Some New Field"


# ── Email ─────────────────────────────────────────────────────────────────────

def test_send_email_skipped_without_key(db):
    result = email_service.send_email(db, "pat@example.com", "Hi", "<p>Hi</p>", "course_enrollment")
    assert result.success is False
    assert db.query(EmailLog).count() == 0


def test_send_email_retries_transient_failures(db, monkeypatch):
    monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test")
    deliver = MagicMock(side_effect=[ConnectionError("reset"), ConnectionError("reset"), "msg_1"])
    with patch.object(email_service, "reserve_daily_quota"), \
            patch.object(email_service, "_deliver", deliver), \
            patch.object(email_service.time, "sleep") as sleep:
        result = email_service.send_email(db, "pat@example.com", "Hi", "<p>Hi</p>", "course_enrollment")

    assert result.success is True
    assert result.email_id == "msg_1"
    assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]
    row = db.query(EmailLog).one()
    assert row.success is True
    assert row.retries == 2


def test_send_email_gives_up_on_permanent_failure(db, monkeypatch):
    monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test")
    with patch.object(email_service, "reserve_daily_quota"), \
            patch.object(email_service, "_deliver", side_effect=ValueError("bad sender")) as deliver:
        result = email_service.send_email(db, "pat@example.com", "Hi", "<p>Hi</p>", "receipt")

    assert result.success is False
    assert deliver.call_count == 1
    assert db.query(EmailLog).one().error == "bad sender"


def test_send_email_respects_daily_limit(db, monkeypatch):
    monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test")
    with patch.object(
        email_service,
        "reserve_daily_quota",
        side_effect=email_service.RateLimitError("Daily email limit of 100 reached"),
    ), patch.object(email_service, "_deliver") as deliver:
        result = email_service.send_email(db, "pat@example.com", "Hi", "<p>Hi</p>", "receipt")

    assert result.success is False
    deliver.assert_not_called()


def test_alert_not_raised_without_traffic(db):
    alerts = email_service.check_email_alerts(db, failure_rate_threshold=10)
    assert alerts["needsAlert"] is False
    assert alerts["message"] is None


# ── QuickBooks ────────────────────────────────────────────────────────────────

def test_invoice_payment_url_preference():
    assert quickbooks_service.get_invoice_payment_url(
        {"Id": "9", "PaymentLink": "https://pay", "InvoiceLink": "https://inv"}
    ) == "https://pay"
    assert quickbooks_service.get_invoice_payment_url({"Id": "9", "InvoiceLink": "https://inv"}) == "https://inv"
    assert quickbooks_service.get_invoice_payment_url({"Id": "9"}).endswith("/app/invoice?txnId=9")
    with pytest.raises(quickbooks_service.QuickBooksError):
        quickbooks_service.get_invoice_payment_url({})


def test_custom_field_lookup():
    invoice = {"CustomField": [{"Name": "ClassID", "StringValue": "EMT-001"}]}
    assert quickbooks_service.get_custom_field(invoice, "ClassID") == "EMT-001"
    assert quickbooks_service.get_custom_field({}, "ClassID") is None


def test_fault_message_is_surfaced():
    response = httpx.Response(
        400,
        json={"Fault": {"Error": [{"Message": "Duplicate Name Exists Error", "code": "6240"}]}},
    )
    error = quickbooks_service._error_from_response(response)
    assert str(error) == "QuickBooks API error: Duplicate Name Exists Error (6240)"
    assert error.code == "6240"
    assert error.status_code == 400


def test_missing_credentials_raise(monkeypatch):
    monkeypatch.setattr(settings, "quickbooks_client_id", "")
    with pytest.raises(quickbooks_service.QuickBooksError):
        quickbooks_service.api_request("GET", "/invoice/1")


def test_refreshed_token_is_reused_across_requests(monkeypatch):
    monkeypatch.setattr(settings, "quickbooks_client_id", "client")
    monkeypatch.setattr(settings, "quickbooks_client_secret", "secret")
    monkeypatch.setattr(settings, "quickbooks_access_token", "stale")
    monkeypatch.setattr(settings, "quickbooks_refresh_token", "r1")
    monkeypatch.setattr(quickbooks_service, "_token_cache", {"access": None, "refresh": None})

    responses = [
        httpx.Response(401, json={}),
        httpx.Response(200, json={"Invoice": {"Id": "1"}}),
        httpx.Response(200, json={"Invoice": {"Id": "2"}}),
    ]
    token_response = httpx.Response(200, json={"access_token": "fresh", "refresh_token": "r2"})

    with patch("httpx.request", side_effect=responses) as request, \
            patch("httpx.post", return_value=token_response) as post:
        quickbooks_service.api_request("GET", "/invoice/1")
        quickbooks_service.api_request("GET", "/invoice/2")

    post.assert_called_once()
    assert post.call_args.kwargs["data"]["refresh_token"] == "r1"
    authorizations = [call.kwargs["headers"]["Authorization"] for call in request.call_args_list]
    assert authorizations == ["Bearer stale", "Bearer fresh", "Bearer fresh"]
    assert quickbooks_service._token_cache == {"access": "fresh", "refresh": "r2"}
