# midwestea/services/quickbooks_service.py
# QuickBooks Online REST wrapper (v3 accounting API over httpx)
#
# Entity mapping used by MidwestEA:
#   Customer   -- one per student email
#   Item       -- "registration fee" | "tuition" (Service items)
#   Class      -- category, named after course_code
#   Department -- subcategory, named after the human class_id
#   Invoice    -- one line, ClassID/PaymentType custom fields for the webhook
#
# Every request goes to {base}/{company_id}{endpoint} with the OAuth access token.
# A 401 triggers exactly one refresh-token exchange and a retry.

import logging
from datetime import date
from typing import Any, Optional

import httpx

from midwestea.core.config import settings

logger = logging.getLogger("midwestea.quickbooks")

TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
REQUEST_TIMEOUT = 30.0
QUERY_META_KEYS = {"maxResults", "startPosition", "totalCount"}


class QuickBooksError(Exception):
    """Raised for any non-2xx QuickBooks response or missing configuration."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


# ── Auth ──────────────────────────────────────────────────────────────────────

# A refreshed token outlives the request that fetched it.
# Intuit rotates the refresh token, so the latest one is kept too.
_token_cache: dict[str, Optional[str]] = {"access": None, "refresh": None}


def _access_token() -> str:
    if not settings.quickbooks_client_id or not settings.quickbooks_client_secret:
        raise QuickBooksError("QUICKBOOKS_CLIENT_ID and QUICKBOOKS_CLIENT_SECRET must be set")
    token = _token_cache["access"] or settings.quickbooks_access_token
    if not token:
        raise QuickBooksError("QUICKBOOKS_ACCESS_TOKEN must be set. Please complete OAuth setup first.")
    return token


def refresh_access_token() -> str:
    """Exchange the latest refresh token for a new access token and cache both."""
    refresh_token = _token_cache["refresh"] or settings.quickbooks_refresh_token
    if not refresh_token:
        raise QuickBooksError("QUICKBOOKS_REFRESH_TOKEN is required to refresh access token")

    response = httpx.post(
        TOKEN_URL,
        auth=(settings.quickbooks_client_id, settings.quickbooks_client_secret),
        data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
        headers={"Accept": "application/json"},
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code != 200:
        raise QuickBooksError(
            f"Failed to refresh access token: {response.status_code} {response.text}",
            status_code=response.status_code,
        )
    body = response.json()
    _token_cache["access"] = body["access_token"]
    if body.get("refresh_token"):
        _token_cache["refresh"] = body["refresh_token"]
    logger.info("QuickBooks access token refreshed")
    return body["access_token"]


def _error_from_response(response: httpx.Response) -> QuickBooksError:
    """Prefer the Fault.Error[0] message QuickBooks returns over the raw body."""
    try:
        fault_errors = response.json().get("Fault", {}).get("Error", [])
    except ValueError:
        fault_errors = []

    if fault_errors:
        first = fault_errors[0]
        return QuickBooksError(
            f"QuickBooks API error: {first.get('Message')} ({first.get('code')})",
            code=first.get("code"),
            status_code=response.status_code,
        )
    return QuickBooksError(
        f"QuickBooks API error: {response.status_code} {response.text}",
        status_code=response.status_code,
    )


def api_request(
    method: str,
    endpoint: str,
    json: Optional[dict] = None,
    params: Optional[dict] = None,
) -> dict:
    """
    Send one request to the company endpoint and return the decoded body.

    Args:
        method: HTTP verb
        endpoint: Path below the company, e.g. "/invoice" or "/query"
        json: Request body for POSTs
        params: Query string parameters
    """
    url = f"{settings.quickbooks_base_url}/{settings.quickbooks_company_id}{endpoint}"
    token = _access_token()

    def _send(access_token: str) -> httpx.Response:
        return httpx.request(
            method,
            url,
            json=json,
            params=params,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT,
        )

    response = _send(token)
    if response.status_code == 401 and (_token_cache["refresh"] or settings.quickbooks_refresh_token):
        response = _send(refresh_access_token())

    if response.is_error:
        raise _error_from_response(response)
    return response.json()


# ── Query ─────────────────────────────────────────────────────────────────────

def escape(value: str) -> str:
    """Escape a literal for the QuickBooks query language."""
    return value.replace("'", "''")


def query(statement: str) -> list[dict]:
    """
    Run a SELECT and return the entity list.
    QueryResponse holds the entities under their own name ("Customer", "Item" ...).
    """
    body = api_request("GET", "/query", params={"query": statement})
    query_response = body.get("QueryResponse") or {}
    for key, value in query_response.items():
        if key not in QUERY_META_KEYS and isinstance(value, list):
            return value
    return []


def _first(statement: str) -> Optional[dict]:
    rows = query(statement)
    return rows[0] if rows else None


# ── Customers ─────────────────────────────────────────────────────────────────

def find_customer_by_email(email: str) -> Optional[dict]:
    return _first(f"SELECT * FROM Customer WHERE PrimaryEmailAddr = '{escape(email)}'")


def get_customer(customer_id: str) -> Optional[dict]:
    return _first(f"SELECT * FROM Customer WHERE Id = '{escape(customer_id)}'")


def create_customer(
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> dict:
    data: dict[str, Any] = {"PrimaryEmailAddr": {"Address": email}}
    if first_name:
        data["GivenName"] = first_name
    if last_name:
        data["FamilyName"] = last_name
    # DisplayName must be unique in QuickBooks; the email always is
    if not (first_name and last_name):
        data["DisplayName"] = first_name or last_name or email

    return api_request("POST", "/customer", json=data)["Customer"]


def get_or_create_customer(
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> dict:
    customer = find_customer_by_email(email) or create_customer(email, first_name, last_name)
    if not customer.get("Id"):
        raise QuickBooksError("Customer created but missing ID")
    return customer


# ── Items ─────────────────────────────────────────────────────────────────────

def get_or_create_item(name: str) -> dict:
    item = _first(f"SELECT * FROM Item WHERE Name = '{escape(name)}'")
    if not item:
        item = api_request("POST", "/item", json={"Name": name, "Type": "Service"})["Item"]
    if not item.get("Id"):
        raise QuickBooksError(f'Item "{name}" created but missing ID')
    return item


# ── Categories (QuickBooks Class / Department) ───────────────────────────────

def find_or_create_category(course_code: str) -> Optional[dict]:
    """QuickBooks Class named after the course code. None if it cannot be created."""
    if not course_code:
        return None

    existing = _first(f"SELECT * FROM Class WHERE Name = '{escape(course_code)}'")
    if existing:
        return existing

    try:
        return api_request("POST", "/class", json={"Name": course_code})["Class"]
    except QuickBooksError as exc:
        logger.warning(f"Could not create QuickBooks class {course_code}: {exc}")
        return None


def find_or_create_subcategory(class_id: str) -> Optional[dict]:
    """QuickBooks Department named after the human class id. None if it cannot be created."""
    if not class_id:
        return None

    existing = _first(f"SELECT * FROM Department WHERE Name = '{escape(class_id)}'")
    if existing:
        return existing

    try:
        return api_request("POST", "/department", json={"Name": class_id})["Department"]
    except QuickBooksError as exc:
        logger.warning(f"Could not create QuickBooks department {class_id}: {exc}")
        return None


# ── Invoices ──────────────────────────────────────────────────────────────────

def create_invoice(
    customer_id: str,
    item_id: str,
    unit_price_cents: int,
    description: Optional[str] = None,
    category_id: Optional[str] = None,
    subcategory_id: Optional[str] = None,
    custom_fields: Optional[list[tuple[str, str]]] = None,
    quantity: float = 1,
    due_date: Optional[date] = None,
) -> dict:
    """
    Create a single-line invoice.

    Args:
        unit_price_cents: Full unit price; line amount = unit price x quantity
        custom_fields: (Name, StringValue) pairs, all on definition "1"
        quantity: 0.5 for split tuition payments
    """
    unit_price = unit_price_cents / 100
    detail: dict[str, Any] = {
        "ItemRef": {"value": item_id},
        "Qty": quantity,
        "UnitPrice": unit_price,
    }
    if category_id:
        detail["ClassRef"] = {"value": category_id}
    if subcategory_id:
        detail["DepartmentRef"] = {"value": subcategory_id}

    invoice: dict[str, Any] = {
        "CustomerRef": {"value": customer_id},
        "Line": [{
            "DetailType": "SalesItemLineDetail",
            "Amount": round(unit_price * quantity, 2),
            "SalesItemLineDetail": detail,
            "Description": description,
        }],
    }
    if custom_fields:
        invoice["CustomField"] = [
            {"DefinitionId": "1", "Name": name, "StringValue": value, "Type": "StringType"}
            for name, value in custom_fields
        ]
    if due_date:
        invoice["DueDate"] = due_date.isoformat()

    return api_request("POST", "/invoice", json=invoice)["Invoice"]


def get_invoice(invoice_id: str) -> dict:
    return api_request("GET", f"/invoice/{invoice_id}")["Invoice"]


def get_payment(payment_id: str) -> dict:
    return api_request("GET", f"/payment/{payment_id}")["Payment"]


def get_invoice_payment_url(invoice: dict) -> str:
    """PaymentLink, else InvoiceLink, else the QuickBooks web UI link."""
    if invoice.get("PaymentLink"):
        return invoice["PaymentLink"]
    if invoice.get("InvoiceLink"):
        return invoice["InvoiceLink"]
    if invoice.get("Id"):
        return f"{settings.quickbooks_app_url}/app/invoice?txnId={invoice['Id']}"
    raise QuickBooksError("Cannot generate payment URL: invoice missing ID and payment links")


def get_custom_field(invoice: dict, name: str) -> Optional[str]:
    for field in invoice.get("CustomField") or []:
        if field.get("Name") == name:
            return field.get("StringValue")
    return None


def create_subsequent_invoices(
    customer_id: str,
    tuition_cents: int,
    class_id: str,
    course_code: str,
    invoice_1_due: Optional[date] = None,
    invoice_2_due: Optional[date] = None,
) -> list[dict]:
    """
    After the registration fee is paid, bill tuition as two half invoices.
    Each carries the full unit price at quantity 0.5 and a PaymentNumber field.
    """
    item = get_or_create_item("tuition")
    category = find_or_create_category(course_code)
    subcategory = find_or_create_subcategory(class_id)

    invoices = []
    for number, due in ((1, invoice_1_due), (2, invoice_2_due)):
        invoices.append(create_invoice(
            customer_id=customer_id,
            item_id=item["Id"],
            unit_price_cents=tuition_cents,
            description=f"Tuition Payment {number} - {class_id}",
            category_id=category["Id"] if category else None,
            subcategory_id=subcategory["Id"] if subcategory else None,
            custom_fields=[
                ("ClassID", class_id),
                ("PaymentType", "tuition"),
                ("PaymentNumber", str(number)),
            ],
            quantity=0.5,
            due_date=due,
        ))
    return invoices
