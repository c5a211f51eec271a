# midwestea/services/stripe_service.py
# Stripe API wrapper
# Handles customers, hosted checkout sessions, payment intents and webhook verification
#
# Stripe checkout flow:
#   1. Checkout page posts email/name/classId -> create_checkout_session()
#   2. Browser is redirected to the Stripe-hosted session URL
#   3. Stripe sends checkout.session.completed -> /api/webhooks/stripe
#   4. Webhook records the student, enrollment and payment

import json
import logging
from typing import Optional

import stripe

from midwestea.core.config import settings

logger = logging.getLogger("midwestea.stripe")


class StripeNotConfigured(RuntimeError):
    pass


def _api_key() -> str:
    if not settings.stripe_secret_key:
        raise StripeNotConfigured("Stripe secret key is not configured")
    return settings.stripe_secret_key


def is_configured() -> bool:
    return bool(settings.stripe_secret_key)


# ── Customers ─────────────────────────────────────────────────────────────────

def find_or_create_customer(email: str, name: Optional[str] = None) -> stripe.Customer:
    """Reuse the first Stripe customer with this email, else create one."""
    api_key = _api_key()
    existing = stripe.Customer.list(email=email, limit=1, api_key=api_key)
    if existing.data:
        return existing.data[0]

    params = {"email": email}
    if name:
        params["name"] = name
    customer = stripe.Customer.create(api_key=api_key, **params)
    logger.info(f"Created Stripe customer {customer.id} for {email}")
    return customer


# ── Checkout ──────────────────────────────────────────────────────────────────

def create_checkout_session(
    customer_id: str,
    price_id: str,
    full_name: str,
    class_id: str,
    origin: str,
) -> stripe.checkout.Session:
    """
    Create a one-off payment session for a single class seat.

    Args:
        customer_id: Stripe customer to attach the session to
        price_id: classes.stripe_price_id
        full_name: Stored in metadata for the webhook
        class_id: Human class id, stored in metadata and the cancel URL
        origin: Checkout site origin for the redirect URLs
    """
    return stripe.checkout.Session.create(
        api_key=_api_key(),
        customer=customer_id,
        line_items=[{"price": price_id, "quantity": 1}],
        mode="payment",
        metadata={"full_name": full_name, "class_id": class_id},
        success_url=f"{origin}/checkout/success",
        cancel_url=f"{origin}/checkout/details?classID={class_id}",
    )


# ── Payment Intents ───────────────────────────────────────────────────────────

def retrieve_payment_intent(payment_intent_id: str) -> stripe.PaymentIntent:
    return stripe.PaymentIntent.retrieve(payment_intent_id, api_key=_api_key())


def get_receipt_details(payment_intent_id: str) -> tuple[Optional[int], Optional[str]]:
    """
    Return (amount_cents, receipt_url) for a payment intent.
    receipt_url comes from the latest charge and may be missing.
    """
    intent = retrieve_payment_intent(payment_intent_id)
    receipt_url = None
    latest_charge = intent.get("latest_charge")
    if latest_charge:
        charge_id = latest_charge if isinstance(latest_charge, str) else latest_charge["id"]
        charge = stripe.Charge.retrieve(charge_id, api_key=_api_key())
        receipt_url = charge.get("receipt_url")
    return intent.get("amount"), receipt_url


def list_payment_intents(limit: int = 100) -> list[dict]:
    """Most recent payment intents, as plain dicts like the webhook payloads."""
    page = stripe.PaymentIntent.list(limit=limit, api_key=_api_key())
    return list(page.last_response.data.get("data") or [])


def get_customer_email(customer_id: str) -> Optional[str]:
    customer = stripe.Customer.retrieve(customer_id, api_key=_api_key())
    if customer.get("deleted"):
        return None
    return customer.get("email")


# ── Webhooks ──────────────────────────────────────────────────────────────────

def construct_webhook_event(payload_body: bytes, signature: str) -> dict:
    """
    Verify the stripe-signature header against the raw body and parse the
    event as a plain dict.
    Raises stripe.SignatureVerificationError or ValueError on bad input.
    """
    stripe.WebhookSignature.verify_header(
        payload_body.decode("utf-8"),
        signature,
        settings.stripe_webhook_secret,
        stripe.Webhook.DEFAULT_TOLERANCE,
    )
    return json.loads(payload_body)


# ── Webhook Event Types We Handle ────────────────────────────────────────────
HANDLED_EVENTS = {
    "checkout.session.completed",   # Payment link / hosted checkout paid
    "payment_intent.succeeded",     # Feeds invoices_to_import
}
