# midwestea/api/v1/endpoints/checkout.py
# Public checkout endpoints used by the Webflow checkout pages
#
# Flow (card):
#   1. POST /create-checkout-session -> Stripe-hosted checkout URL
#   2. Stripe calls /api/webhooks/stripe on success
#   3. POST /confirm-payment lets the success page show the final status
#
# Flow (invoice):
#   POST /create-invoice -> QuickBooks invoice with a payment link
#   QuickBooks calls /api/webhooks/quickbooks once it is paid

import logging
from typing import Optional
from uuid import UUID

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.core.config import settings
from midwestea.db.session import get_db
from midwestea.models.class_ import Class
from midwestea.models.student import Student
from midwestea.schemas.checkout import (
    CheckoutSessionResponse,
    ConfirmPaymentRequest,
    CreateCheckoutSessionRequest,
    CreateInvoiceRequest,
    CreateInvoiceResponse,
    EnsureUserRequest,
    EnsureUserResponse,
    PaymentLinkRequest,
    PaymentLinkResponse,
)
from midwestea.services import quickbooks_service, stripe_service, supabase_auth
from midwestea.services.enrollment_service import get_class_by_class_id
from midwestea.services.quickbooks_service import QuickBooksError
from midwestea.services.supabase_auth import SupabaseAuthError

logger = logging.getLogger("midwestea.checkout")

router = APIRouter()


def _request_origin(request: Request) -> str:
    return (request.headers.get("origin") or settings.checkout_base_url).rstrip("/")


# ── Stripe Checkout ───────────────────────────────────────────────────────────

@router.post(
    "/create-checkout-session",
    summary="Create a Stripe checkout session for one class seat",
)
def create_checkout_session(
    payload: CreateCheckoutSessionRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")
    if not payload.full_name:
        raise HTTPException(status_code=400, detail="Full name is required")
    if not payload.class_id:
        raise HTTPException(status_code=400, detail="Class ID is required")

    if not stripe_service.is_configured():
        logger.error("STRIPE_SECRET_KEY is not configured")
        raise HTTPException(status_code=500, detail="Stripe secret key is not configured")

    class_ = get_class_by_class_id(db, payload.class_id)
    if not class_:
        raise HTTPException(
            status_code=404,
            detail=f"Class not found with class_id: {payload.class_id}",
        )
    if not class_.stripe_price_id:
        raise HTTPException(
            status_code=400,
            detail=f"Class {payload.class_id} does not have a stripe_price_id configured",
        )

    try:
        customer = stripe_service.find_or_create_customer(payload.email, payload.full_name)
        session = stripe_service.create_checkout_session(
            customer_id=customer.id,
            price_id=class_.stripe_price_id,
            full_name=payload.full_name,
            class_id=payload.class_id,
            origin=_request_origin(request),
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout failed for {payload.class_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=e.user_message or str(e) or "Failed to create checkout session",
        )

    if not session.url:
        raise HTTPException(
            status_code=500,
            detail="Failed to generate checkout URL. Please try again.",
        )

    return CheckoutSessionResponse(checkout_url=session.url).model_dump(by_alias=True)


@router.post(
    "/confirm-payment",
    summary="Look up the status of a payment intent",
)
def confirm_payment(payload: ConfirmPaymentRequest):
    if not payload.payment_intent_id:
        raise HTTPException(status_code=400, detail="Payment Intent ID is required")

    try:
        intent = stripe_service.retrieve_payment_intent(payload.payment_intent_id)
    except stripe_service.StripeNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except stripe.StripeError as e:
        raise HTTPException(status_code=500, detail=e.user_message or str(e) or "Failed to confirm payment")

    return {
        "status": intent.status,
        "paymentIntent": {
            "id": intent.id,
            "amount": intent.amount,
            "currency": intent.currency,
            "status": intent.status,
            "metadata": dict(intent.metadata or {}),
        },
    }


# ── QuickBooks Invoice ────────────────────────────────────────────────────────

def _invoice_amount_and_sku(class_: Class) -> tuple[int, str]:
    """Registration fee when the class has one, else full tuition."""
    if class_.registration_fee and class_.registration_fee > 0:
        return class_.registration_fee, "registration fee"
    return class_.price or 0, "tuition"


@router.post(
    "/create-invoice",
    summary="Create a QuickBooks invoice and return its payment link",
)
def create_invoice(
    payload: CreateInvoiceRequest,
    db: Session = Depends(get_db),
):
    """
    Category (course code) and subcategory (class id) are optional extras:
    if QuickBooks refuses to create them the invoice is created without them.
    """
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")
    if not payload.class_id:
        raise HTTPException(status_code=400, detail="Class ID is required")

    class_ = get_class_by_class_id(db, payload.class_id)
    if not class_:
        raise HTTPException(status_code=404, detail=f'Class with ID "{payload.class_id}" not found')

    amount_cents, sku = _invoice_amount_and_sku(class_)
    if amount_cents <= 0:
        raise HTTPException(status_code=400, detail="Class has no valid price or registration fee")

    try:
        customer = quickbooks_service.get_or_create_customer(payload.email)
    except QuickBooksError as e:
        logger.error(f"QuickBooks customer failed for {payload.email}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get or create customer: {e}")

    try:
        item = quickbooks_service.get_or_create_item(sku)
    except QuickBooksError as e:
        logger.error(f'QuickBooks item "{sku}" failed: {e}')
        raise HTTPException(status_code=500, detail=f"Failed to get or create item: {e}")

    category_id = _optional_ref(quickbooks_service.find_or_create_category, "category", class_.course_code)
    subcategory_id = _optional_ref(quickbooks_service.find_or_create_subcategory, "subcategory", payload.class_id)

    try:
        invoice = quickbooks_service.create_invoice(
            customer_id=customer["Id"],
            item_id=item["Id"],
            unit_price_cents=amount_cents,
            description=f"{sku.title()} - {class_.class_name or payload.class_id}",
            category_id=category_id,
            subcategory_id=subcategory_id,
            custom_fields=[("ClassID", payload.class_id)],
        )
    except QuickBooksError as e:
        logger.error(f"QuickBooks invoice failed for {payload.email}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create invoice: {e}")

    if not invoice.get("Id"):
        raise HTTPException(status_code=500, detail="Invoice created but missing ID")

    try:
        payment_url = quickbooks_service.get_invoice_payment_url(invoice)
    except QuickBooksError as e:
        raise HTTPException(status_code=500, detail=f"Failed to get payment URL: {e}")

    logger.info(f"Invoice {invoice['Id']} created for {payload.email} ({payload.class_id})")
    return CreateInvoiceResponse(
        invoice_id=str(invoice["Id"]),
        payment_url=payment_url,
        invoice=invoice,
    ).model_dump(by_alias=True)


def _optional_ref(find_or_create, kind: str, name: Optional[str]) -> Optional[str]:
    """Id of a category/subcategory, or None with a warning on any QuickBooks failure."""
    if not name:
        return None
    try:
        entity = find_or_create(name)
    except QuickBooksError as e:
        logger.warning(f"Skipping QuickBooks {kind} {name}: {e}")
        return None
    return entity.get("Id") if entity else None


# ── Payment Link ──────────────────────────────────────────────────────────────

@router.post(
    "/get-payment-link",
    summary="Return the class's Stripe payment link",
)
def get_payment_link(
    payload: PaymentLinkRequest,
    db: Session = Depends(get_db),
):
    if not payload.class_id:
        raise HTTPException(status_code=400, detail="Class ID is required")

    class_ = get_class_by_class_id(db, payload.class_id)
    if not class_:
        raise HTTPException(status_code=404, detail=f'Class "{payload.class_id}" not found')
    if not class_.stripe_payment_link:
        raise HTTPException(
            status_code=400,
            detail=f'Class "{payload.class_id}" does not have a stripe_payment_link set',
        )

    return PaymentLinkResponse(payment_url=class_.stripe_payment_link).model_dump(by_alias=True)


# ── Identity ──────────────────────────────────────────────────────────────────

@router.post(
    "/ensure-user",
    summary="Make sure an auth identity and student row exist for an email",
)
def ensure_user(
    payload: EnsureUserRequest,
    db: Session = Depends(get_db),
):
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")

    email = payload.email.strip().lower()
    try:
        user, user_existed = supabase_auth.find_or_create_user(email)
    except SupabaseAuthError as e:
        logger.error(f"ensure-user failed for {email}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create user: {e}")

    user_id = UUID(str(user["id"]))
    student = db.query(Student).filter(Student.id == user_id).first()
    student_exists = student is not None
    if not student:
        db.add(Student(id=user_id, email=email, has_required_info=False))
        db.flush()

    if not user_existed:
        message = "User and student created successfully"
    elif student_exists:
        message = "User and student already exist"
    else:
        message = "User existed, student record created"

    return EnsureUserResponse(
        user_existed=user_existed,
        student_exists=student_exists,
        user_id=str(user_id),
        message=message,
    ).model_dump(by_alias=True)
