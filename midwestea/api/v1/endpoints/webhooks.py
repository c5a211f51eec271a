# midwestea/api/v1/endpoints/webhooks.py
# Payment provider webhooks
#
# Stripe:
#   checkout.session.completed -> student, enrollment, payment, email
#   payment_intent.succeeded   -> invoices_to_import rows
#
# QuickBooks:
#   Payment/Create -> student, enrollment, follow-up tuition invoices
#
# Both handlers are async because they read the raw body. Handler bodies
# call provider SDKs synchronously and run in the threadpool; the enrollment
# email goes out as a background task after the response.

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.core.config import settings
from midwestea.db.session import get_db
from midwestea.services import email_service, quickbooks_service, stripe_service
from midwestea.services.audit_log import insert_log
from midwestea.services.enrollment_service import (
    create_enrollment,
    create_payment,
    find_or_create_student,
    get_class_by_class_id,
    get_or_create_placeholder_class,
)
from midwestea.services.invoice_service import (
    create_invoices_for_payment_intent,
    invoice_due_dates,
    invoices_for_payment_intent,
)
from midwestea.services.supabase_auth import SupabaseAuthError

logger = logging.getLogger("midwestea.webhooks")

router = APIRouter()


# ── Stripe ────────────────────────────────────────────────────────────────────

@router.post(
    "/stripe",
    summary="Stripe webhook receiver",
)
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Verifies the stripe-signature header against the raw body before
    touching the database. Unhandled event types are acknowledged.
    """
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")
    if not settings.stripe_webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    body = await request.body()
    try:
        event = stripe_service.construct_webhook_event(body, signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"Stripe webhook rejected: {e}")
        raise HTTPException(status_code=400, detail=f"Webhook signature verification failed: {e}")

    event_type = event.get("type")
    data = (event.get("data") or {}).get("object") or {}
    logger.info(f"Stripe webhook received: {event_type}")

    if event_type not in stripe_service.HANDLED_EVENTS:
        return {"received": True}
    if event_type == "checkout.session.completed":
        return await run_in_threadpool(_handle_checkout_completed, db, data, background_tasks)
    return await run_in_threadpool(_handle_payment_intent_succeeded, db, data)


def _handle_checkout_completed(db: Session, session: dict, background_tasks: BackgroundTasks) -> dict:
    email = session.get("customer_email") or (session.get("customer_details") or {}).get("email")
    if not email:
        raise HTTPException(status_code=400, detail="Could not extract email from checkout session")

    metadata = session.get("metadata") or {}
    try:
        student, _ = find_or_create_student(db, email, metadata.get("full_name"))
    except SupabaseAuthError as e:
        logger.error(f"Stripe checkout: student lookup failed for {email}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to find or create student: {e}")

    amount_cents = session.get("amount_total") or 0
    receipt_url = None
    payment_intent_id = session.get("payment_intent")
    if payment_intent_id:
        try:
            intent_amount, receipt_url = stripe_service.get_receipt_details(payment_intent_id)
            amount_cents = intent_amount or amount_cents
        except stripe.StripeError as e:
            logger.warning(f"Could not fetch receipt for {payment_intent_id}: {e}")

    class_ = None
    if metadata.get("class_id"):
        class_ = get_class_by_class_id(db, metadata["class_id"])
        if not class_:
            logger.warning(f"Stripe checkout: unknown class {metadata['class_id']}, using placeholder")
    if not class_:
        class_ = get_or_create_placeholder_class(db)

    enrollment = create_enrollment(db, student.id, class_.id)
    payment = create_payment(
        db,
        enrollment_id=enrollment.id,
        amount_cents=amount_cents,
        stripe_payment_intent_id=payment_intent_id or session.get("id"),
        stripe_receipt_url=receipt_url,
    )

    insert_log(
        db,
        action_type="payment_success",
        reference_id=student.id,
        reference_type="student",
        student_id=student.id,
        class_id=class_.id,
        amount=amount_cents,
    )

    background_tasks.add_task(_send_enrollment_email, db, student, class_, amount_cents, enrollment.id)

    logger.info(f"Stripe checkout recorded: {email} -> {class_.class_id} ({amount_cents} cents)")
    return {
        "success": True,
        "payment_id": str(payment.id),
        "enrollment_id": str(enrollment.id),
        "student_id": str(student.id),
        "amount_cents": amount_cents,
        "stripe_session_id": session.get("id"),
    }


def _send_enrollment_email(db: Session, student, class_, amount_cents: int, enrollment_id) -> None:
    """Runs after the response; the request transaction is already committed."""
    try:
        email_service.send_course_enrollment_email(db, student, class_, amount_cents, enrollment_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"Enrollment email failed for {student.email}: {e}")


def _handle_payment_intent_succeeded(db: Session, intent: dict) -> dict:
    metadata = intent.get("metadata") or {}
    email = intent.get("receipt_email") or metadata.get("email")
    if not email:
        logger.warning(f"payment_intent {intent.get('id')} has no email, skipping invoices")
        return {"received": True}

    # Stripe redelivers events; an intent is invoiced once
    invoices = invoices_for_payment_intent(db, intent.get("id"))
    if not invoices:
        invoices = create_invoices_for_payment_intent(db, intent, email)

    return {
        "received": True,
        "invoices": [invoice.invoice_number for invoice in invoices],
    }


# ── QuickBooks ────────────────────────────────────────────────────────────────

@router.post(
    "/quickbooks",
    summary="QuickBooks payment webhook receiver",
)
async def quickbooks_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Each Payment/Create entity is processed and committed on its own.
    A failing entity is rolled back and logged; the rest still run.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    notifications = payload.get("eventNotifications") or payload.get("EventNotifications") or []
    if not notifications:
        return {"received": True, "message": "No events to process"}

    await run_in_threadpool(_process_quickbooks_notifications, db, notifications)
    return {"received": True, "processed": True}


def _process_quickbooks_notifications(db: Session, notifications: list) -> None:
    for notification in notifications:
        entities = (notification.get("dataChangeEvent") or {}).get("entities") or []
        for entity in entities:
            if entity.get("name") != "Payment" or entity.get("operation") != "Create":
                continue
            try:
                _process_quickbooks_payment(db, entity)
                db.commit()
            except Exception as e:
                db.rollback()
                logger.error(f"QuickBooks payment {entity.get('id')} failed: {e}")


def _linked_invoice_id(payment: dict, entity: dict) -> Optional[str]:
    """First Invoice LinkedTxn on the payment lines, else on the entity itself."""
    for line in payment.get("Line") or []:
        for linked in line.get("LinkedTxn") or []:
            if linked.get("TxnType") == "Invoice":
                return linked.get("TxnId")
    for linked in entity.get("LinkedTxn") or []:
        if linked.get("TxnType") == "Invoice":
            return linked.get("TxnId")
    return None


def _process_quickbooks_payment(db: Session, entity: dict) -> None:
    payment = quickbooks_service.get_payment(entity["id"])
    invoice_id = _linked_invoice_id(payment, entity)
    if not invoice_id:
        logger.warning(f"QuickBooks payment {entity['id']} has no linked invoice")
        return

    invoice = quickbooks_service.get_invoice(invoice_id)
    customer_id = (invoice.get("CustomerRef") or {}).get("value")
    customer = quickbooks_service.get_customer(customer_id) if customer_id else None
    email = ((customer or {}).get("PrimaryEmailAddr") or {}).get("Address")
    if not email:
        logger.warning(f"QuickBooks invoice {invoice_id} has no customer email")
        return

    class_code = quickbooks_service.get_custom_field(invoice, "ClassID")
    class_ = get_class_by_class_id(db, class_code) if class_code else None
    if not class_:
        logger.warning(f"QuickBooks invoice {invoice_id}: unknown class {class_code}")
        return

    student, _ = find_or_create_student(db, email, (customer or {}).get("DisplayName"))
    create_enrollment(db, student.id, class_.id)

    amount_cents = round(sum(float(line.get("Amount") or 0) for line in payment.get("Line") or []) * 100)
    insert_log(
        db,
        action_type="student_registered",
        reference_id=class_.id,
        reference_type="class",
        student_id=student.id,
        class_id=class_.id,
    )
    insert_log(
        db,
        action_type="payment_success",
        reference_id=student.id,
        reference_type="student",
        student_id=student.id,
        class_id=class_.id,
        amount=amount_cents,
    )

    if class_.registration_fee and class_.price:
        due_1, due_2 = invoice_due_dates(class_)
        try:
            quickbooks_service.create_subsequent_invoices(
                customer_id=customer_id,
                tuition_cents=class_.price,
                class_id=class_.class_id,
                course_code=class_.course_code or "",
                invoice_1_due=due_1,
                invoice_2_due=due_2,
            )
        except quickbooks_service.QuickBooksError as e:
            logger.warning(f"Follow-up tuition invoices failed for {email} ({class_.class_id}): {e}")

    logger.info(f"QuickBooks payment {entity['id']} recorded: {email} -> {class_.class_id}")
