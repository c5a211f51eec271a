# midwestea/services/invoice_service.py
# Builds invoices_to_import rows for the QuickBooks import file
#
# A paid registration becomes two consecutive invoices, each half the class
# price. Payments that cannot be tied to a class become a single invoice.

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import stripe
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from midwestea.models.class_ import Class
from midwestea.models.payment import InvoiceToImport, Payment, Transaction
from midwestea.services import stripe_service
from midwestea.services.enrollment_service import get_class_by_class_id

logger = logging.getLogger("midwestea.invoices")

FIRST_INVOICE_NUMBER = 100001
FIRST_INVOICE_OFFSET = timedelta(days=21)    # Before class start
SECOND_INVOICE_OFFSET = timedelta(days=7)    # After class start


def next_invoice_number(db: Session) -> int:
    current = db.query(func.max(InvoiceToImport.invoice_number)).scalar()
    return current + 1 if current else FIRST_INVOICE_NUMBER


def invoice_due_dates(class_: Class) -> tuple[Optional[date], Optional[date]]:
    """(start - 21 days, start + 7 days), or (None, None) without a start date."""
    if not class_.class_start_date:
        return None, None
    start = class_.class_start_date
    return start - FIRST_INVOICE_OFFSET, start + SECOND_INVOICE_OFFSET


def create_registration_fee_invoices(
    db: Session,
    class_: Class,
    customer_email: str,
    payment_date: date,
    payment_id: Optional[UUID] = None,
    payment_intent_id: Optional[str] = None,
) -> list[InvoiceToImport]:
    """
    Insert invoice 1 and invoice 2 for a class registration.
    Due dates come from the class schedule, else payment date +30 / +60 days.
    """
    due_1, due_2 = invoice_due_dates(class_)
    due_1 = due_1 or payment_date + timedelta(days=30)
    due_2 = due_2 or payment_date + timedelta(days=60)

    price_cents = class_.price or class_.registration_fee or 0
    amount_per_invoice = price_cents // 2
    base_number = next_invoice_number(db)

    item = f"{class_.course_code or ''}:{class_.class_id or ''}:registration"
    memo = ", ".join(
        part for part in ("Registration", class_.class_name, class_.course_code, class_.class_id) if part
    )

    invoices = []
    for sequence, due in ((1, due_1), (2, due_2)):
        invoice = InvoiceToImport(
            invoice_number=base_number + sequence - 1,
            customer_email=customer_email,
            invoice_date=payment_date,
            due_date=due,
            item=item,
            memo=memo,
            item_amount=amount_per_invoice,
            item_quantity=1,
            item_rate=0.5,
            payment_id=payment_id,
            class_id=class_.id,
            invoice_sequence=sequence,
            stripe_payment_intent_id=payment_intent_id,
            category=class_.course_code or None,
            subcategory=class_.class_id or None,
        )
        db.add(invoice)
        invoices.append(invoice)

    db.flush()
    logger.info(
        f"Created invoices {base_number} and {base_number + 1} for {customer_email} ({class_.class_id})"
    )
    return invoices


def create_single_invoice(
    db: Session,
    customer_email: str,
    amount_cents: int,
    payment_date: date,
    payment_intent_id: str,
    class_code: Optional[str] = None,
    course_code: Optional[str] = None,
) -> InvoiceToImport:
    """One invoice for a payment with no known class, due in 30 days."""
    invoice = InvoiceToImport(
        invoice_number=next_invoice_number(db),
        customer_email=customer_email,
        invoice_date=payment_date,
        due_date=payment_date + timedelta(days=30),
        item=f"{course_code or 'UNASSIGNED'}:{class_code}:registration" if class_code else "registration",
        memo=f"Invoice from payment intent {payment_intent_id}",
        item_amount=amount_cents,
        item_quantity=1,
        item_rate=0.5,
        invoice_sequence=1,
        stripe_payment_intent_id=payment_intent_id or None,
        category=course_code,
        subcategory=class_code,
    )
    db.add(invoice)
    db.flush()
    logger.info(f"Created invoice {invoice.invoice_number} for {customer_email} (no class)")
    return invoice


# ── Payment Intents ───────────────────────────────────────────────────────────

def invoices_for_payment_intent(db: Session, payment_intent_id: str) -> list[InvoiceToImport]:
    if not payment_intent_id:
        return []
    return db.query(InvoiceToImport).filter(
        InvoiceToImport.stripe_payment_intent_id == payment_intent_id,
    ).order_by(InvoiceToImport.invoice_number).all()


def create_invoices_for_payment_intent(
    db: Session,
    intent: dict,
    customer_email: str,
) -> list[InvoiceToImport]:
    """
    Invoice rows for one succeeded payment intent.

    metadata.class_id (or classId) naming a known class gives the
    registration pair; anything else gives a single invoice for the amount.
    The invoice date is the intent's creation date.
    """
    metadata = intent.get("metadata") or {}
    created = intent.get("created")
    payment_date = (
        datetime.fromtimestamp(created, tz=timezone.utc).date()
        if created else datetime.now(timezone.utc).date()
    )

    class_code = metadata.get("class_id") or metadata.get("classId")
    class_ = get_class_by_class_id(db, class_code) if class_code else None
    if class_:
        return create_registration_fee_invoices(
            db,
            class_,
            customer_email,
            payment_date,
            payment_intent_id=intent.get("id"),
        )
    return [create_single_invoice(
        db,
        customer_email=customer_email,
        amount_cents=intent.get("amount") or 0,
        payment_date=payment_date,
        payment_intent_id=intent.get("id") or "",
        class_code=class_code,
        course_code=metadata.get("courseCode") or metadata.get("course_code"),
    )]


def _known_payment_intent_ids(db: Session) -> set[str]:
    known = set()
    for column in (
        InvoiceToImport.stripe_payment_intent_id,
        Payment.stripe_payment_intent_id,
        Transaction.stripe_payment_intent_id,
    ):
        known.update(value for (value,) in db.query(column).filter(column.isnot(None)).all())
    return known


def _intent_email(intent: dict) -> Optional[str]:
    email = intent.get("receipt_email") or (intent.get("metadata") or {}).get("email")
    if email or not intent.get("customer"):
        return email
    try:
        return stripe_service.get_customer_email(intent["customer"])
    except stripe.StripeError as exc:
        logger.warning(f"Could not fetch customer for {intent.get('id')}: {exc}")
        return None


def sync_stripe_invoices(db: Session, limit: int = 100) -> dict:
    """
    Backfill invoices_to_import from Stripe's most recent payment intents.

    Intents already seen (in invoices, payments or transactions) and intents
    that have not succeeded are skipped. Each intent is written under its own
    savepoint, so one bad row does not lose the others.
    """
    intents = stripe_service.list_payment_intents(limit=limit)
    known = _known_payment_intent_ids(db)
    results = {"total": len(intents), "processed": 0, "skipped": 0, "created": 0}
    errors = []

    for intent in intents:
        intent_id = intent.get("id")
        if intent_id in known or intent.get("status") != "succeeded":
            results["skipped"] += 1
            continue

        email = _intent_email(intent)
        if not email:
            errors.append({"payment_intent_id": intent_id, "error": "No customer email on payment intent"})
            continue

        try:
            with db.begin_nested():
                invoices = create_invoices_for_payment_intent(db, intent, email)
        except SQLAlchemyError as exc:
            logger.error(f"Invoice sync failed for {intent_id}: {exc}")
            errors.append({"payment_intent_id": intent_id, "error": str(exc)})
            continue

        known.add(intent_id)
        results["processed"] += 1
        results["created"] += len(invoices)

    logger.info(f"Stripe invoice sync: {results}, {len(errors)} error(s)")
    return {**results, "errors": len(errors), "errorDetails": errors}
