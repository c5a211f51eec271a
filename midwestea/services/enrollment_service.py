# midwestea/services/enrollment_service.py
# Student, enrollment and payment records shared by checkout, waitlist
# and both payment webhooks.

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from midwestea.models.class_ import Class
from midwestea.models.payment import Payment
from midwestea.models.student import Enrollment, Student
from midwestea.services import supabase_auth
from midwestea.services.formatting import split_full_name

logger = logging.getLogger("midwestea.enrollments")

PLACEHOLDER_CLASS_ID = "UNASSIGNED"


# ── Students ──────────────────────────────────────────────────────────────────

def find_or_create_student(
    db: Session,
    email: str,
    full_name: Optional[str] = None,
) -> tuple[Student, bool]:
    """
    Resolve the auth identity for an email (creating it if needed) and
    make sure a students row with the same id exists.
    Returns (student, auth_user_existed).

    Names are only filled in when the row has none, never overwritten.
    Raises SupabaseAuthError if the identity store is unreachable.
    """
    email = email.strip().lower()
    user, existed = supabase_auth.find_or_create_user(email)
    user_id = UUID(str(user["id"]))

    student = db.query(Student).filter(Student.id == user_id).first()
    first_name, last_name = split_full_name(full_name or "")

    if not student:
        student = Student(
            id=user_id,
            email=email,
            full_name=full_name or None,
            first_name=first_name,
            last_name=last_name,
            has_required_info=False,
        )
        db.add(student)
        db.flush()
        logger.info(f"Created student {user_id} for {email}")
        return student, existed

    if not student.email:
        student.email = email
    if full_name and not (student.first_name or student.last_name):
        student.first_name, student.last_name = first_name, last_name
        student.full_name = full_name
    db.flush()
    return student, existed


# ── Classes ───────────────────────────────────────────────────────────────────

def get_class_by_class_id(db: Session, class_id: str) -> Optional[Class]:
    return db.query(Class).filter(Class.class_id == class_id).first()


def get_or_create_placeholder_class(db: Session) -> Class:
    """Payments that name no known class are parked on the UNASSIGNED class."""
    placeholder = get_class_by_class_id(db, PLACEHOLDER_CLASS_ID)
    if placeholder:
        return placeholder
    placeholder = Class(
        class_id=PLACEHOLDER_CLASS_ID,
        class_name="Unassigned",
        is_online=False,
    )
    db.add(placeholder)
    db.flush()
    logger.warning("Created placeholder class UNASSIGNED")
    return placeholder


# ── Enrollments & Payments ────────────────────────────────────────────────────

def create_enrollment(db: Session, student_id: UUID, class_uuid: UUID) -> Enrollment:
    """Idempotent: an existing (student, class) enrollment is returned as is."""
    enrollment = db.query(Enrollment).filter(
        Enrollment.student_id == student_id,
        Enrollment.class_id == class_uuid,
    ).first()
    if enrollment:
        return enrollment

    enrollment = Enrollment(
        student_id=student_id,
        class_id=class_uuid,
        enrollment_status="registered",
    )
    db.add(enrollment)
    db.flush()
    return enrollment


def create_payment(
    db: Session,
    enrollment_id: UUID,
    amount_cents: int,
    stripe_payment_intent_id: Optional[str] = None,
    stripe_receipt_url: Optional[str] = None,
) -> Payment:
    payment = Payment(
        enrollment_id=enrollment_id,
        amount_cents=amount_cents,
        stripe_payment_intent_id=stripe_payment_intent_id,
        stripe_receipt_url=stripe_receipt_url,
        payment_status="paid",
        paid_at=datetime.now(timezone.utc),
    )
    db.add(payment)
    db.flush()
    return payment
