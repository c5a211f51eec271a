# midwestea/services/audit_log.py
# Audit trail writes and the natural-language rendering used on detail pages
#
# insert_log() is best effort: a failed audit write is logged and swallowed
# so it never fails the request that triggered it.

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from midwestea.models.log import Log

logger = logging.getLogger("midwestea.audit")

HEARTBEAT_MESSAGE = "standard chron job to keep db active"

# Short labels per reference_type, used by format_log_message
FIELD_LABELS: dict[str, dict[str, str]] = {
    "program": {
        "name": "Program Name",
        "price": "Price",
        "registration_fee": "Registration Fee",
    },
    "course": {
        "name": "Course Name",
        "price": "Price",
        "registration_fee": "Registration Fee",
    },
    "class": {
        "name": "Class Name",
        "class_name": "Class Name",
        "start_date": "Start Date",
        "class_start_date": "Start Date",
        "end_date": "End Date",
        "class_close_date": "End Date",
        "location": "Location",
        "enrollment_start": "Enrollment Start",
        "enrollment_close": "Enrollment Close",
        "is_online": "Online Class",
        "length_of_class": "Length of Class",
        "certification_length": "Cert. Length",
        "graduation_rate": "Graduation Rate",
        "registration_limit": "Registration Limit",
        "price": "Price",
        "registration_fee": "Registration Fee",
    },
    "student": {
        "first_name": "First Name",
        "last_name": "Last Name",
        "email": "Email",
        "phone": "Phone Number",
        "t_shirt_size": "T-Shirt Size",
        "emergency_contact_name": "Emergency Contact Name",
        "emergency_contact_phone": "Emergency Contact Phone",
        "has_required_info": "Has Required Info",
    },
}


# ── Writes ────────────────────────────────────────────────────────────────────

def insert_log(
    db: Session,
    action_type: str,
    reference_id: Optional[UUID] = None,
    reference_type: Optional[str] = None,
    admin_user_id: Optional[UUID] = None,
    field_name: Optional[str] = None,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
    batch_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    amount: Optional[int] = None,
    message: Optional[str] = None,
) -> Optional[Log]:
    """
    Add one row to logs inside the caller's transaction, under a savepoint
    so a failed write leaves the rest of the transaction intact.
    Empty strings are stored as NULL. Returns None if the write failed.
    """
    entry = Log(
        admin_user_id=admin_user_id,
        reference_id=reference_id,
        reference_type=reference_type,
        action_type=action_type,
        field_name=field_name or None,
        old_value=old_value or None,
        new_value=new_value or None,
        batch_id=batch_id,
        student_id=student_id,
        class_id=class_id,
        amount=amount or None,
        message=message,
        timestamp=datetime.now(timezone.utc),
    )
    # Caller state is flushed outside the savepoint; its errors propagate
    db.flush()
    try:
        with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError as exc:
        logger.warning(f"Audit log write failed ({action_type} {reference_type}:{reference_id}): {exc}")
        return None
    return entry


def insert_heartbeat(db: Session) -> Log:
    """Heartbeat rows are the whole point of the job, so errors propagate here."""
    entry = Log(
        action_type="heartbeat",
        message=HEARTBEAT_MESSAGE,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(entry)
    db.flush()
    return entry


# ── Rendering ─────────────────────────────────────────────────────────────────

def format_timestamp(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """
    Relative time for recent events, "Mar 7, 2025" after a week.
    """
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    seconds = int((now - timestamp).total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400

    if seconds < 5:
        return "just now"
    if seconds < 60:
        return f"{seconds} seconds ago"
    if minutes < 60:
        return f"{minutes} {'minute' if minutes == 1 else 'minutes'} ago"
    if hours < 24:
        return f"{hours} {'hour' if hours == 1 else 'hours'} ago"
    if days < 7:
        return f"{days} {'day' if days == 1 else 'days'} ago"
    return f"{timestamp.strftime('%b')} {timestamp.day}, {timestamp.year}"


def get_field_label(reference_type: Optional[str], field_name: str) -> str:
    label = FIELD_LABELS.get(reference_type or "", {}).get(field_name)
    if label:
        return label
    return " ".join(word.capitalize() for word in field_name.split("_"))


def _student_part(student) -> str:
    if not student:
        return "Unknown Student"
    name = f"{student.first_name or ''} {student.last_name or ''}".strip() or "Unknown Student"
    return f"{name} ({student.email})" if student.email else name


def format_log_message(
    log: Log,
    student=None,
    human_class_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Render a log row for the admin UI, e.g.
        'Jane Doe updated the Price from "100" to "200" – 3 minutes ago'

    Args:
        log: The row; log.admin supplies the actor name
        student: Student row for student_* and payment_success events
        human_class_id: classes.class_id for class_created on course pages
    """
    admin_name = log.admin.display_name if log.admin else "Unknown Admin"
    when = format_timestamp(log.timestamp, now)
    action = log.action_type

    if action == "detail_updated":
        if not log.field_name:
            return f"{admin_name} updated this {log.reference_type} – {when}"
        label = get_field_label(log.reference_type, log.field_name)
        if not log.old_value:
            return f'{admin_name} added {label}: "{log.new_value or ""}" – {when}'
        if not log.new_value:
            return f"{admin_name} removed {label} – {when}"
        return f'{admin_name} updated the {label} from "{log.old_value}" to "{log.new_value}" – {when}'

    if action == "class_created":
        if log.reference_type in ("course", "program") and human_class_id:
            return f"{admin_name} created Class ID {human_class_id} – {when}"
        return f"{admin_name} created this class – {when}"

    if action == "class_updated":
        return f"{admin_name} updated this class – {when}"

    if action == "class_deleted":
        return f"{admin_name} deleted this class – {when}"

    if action == "student_added":
        return f"{admin_name} added {_student_part(student)} to this class – {when}"

    if action == "student_removed":
        return f"{admin_name} removed {_student_part(student)} from this class – {when}"

    if action == "student_registered":
        return f"{_student_part(student)} registered for this class – {when}"

    if action == "payment_success":
        amount = f"${log.amount / 100:.2f}" if log.amount else "$0.00"
        return f"{_student_part(student)} paid {amount} – {when}"

    if action == "heartbeat":
        return f"{log.message or HEARTBEAT_MESSAGE} – {when}"

    return f"Action performed – {when}"
