# midwestea/models/log.py
# Audit trail shown on admin detail pages, plus the email delivery log
#
# The heartbeat job also writes to logs (action_type='heartbeat', message set)
# so the Supabase project never goes idle.

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from midwestea.db.base_class import Base

REFERENCE_TYPES = ("program", "course", "class", "student")
ACTION_TYPES = (
    "detail_updated",
    "class_created",
    "class_updated",
    "class_deleted",
    "student_added",
    "student_removed",
    "student_registered",
    "payment_success",
    "heartbeat",
)


class Log(Base):
    """
    One audit event. reference_id/reference_type point at the page the
    event belongs to; student_id/class_id are optional extra context.
    No foreign keys on purpose: a deleted class keeps its history.
    """
    __tablename__ = "logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    admin_user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("admins.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    reference_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    reference_type = Column(Enum(*REFERENCE_TYPES, name="log_reference_type_enum"), nullable=True)
    action_type = Column(Enum(*ACTION_TYPES, name="log_action_type_enum"), nullable=False)

    # ── detail_updated ────────────────────────────────────────────────────────
    field_name = Column(String(100), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)

    batch_id = Column(UUID(as_uuid=True), nullable=True)
    student_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    class_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    amount = Column(Integer, nullable=True)                   # Cents

    message = Column(Text, nullable=True)                     # Heartbeat text

    timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    admin = relationship("Admin")

    def __repr__(self) -> str:
        return f"<Log action={self.action_type} ref={self.reference_type}:{self.reference_id}>"


class EmailLog(Base):
    """Every send attempt through SendGrid, successful or not."""
    __tablename__ = "email_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_email = Column(String(255), nullable=False, index=True)
    recipient_name = Column(String(255), nullable=True)
    subject = Column(String(500), nullable=False)
    email_type = Column(String(100), nullable=False, index=True)   # course_enrollment | ...

    enrollment_id = Column(UUID(as_uuid=True), nullable=True)
    student_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    success = Column(Boolean, nullable=False, default=False, index=True)
    email_id = Column(String(255), nullable=True)                  # SendGrid X-Message-Id
    error = Column(Text, nullable=True)
    retries = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<EmailLog to={self.recipient_email} type={self.email_type} ok={self.success}>"
