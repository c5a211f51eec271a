# midwestea/models/student.py
# Students, their class enrollments, and course waitlist entries
# students.id is the Supabase Auth user id -- one row per identity

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from midwestea.db.base_class import Base


class Student(Base):
    """
    Student profile. Created on first checkout, waitlist signup or
    QuickBooks payment -- whichever comes first.
    """
    __tablename__ = "students"

    # Same UUID as the auth identity, no default on purpose
    id = Column(UUID(as_uuid=True), primary_key=True)

    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)   # Copy of auth email
    phone = Column(String(50), nullable=True)

    stripe_customer_id = Column(String(255), nullable=True)
    has_required_info = Column(Boolean, nullable=False, default=False)

    # ── Onboarding ────────────────────────────────────────────────────────────
    t_shirt_size = Column(String(10), nullable=True)
    vaccination_card_url = Column(Text, nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    enrollments = relationship(
        "Enrollment", back_populates="student", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self) -> str:
        return f"<Student id={self.id} email={self.email}>"


class Enrollment(Base):
    """A student's seat in a class."""
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_enrollment_student_class"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    class_id = Column(
        UUID(as_uuid=True),
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    enrollment_status = Column(String(50), nullable=False, default="registered")
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    enrolled_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    student = relationship("Student", back_populates="enrollments")
    class_ = relationship("Class", back_populates="enrollments")
    payments = relationship("Payment", back_populates="enrollment")

    def __repr__(self) -> str:
        return f"<Enrollment student={self.student_id} class={self.class_id}>"


class Waitlist(Base):
    """Interest in a course that has no open class yet."""
    __tablename__ = "waitlist"
    __table_args__ = (
        UniqueConstraint("student_id", "course_code", name="uq_waitlist_student_course"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_code = Column(String(50), nullable=False, index=True)   # Always upper-case

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    student = relationship("Student")

    def __repr__(self) -> str:
        return f"<Waitlist student={self.student_id} course={self.course_code}>"
