# midwestea/models/class_.py
# Course catalogue and scheduled class offerings
# A class belongs to a course; course_code is denormalised onto the class
# so checkout pages can filter without a join.

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
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


class Course(Base):
    """
    A course or program in the catalogue (EMT, Paramedic, CPR ...).
    program_type decides which Webflow collection its classes sync to.
    """
    __tablename__ = "courses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    course_name = Column(String(255), nullable=False)
    course_code = Column(String(50), unique=True, nullable=False, index=True)
    program_type = Column(
        Enum("course", "program", name="program_type_enum"),
        nullable=True,
        default="course",
    )

    # ── Defaults copied onto new classes ──────────────────────────────────────
    length_of_class = Column(String(100), nullable=True)
    certification_length = Column(Integer, nullable=True)    # Years
    graduation_rate = Column(Integer, nullable=True)         # Basis points (9550 = 95.50%)
    registration_limit = Column(Integer, nullable=True)
    price = Column(Integer, nullable=True)                   # Cents
    registration_fee = Column(Integer, nullable=True)        # Cents

    stripe_product_id = Column(String(255), nullable=True)
    course_image = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    classes = relationship("Class", back_populates="course")

    def __repr__(self) -> str:
        return f"<Course code={self.course_code} type={self.program_type}>"


class Class(Base):
    """
    One scheduled offering of a course.

    class_id is the human identifier ("EMT-004") used by checkout links,
    QuickBooks departments and Webflow items. id is the internal UUID.
    """
    __tablename__ = "classes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_uuid = Column(
        UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    class_name = Column(String(255), nullable=True)
    course_code = Column(String(50), nullable=True, index=True)
    class_id = Column(String(100), unique=True, nullable=True, index=True)

    # ── Schedule ──────────────────────────────────────────────────────────────
    enrollment_start = Column(Date, nullable=True)
    enrollment_close = Column(Date, nullable=True)
    class_start_date = Column(Date, nullable=True)
    class_close_date = Column(Date, nullable=True)

    location = Column(String(255), nullable=True)
    is_online = Column(Boolean, nullable=False, default=False)

    # ── Details ───────────────────────────────────────────────────────────────
    product_id = Column(String(255), nullable=True)
    length_of_class = Column(String(100), nullable=True)
    certification_length = Column(Integer, nullable=True)
    graduation_rate = Column(Integer, nullable=True)
    registration_limit = Column(Integer, nullable=True)
    programming_offering = Column(String(255), nullable=True)
    class_image = Column(Text, nullable=True)

    # ── Pricing (cents) ───────────────────────────────────────────────────────
    price = Column(Integer, nullable=True)
    registration_fee = Column(Integer, nullable=True)

    # ── Stripe ────────────────────────────────────────────────────────────────
    stripe_product_id = Column(String(255), nullable=True)
    stripe_price_id = Column(String(255), nullable=True)
    stripe_payment_link = Column(Text, nullable=True)

    # ── Webflow ───────────────────────────────────────────────────────────────
    webflow_item_id = Column(String(255), nullable=True)

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

    # ── Relationships ─────────────────────────────────────────────────────────
    course = relationship("Course", back_populates="classes")
    enrollments = relationship(
        "Enrollment", back_populates="class_", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Class class_id={self.class_id} course={self.course_code}>"
