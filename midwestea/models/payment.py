# midwestea/models/payment.py
# Money movement: Stripe payments, accounting transactions, and the
# invoices_to_import staging table that feeds the QuickBooks CSV import.
# All amounts are integer cents.

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from midwestea.db.base_class import Base


class Payment(Base):
    """
    A captured Stripe payment, always attached to an enrollment.
    Written by the Stripe webhook.
    """
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount_cents = Column(Integer, nullable=False)
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)
    stripe_receipt_url = Column(Text, nullable=True)
    payment_status = Column(String(50), nullable=False, default="paid")

    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    enrollment = relationship("Enrollment", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment amount={self.amount_cents} status={self.payment_status}>"


class Transaction(Base):
    """
    One invoiceable line for accounting.

    A class with a registration fee produces three rows:
        registration_fee (quantity 1), tuition_a and tuition_b (quantity 0.5 each).

    reconciled / reconciliation_date are flipped by staff once the row is
    matched against a payout. downloaded is set by the CSV export.
    """
    __tablename__ = "transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_number = Column(Integer, nullable=True, index=True)

    student_id = Column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    class_id = Column(
        UUID(as_uuid=True),
        ForeignKey("classes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    transaction_type = Column(
        Enum("registration_fee", "tuition_a", "tuition_b", name="transaction_type_enum"),
        nullable=False,
        default="registration_fee",
    )
    quantity = Column(Float, nullable=False, default=1)          # 1 or 0.5
    amount_due = Column(Integer, nullable=False, default=0)      # Cents
    transaction_status = Column(
        Enum("pending", "paid", "cancelled", "refunded", name="transaction_status_enum"),
        nullable=False,
        default="pending",
        index=True,
    )
    due_date = Column(Date, nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)

    # ── Export / reconciliation flags ─────────────────────────────────────────
    downloaded = Column(Boolean, nullable=False, default=False, index=True)
    reconciled = Column(Boolean, nullable=False, default=False, index=True)
    reconciliation_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    student = relationship("Student")
    class_ = relationship("Class")

    def __repr__(self) -> str:
        return (
            f"<Transaction invoice={self.invoice_number} type={self.transaction_type} "
            f"reconciled={self.reconciled}>"
        )


class InvoiceToImport(Base):
    """
    Staging row for the QuickBooks invoice import.
    invoice_number is a running sequence starting at 100001.
    """
    __tablename__ = "invoices_to_import"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_number = Column(Integer, unique=True, nullable=False, index=True)

    customer_email = Column(String(255), nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)

    item = Column(String(255), nullable=False)              # "{course}:{class_id}:registration"
    memo = Column(Text, nullable=True)
    item_amount = Column(Integer, nullable=False)           # Cents
    item_quantity = Column(Integer, nullable=False, default=1)
    item_rate = Column(Float, nullable=False, default=0.5)

    payment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
    )
    class_id = Column(
        UUID(as_uuid=True),
        ForeignKey("classes.id", ondelete="SET NULL"),
        nullable=True,
    )
    transaction_id = Column(
        UUID(as_uuid=True),
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    invoice_sequence = Column(Integer, nullable=False, default=1)   # 1 | 2
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)

    category = Column(String(100), nullable=True)       # Course code
    subcategory = Column(String(100), nullable=True)    # Class ID

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<InvoiceToImport number={self.invoice_number} seq={self.invoice_sequence}>"
