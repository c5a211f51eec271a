"""initial schema: catalogue, students, payments, accounting, logs

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None

ENUM_NAMES = (
    "program_type_enum",
    "transaction_type_enum",
    "transaction_status_enum",
    "log_reference_type_enum",
    "log_action_type_enum",
)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "admins",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("admin_level", sa.String(length=50), nullable=False, server_default="standard"),
        sa.Column("permissions", postgresql.JSONB(), nullable=True),
        _timestamp("created_at"),
        _timestamp("deleted_at", nullable=True),
    )
    op.create_index("ix_admins_email", "admins", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("course_name", sa.String(length=255), nullable=False),
        sa.Column("course_code", sa.String(length=50), nullable=False),
        sa.Column("program_type", sa.Enum("course", "program", name="program_type_enum"), nullable=True),
        sa.Column("length_of_class", sa.String(length=100), nullable=True),
        sa.Column("certification_length", sa.Integer(), nullable=True),
        sa.Column("graduation_rate", sa.Integer(), nullable=True),
        sa.Column("registration_limit", sa.Integer(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=True),
        sa.Column("registration_fee", sa.Integer(), nullable=True),
        sa.Column("stripe_product_id", sa.String(length=255), nullable=True),
        sa.Column("course_image", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_courses_course_code", "courses", ["course_code"], unique=True)

    op.create_table(
        "classes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_uuid",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("class_name", sa.String(length=255), nullable=True),
        sa.Column("course_code", sa.String(length=50), nullable=True),
        sa.Column("class_id", sa.String(length=100), nullable=True),
        sa.Column("enrollment_start", sa.Date(), nullable=True),
        sa.Column("enrollment_close", sa.Date(), nullable=True),
        sa.Column("class_start_date", sa.Date(), nullable=True),
        sa.Column("class_close_date", sa.Date(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("product_id", sa.String(length=255), nullable=True),
        sa.Column("length_of_class", sa.String(length=100), nullable=True),
        sa.Column("certification_length", sa.Integer(), nullable=True),
        sa.Column("graduation_rate", sa.Integer(), nullable=True),
        sa.Column("registration_limit", sa.Integer(), nullable=True),
        sa.Column("programming_offering", sa.String(length=255), nullable=True),
        sa.Column("class_image", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=True),
        sa.Column("registration_fee", sa.Integer(), nullable=True),
        sa.Column("stripe_product_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_price_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_payment_link", sa.Text(), nullable=True),
        sa.Column("webflow_item_id", sa.String(length=255), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_classes_course_uuid", "classes", ["course_uuid"])
    op.create_index("ix_classes_course_code", "classes", ["course_code"])
    op.create_index("ix_classes_class_id", "classes", ["class_id"], unique=True)

    op.create_table(
        "students",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True),
        sa.Column("has_required_info", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("t_shirt_size", sa.String(length=10), nullable=True),
        sa.Column("vaccination_card_url", sa.Text(), nullable=True),
        sa.Column("emergency_contact_name", sa.String(length=255), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(length=50), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_students_email", "students", ["email"])

    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "class_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("classes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("enrollment_status", sa.String(length=50), nullable=False, server_default="registered"),
        sa.Column("onboarding_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("enrolled_at"),
        sa.UniqueConstraint("student_id", "class_id", name="uq_enrollment_student_class"),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_class_id", "enrollments", ["class_id"])

    op.create_table(
        "waitlist",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("course_code", sa.String(length=50), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("student_id", "course_code", name="uq_waitlist_student_course"),
    )
    op.create_index("ix_waitlist_student_id", "waitlist", ["student_id"])
    op.create_index("ix_waitlist_course_code", "waitlist", ["course_code"])

    op.create_table(
        "payments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "enrollment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("enrollments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_receipt_url", sa.Text(), nullable=True),
        sa.Column("payment_status", sa.String(length=50), nullable=False, server_default="paid"),
        _timestamp("paid_at", nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_payments_enrollment_id", "payments", ["enrollment_id"])
    op.create_index("ix_payments_stripe_payment_intent_id", "payments", ["stripe_payment_intent_id"])

    op.create_table(
        "transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("invoice_number", sa.Integer(), nullable=True),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("students.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "class_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("classes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "transaction_type",
            sa.Enum("registration_fee", "tuition_a", "tuition_b", name="transaction_type_enum"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
        sa.Column("amount_due", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "transaction_status",
            sa.Enum("pending", "paid", "cancelled", "refunded", name="transaction_status_enum"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        sa.Column("downloaded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reconciled", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("reconciliation_date", nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_transactions_invoice_number", "transactions", ["invoice_number"])
    op.create_index("ix_transactions_student_id", "transactions", ["student_id"])
    op.create_index("ix_transactions_class_id", "transactions", ["class_id"])
    op.create_index("ix_transactions_transaction_status", "transactions", ["transaction_status"])
    op.create_index("ix_transactions_stripe_payment_intent_id", "transactions", ["stripe_payment_intent_id"])
    op.create_index("ix_transactions_downloaded", "transactions", ["downloaded"])
    op.create_index("ix_transactions_reconciled", "transactions", ["reconciled"])

    op.create_table(
        "invoices_to_import",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("invoice_number", sa.Integer(), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("item", sa.String(length=255), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("item_amount", sa.Integer(), nullable=False),
        sa.Column("item_quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("item_rate", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column(
            "payment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("payments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "class_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("classes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "transaction_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("transactions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("invoice_sequence", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("subcategory", sa.String(length=100), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_invoices_to_import_invoice_number", "invoices_to_import", ["invoice_number"], unique=True)

    op.create_table(
        "logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "admin_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("admins.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("reference_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "reference_type",
            sa.Enum("program", "course", "class", "student", name="log_reference_type_enum"),
            nullable=True,
        ),
        sa.Column(
            "action_type",
            sa.Enum(
                "detail_updated",
                "class_created",
                "class_updated",
                "class_deleted",
                "student_added",
                "student_removed",
                "student_registered",
                "payment_success",
                "heartbeat",
                name="log_action_type_enum",
            ),
            nullable=False,
        ),
        sa.Column("field_name", sa.String(length=100), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("class_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        _timestamp("timestamp"),
    )
    op.create_index("ix_logs_admin_user_id", "logs", ["admin_user_id"])
    op.create_index("ix_logs_reference_id", "logs", ["reference_id"])
    op.create_index("ix_logs_student_id", "logs", ["student_id"])
    op.create_index("ix_logs_class_id", "logs", ["class_id"])
    op.create_index("ix_logs_timestamp", "logs", ["timestamp"])

    op.create_table(
        "email_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("recipient_email", sa.String(length=255), nullable=False),
        sa.Column("recipient_name", sa.String(length=255), nullable=True),
        sa.Column("subject", sa.String(length=500), nullable=False),
        sa.Column("email_type", sa.String(length=100), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_id", sa.String(length=255), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
    )
    op.create_index("ix_email_logs_recipient_email", "email_logs", ["recipient_email"])
    op.create_index("ix_email_logs_email_type", "email_logs", ["email_type"])
    op.create_index("ix_email_logs_student_id", "email_logs", ["student_id"])
    op.create_index("ix_email_logs_success", "email_logs", ["success"])
    op.create_index("ix_email_logs_created_at", "email_logs", ["created_at"])


def downgrade() -> None:
    for table in (
        "email_logs",
        "logs",
        "invoices_to_import",
        "transactions",
        "payments",
        "waitlist",
        "enrollments",
        "students",
        "classes",
        "courses",
        "admins",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUM_NAMES:
        sa.Enum(name=name).drop(bind, checkfirst=True)
