"""invoices_to_import: record the source Stripe payment intent

Revision ID: 20261025_0002
Revises: 20261018_0001
Create Date: 2026-10-25
"""

from alembic import op
import sqlalchemy as sa


revision = "20261025_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "invoices_to_import",
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
    )
    op.create_index(
        "ix_invoices_to_import_stripe_payment_intent_id",
        "invoices_to_import",
        ["stripe_payment_intent_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_invoices_to_import_stripe_payment_intent_id", table_name="invoices_to_import")
    op.drop_column("invoices_to_import", "stripe_payment_intent_id")
