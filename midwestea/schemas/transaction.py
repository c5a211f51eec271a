# midwestea/schemas/transaction.py
# Pydantic request/response models for reconciliation and transaction listing

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from midwestea.schemas.common import CamelModel

TRANSACTION_STATUSES = ("pending", "paid", "cancelled", "refunded")


# ── Reconciliation ────────────────────────────────────────────────────────────

class ReconcileRequest(CamelModel):
    # Any so a non-string id reaches the handler and gets the 400 message
    transaction_id: Any = None


class ReconcileResponse(CamelModel):
    success: bool = True
    transaction_id: str


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class StatusUpdateResponse(CamelModel):
    success: bool = True
    transaction_id: str
    status: str


# ── Listing ───────────────────────────────────────────────────────────────────

class TransactionResponse(BaseModel):
    """One row of the reconcile page."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: Optional[int] = None
    student_id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    transaction_type: str
    quantity: float
    amount_due: int                         # Cents
    transaction_status: str
    due_date: Optional[date] = None
    stripe_payment_intent_id: Optional[str] = None
    downloaded: bool
    reconciled: bool
    reconciliation_date: Optional[datetime] = None
    created_at: datetime

    student_name: Optional[str] = None      # students.full_name
    class_code: Optional[str] = None        # classes.class_id (human id)
