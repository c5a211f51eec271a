# midwestea/api/v1/endpoints/transactions.py
# Reconciliation and accounting export for the admin reconcile page
#
# Flow:
#   1. Webhooks and staff create transactions (pending)
#   2. GET /export-transactions-csv -> QuickBooks import file, rows marked downloaded
#   3. Staff match payouts and POST /transactions/reconcile per row
#
# invoices_to_import (Stripe registrations) has its own export, plus a
# backfill from Stripe for intents the webhook never delivered.

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session, joinedload

import midwestea.db.base  # noqa: F401
from midwestea.core.dependencies import require_admin
from midwestea.db.session import get_db
from midwestea.models.admin import Admin
from midwestea.models.payment import InvoiceToImport, Transaction
from midwestea.schemas.transaction import (
    TRANSACTION_STATUSES,
    ReconcileRequest,
    ReconcileResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
    TransactionResponse,
)
from midwestea.services import invoice_service, stripe_service, transaction_export

logger = logging.getLogger("midwestea.transactions")

router = APIRouter()
export_router = APIRouter()


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError, AttributeError):
        return None


def _get_transaction_or_404(db: Session, transaction_id: str) -> Transaction:
    parsed = _parse_uuid(transaction_id)
    transaction = db.query(Transaction).filter(Transaction.id == parsed).first() if parsed else None
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


# ── Reconciliation ────────────────────────────────────────────────────────────

@router.post(
    "/reconcile",
    summary="Mark a transaction as reconciled",
)
def reconcile_transaction(
    payload: ReconcileRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Sets reconciled=true and stamps reconciliation_date with the current time."""
    if not payload.transaction_id or not isinstance(payload.transaction_id, str):
        raise HTTPException(
            status_code=400,
            detail="transactionId is required and must be a string",
        )

    transaction = _get_transaction_or_404(db, payload.transaction_id)
    transaction.reconciled = True
    transaction.reconciliation_date = datetime.now(timezone.utc)
    db.flush()

    logger.info(f"Transaction {transaction.id} reconciled by {admin.email}")
    return ReconcileResponse(transaction_id=str(transaction.id)).model_dump(by_alias=True)


@router.post(
    "/unreconcile",
    summary="Undo reconciliation for a transaction",
)
def unreconcile_transaction(
    payload: ReconcileRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not payload.transaction_id or not isinstance(payload.transaction_id, str):
        raise HTTPException(status_code=400, detail="Transaction ID is required")

    transaction = _get_transaction_or_404(db, payload.transaction_id)
    transaction.reconciled = False
    transaction.reconciliation_date = None
    db.flush()

    logger.info(f"Transaction {transaction.id} unreconciled by {admin.email}")
    return ReconcileResponse(transaction_id=str(transaction.id)).model_dump(by_alias=True)


@router.patch(
    "/{transaction_id}/status",
    summary="Change a transaction's status",
)
def update_transaction_status(
    transaction_id: str,
    payload: StatusUpdateRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if payload.status not in TRANSACTION_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(TRANSACTION_STATUSES)}",
        )

    transaction = _get_transaction_or_404(db, transaction_id)
    transaction.transaction_status = payload.status
    db.flush()

    return StatusUpdateResponse(
        transaction_id=str(transaction.id),
        status=transaction.transaction_status,
    ).model_dump(by_alias=True)


# ── Listing ───────────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=List[TransactionResponse],
    summary="List transactions for the reconcile page",
)
def list_transactions(
    reconciled: Optional[bool] = Query(None),
    downloaded: Optional[bool] = Query(None),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Newest first, with the student's name and the human class id joined in."""
    query = db.query(Transaction).options(
        joinedload(Transaction.student),
        joinedload(Transaction.class_),
    )
    if reconciled is not None:
        query = query.filter(Transaction.reconciled == reconciled)
    if downloaded is not None:
        query = query.filter(Transaction.downloaded == downloaded)

    results = []
    for t in query.order_by(Transaction.created_at.desc()).all():
        row = TransactionResponse.model_validate(t)
        row.student_name = t.student.display_name if t.student else None
        row.class_code = t.class_.class_id if t.class_ else None
        results.append(row)
    return results


# ── CSV Export ────────────────────────────────────────────────────────────────

@export_router.get(
    "/export-transactions-csv",
    summary="Download new transactions as a QuickBooks import CSV",
)
def export_transactions_csv(
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Exports every transaction with downloaded=false, oldest first, then marks
    them downloaded so the next export only contains new rows.
    """
    transactions = db.query(Transaction).options(
        joinedload(Transaction.student),
        joinedload(Transaction.class_),
    ).filter(
        Transaction.downloaded == False,  # noqa: E712
    ).order_by(Transaction.created_at.asc()).all()

    if not transactions:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"success": False, "message": "No new invoices to download", "count": 0},
        )

    content = transaction_export.build_csv(transactions)
    filename = transaction_export.export_filename([t.created_at for t in transactions])

    for t in transactions:
        t.downloaded = True
    db.flush()

    logger.info(f"Exported {len(transactions)} transactions to {filename} for {admin.email}")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── invoices_to_import ────────────────────────────────────────────────────────

@export_router.get(
    "/export-invoices-csv",
    summary="Download invoices_to_import as a QuickBooks import CSV",
)
def export_invoices_csv(
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Every staged invoice in invoice-number order. Rows are not marked."""
    invoices = db.query(InvoiceToImport).order_by(InvoiceToImport.invoice_number.asc()).all()
    if not invoices:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"success": False, "message": "No invoices found in table", "count": 0},
        )

    content = transaction_export.build_invoice_csv(invoices)
    filename = transaction_export.invoice_export_filename(datetime.now(timezone.utc).date())
    logger.info(f"Exported {len(invoices)} staged invoices to {filename} for {admin.email}")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@export_router.post(
    "/sync-stripe-invoices",
    summary="Backfill invoices_to_import from recent Stripe payment intents",
)
def sync_stripe_invoices(
    limit: int = Query(100, ge=1, le=100),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not stripe_service.is_configured():
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY is not set")

    try:
        results = invoice_service.sync_stripe_invoices(db, limit=limit)
    except stripe.StripeError as e:
        logger.error(f"Stripe invoice sync failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"success": True, "message": "Sync completed", "results": results}
