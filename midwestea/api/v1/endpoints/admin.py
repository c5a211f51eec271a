# midwestea/api/v1/endpoints/admin.py
# Email delivery monitoring for the admin app

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.core.dependencies import require_admin
from midwestea.db.session import get_db
from midwestea.models.admin import Admin
from midwestea.models.log import EmailLog
from midwestea.schemas.admin import EmailLogListResponse, EmailLogResponse
from midwestea.services import email_service

logger = logging.getLogger("midwestea.admin")

router = APIRouter()


@router.get(
    "/email-logs",
    response_model=EmailLogListResponse,
    summary="Paged email delivery log, newest first",
)
def list_email_logs(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    email_type: Optional[str] = Query(None, alias="emailType"),
    success: Optional[bool] = Query(None),
    student_id: Optional[UUID] = Query(None, alias="studentId"),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(EmailLog)
    if email_type:
        query = query.filter(EmailLog.email_type == email_type)
    if success is not None:
        query = query.filter(EmailLog.success == success)
    if student_id:
        query = query.filter(EmailLog.student_id == student_id)

    total = query.count()
    logs = query.order_by(EmailLog.created_at.desc()).offset(offset).limit(limit).all()
    return EmailLogListResponse(
        logs=[EmailLogResponse.model_validate(log) for log in logs],
        total=total,
    )


@router.get(
    "/email-metrics",
    summary="Delivery metrics for a window plus the failure-rate alert",
)
def get_email_metrics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    failure_rate_threshold: float = Query(10, alias="failureRateThreshold"),
    time_window_hours: float = Query(1, alias="timeWindowHours"),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Window defaults to the last 24 hours; the alert looks at the last hour."""
    return {
        "metrics": email_service.get_email_delivery_metrics(db, start_date, end_date),
        "alerts": email_service.check_email_alerts(db, failure_rate_threshold, time_window_hours),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post(
    "/email-logs/{log_id}/retry",
    summary="Resend a failed email",
)
def retry_email(
    log_id: UUID,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    log = db.query(EmailLog).filter(EmailLog.id == log_id).first()
    if not log:
        raise HTTPException(status_code=404, detail="Email log not found")
    if log.success:
        raise HTTPException(status_code=400, detail="Email was already delivered")

    result = email_service.retry_failed_email(db, log)
    logger.info(f"Email {log.id} retried by {admin.email}: success={result.success}")
    return {
        "success": result.success,
        "emailId": result.email_id,
        "error": result.error,
    }
