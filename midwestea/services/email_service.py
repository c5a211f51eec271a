# midwestea/services/email_service.py
# Transactional email via SendGrid, with retry, a daily send cap, and an
# email_logs row for every attempt.
#
# Usage:
#   from midwestea.services.email_service import send_course_enrollment_email
#   send_course_enrollment_email(db, student, class_, amount_cents, enrollment_id)

import html
import logging
import time
import urllib.error
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import redis as redis_lib
from python_http_client.exceptions import HTTPError as SendGridHTTPError
from sqlalchemy.orm import Session

from midwestea.core.config import settings
from midwestea.core.security import is_valid_email
from midwestea.models.class_ import Class
from midwestea.models.log import EmailLog
from midwestea.models.student import Student
from midwestea.services.formatting import format_currency, format_long_date

logger = logging.getLogger("midwestea.email")

BACKOFF_BASE_SECONDS = 1.0


class EmailError(Exception):
    retryable = False


class RateLimitError(EmailError):
    pass


@dataclass
class EmailSendResult:
    success: bool
    email_id: Optional[str] = None
    error: Optional[str] = None
    retries: int = 0


# ── Rate Limit ────────────────────────────────────────────────────────────────

def _daily_counter_key(now: datetime) -> str:
    return f"midwestea:email:sent:{now.date().isoformat()}"


def reserve_daily_quota() -> None:
    """
    Count one send against today's provider quota.
    Raises RateLimitError past email_daily_limit. When Redis is down the
    send goes ahead and only a warning is logged.
    """
    try:
        r = redis_lib.from_url(settings.redis_url, socket_connect_timeout=1)
        key = _daily_counter_key(datetime.now(timezone.utc))
        count = r.incr(key)
        if count == 1:
            r.expire(key, int(timedelta(days=2).total_seconds()))
        r.close()
    except redis_lib.RedisError as exc:
        logger.warning(f"Email rate counter unavailable, sending anyway: {exc}")
        return

    if count > settings.email_daily_limit:
        raise RateLimitError(
            f"Daily email limit of {settings.email_daily_limit} reached"
        )


# ── Sending ───────────────────────────────────────────────────────────────────

def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, SendGridHTTPError):
        status = getattr(exc, "status_code", 0) or 0
        return status == 429 or 500 <= status < 600
    return isinstance(exc, (urllib.error.URLError, TimeoutError, ConnectionError))


def _deliver(to: str, subject: str, html_body: str, recipient_name: Optional[str]) -> Optional[str]:
    """Single SendGrid call. Returns the provider message id."""
    import sendgrid
    from sendgrid.helpers.mail import Email, Mail, To

    sg = sendgrid.SendGridAPIClient(api_key=settings.sendgrid_api_key)
    message = Mail(
        from_email=Email(settings.email_from, settings.email_from_name),
        to_emails=To(to, recipient_name),
        subject=subject,
        html_content=html_body,
    )
    response = sg.send(message)
    return response.headers.get("X-Message-Id") if response.headers else None


def send_email(
    db: Session,
    to: str,
    subject: str,
    html_body: str,
    email_type: str,
    recipient_name: Optional[str] = None,
    student_id: Optional[UUID] = None,
    enrollment_id: Optional[UUID] = None,
) -> EmailSendResult:
    """
    Send one email with exponential backoff (1s, 2s, 4s ...) on transient
    failures and record the outcome in email_logs.

    No-op in dev mode if SENDGRID_API_KEY is not configured.
    """
    if not settings.sendgrid_api_key:
        logger.info(f"[DEV] Email skipped (no SendGrid key): {subject} -> {to}")
        return EmailSendResult(success=False, error="SendGrid API key not configured")

    if not is_valid_email(to):
        result = EmailSendResult(success=False, error=f"Invalid recipient email: {to}")
    else:
        result = _send_with_retry(to, subject, html_body, recipient_name)

    log_email(
        db,
        recipient_email=to,
        recipient_name=recipient_name,
        subject=subject,
        email_type=email_type,
        student_id=student_id,
        enrollment_id=enrollment_id,
        result=result,
    )
    return result


def _send_with_retry(
    to: str,
    subject: str,
    html_body: str,
    recipient_name: Optional[str],
) -> EmailSendResult:
    try:
        reserve_daily_quota()
    except RateLimitError as exc:
        logger.error(f"Email to {to} not sent: {exc}")
        return EmailSendResult(success=False, error=str(exc))

    max_retries = max(settings.email_max_retries, 0)
    attempt = 0
    while True:
        try:
            email_id = _deliver(to, subject, html_body, recipient_name)
            logger.info(f"Email sent to {to}: {subject}")
            return EmailSendResult(success=True, email_id=email_id, retries=attempt)
        except Exception as exc:
            if attempt >= max_retries or not _is_retryable(exc):
                logger.error(f"Email to {to} failed after {attempt + 1} attempt(s): {exc}")
                return EmailSendResult(success=False, error=str(exc), retries=attempt)
            delay = BACKOFF_BASE_SECONDS * (2 ** attempt)
            logger.warning(f"Email retry {attempt + 1}/{max_retries} to {to} in {delay:.0f}s: {exc}")
            time.sleep(delay)
            attempt += 1


def log_email(
    db: Session,
    recipient_email: str,
    subject: str,
    email_type: str,
    result: EmailSendResult,
    recipient_name: Optional[str] = None,
    student_id: Optional[UUID] = None,
    enrollment_id: Optional[UUID] = None,
) -> Optional[EmailLog]:
    """Write an email_logs row. Logging problems never break sending."""
    try:
        entry = EmailLog(
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            subject=subject,
            email_type=email_type,
            student_id=student_id,
            enrollment_id=enrollment_id,
            success=result.success,
            email_id=result.email_id,
            error=result.error,
            retries=result.retries,
        )
        db.add(entry)
        db.flush()
        return entry
    except Exception as exc:
        logger.error(f"Failed to write email log for {recipient_email}: {exc}")
        return None


# ── Templates ─────────────────────────────────────────────────────────────────

def _wrap(title: str, body_html: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: auto; padding: 20px;">
    <div style="background: #0f3057; padding: 20px; border-radius: 8px 8px 0 0;">
        <h1 style="color: white; margin: 0;">MidwestEA</h1>
    </div>
    <div style="background: #fff; padding: 24px; border: 1px solid #e5e7eb; border-radius: 0 0 8px 8px;">
        <h2 style="color: #1f2937;">{html.escape(title)}</h2>
        {body_html}
        <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 24px 0;">
        <p style="color: #9ca3af; font-size: 12px;">
            Midwest Emergency Academy. Questions? Reply to this email.
        </p>
    </div>
</body>
</html>
"""


def build_course_enrollment_email(
    student_name: str,
    class_: Class,
    amount_cents: Optional[int],
) -> tuple[str, str]:
    """Returns (subject, html) for a paid enrollment confirmation."""
    class_label = class_.class_name or class_.class_id or "your class"
    subject = f"You're enrolled: {class_label}"

    rows = [
        ("Class", class_label),
        ("Class ID", class_.class_id or ""),
        ("Starts", format_long_date(class_.class_start_date)),
        ("Location", "Online" if class_.is_online else (class_.location or "")),
        ("Amount paid", format_currency(amount_cents)),
    ]
    table = "".join(
        f"<tr><td style='padding:4px 12px 4px 0;color:#6b7280;'>{html.escape(label)}</td>"
        f"<td style='padding:4px 0;'>{html.escape(value)}</td></tr>"
        for label, value in rows
        if value
    )
    body = (
        f"<p>Hi {html.escape(student_name or 'there')},</p>"
        f"<p>Thank you for registering. Your seat is confirmed.</p>"
        f"<table>{table}</table>"
    )
    return subject, _wrap(subject, body)


def send_course_enrollment_email(
    db: Session,
    student: Student,
    class_: Class,
    amount_cents: Optional[int],
    enrollment_id: Optional[UUID] = None,
) -> EmailSendResult:
    if not student.email:
        return EmailSendResult(success=False, error="Student has no email")
    subject, body = build_course_enrollment_email(student.display_name, class_, amount_cents)
    return send_email(
        db,
        to=student.email,
        subject=subject,
        html_body=body,
        email_type="course_enrollment",
        recipient_name=student.display_name or None,
        student_id=student.id,
        enrollment_id=enrollment_id,
    )


# ── Monitoring ────────────────────────────────────────────────────────────────

def get_email_delivery_metrics(
    db: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """Success/failure counts for a window (default: last 24 hours)."""
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(hours=24)

    logs = db.query(EmailLog).filter(
        EmailLog.created_at >= start,
        EmailLog.created_at <= end,
    ).order_by(EmailLog.created_at.desc()).all()

    total_sent = sum(1 for log in logs if log.success)
    total_failed = len(logs) - total_sent
    total = len(logs)

    by_type: dict[str, dict[str, int]] = {}
    for log in logs:
        bucket = by_type.setdefault(log.email_type or "unknown", {"sent": 0, "failed": 0})
        bucket["sent" if log.success else "failed"] += 1

    recent_failures = [
        {
            "id": str(log.id),
            "recipient_email": log.recipient_email,
            "email_type": log.email_type or "unknown",
            "error": log.error or "Unknown error",
            "created_at": log.created_at.isoformat() if log.created_at else None,
        }
        for log in logs
        if not log.success
    ][:10]

    return {
        "totalSent": total_sent,
        "totalFailed": total_failed,
        "successRate": round(total_sent / total * 100, 2) if total else 0,
        "failureRate": round(total_failed / total * 100, 2) if total else 0,
        "emailsByType": by_type,
        "recentFailures": recent_failures,
    }


def check_email_alerts(
    db: Session,
    failure_rate_threshold: float = 10,
    time_window_hours: float = 1,
) -> dict:
    end = datetime.now(timezone.utc)
    metrics = get_email_delivery_metrics(db, end - timedelta(hours=time_window_hours), end)
    attempted = metrics["totalSent"] + metrics["totalFailed"]
    needs_alert = attempted > 0 and metrics["failureRate"] >= failure_rate_threshold
    return {
        "needsAlert": needs_alert,
        "failureRate": metrics["failureRate"],
        "threshold": failure_rate_threshold,
        "message": (
            f"Email failure rate ({metrics['failureRate']:.2f}%) exceeds threshold "
            f"({failure_rate_threshold}%)"
            if needs_alert else None
        ),
    }


def retry_failed_email(db: Session, log: EmailLog) -> EmailSendResult:
    """
    Resend a failed email. The original body is not stored, so a short
    notice goes out under the original subject.
    """
    body = _wrap(
        log.subject,
        "<p>We had trouble delivering an earlier message to you. "
        "Please contact us if you are missing any enrollment details.</p>",
    )
    if not settings.sendgrid_api_key:
        return EmailSendResult(success=False, error="SendGrid API key not configured")

    result = _send_with_retry(log.recipient_email, log.subject, body, log.recipient_name)
    log.retries = (log.retries or 0) + 1
    if result.success:
        log.success = True
        log.email_id = result.email_id
        log.error = None
    else:
        log.error = result.error
    db.flush()
    return result
