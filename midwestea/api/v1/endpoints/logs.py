# midwestea/api/v1/endpoints/logs.py
# Audit-log endpoints called by the admin app after it edits records,
# plus the rendered history shown on detail pages.

import logging
import uuid
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

import midwestea.db.base  # noqa: F401
from midwestea.core.dependencies import require_admin
from midwestea.db.session import get_db
from midwestea.models.admin import Admin
from midwestea.models.class_ import Class
from midwestea.models.log import REFERENCE_TYPES, Log
from midwestea.models.student import Student
from midwestea.schemas.log import (
    ClassDeleteLogRequest,
    DetailUpdateLogRequest,
    FieldChange,
    LogEntryResponse,
    StudentEnrollmentLogRequest,
)
from midwestea.services.audit_log import format_log_message, insert_log

logger = logging.getLogger("midwestea.logs")

router = APIRouter()


def _uuid_or_400(value: Optional[str], field: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field}")


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ── Writes ────────────────────────────────────────────────────────────────────

@router.post(
    "/class-delete",
    summary="Record that a class was deleted",
)
def log_class_delete(
    payload: ClassDeleteLogRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not payload.class_id:
        raise HTTPException(status_code=400, detail="Missing class_id")

    class_uuid = _uuid_or_400(payload.class_id, "class_id")
    entry = insert_log(
        db,
        action_type="class_deleted",
        reference_id=class_uuid,
        reference_type="class",
        admin_user_id=admin.id,
        class_id=class_uuid,
    )
    if not entry:
        raise HTTPException(status_code=500, detail="Failed to log class deletion")
    return {"success": True}


@router.post(
    "/detail-update",
    summary="Record one or more field changes",
)
def log_detail_update(
    payload: DetailUpdateLogRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    changes = list(payload.field_changes or [])
    if payload.field_name:
        changes.append(FieldChange(
            field_name=payload.field_name,
            old_value=payload.old_value,
            new_value=payload.new_value,
        ))

    if not payload.reference_id or not payload.reference_type or not changes:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: reference_id, reference_type, field_name",
        )
    if payload.reference_type not in REFERENCE_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid reference_type. Must be one of: {', '.join(REFERENCE_TYPES)}",
        )

    reference_id = _uuid_or_400(payload.reference_id, "reference_id")
    batch_id = _uuid_or_400(payload.batch_id, "batch_id") if payload.batch_id else None
    if len(changes) > 1 and not batch_id:
        batch_id = uuid.uuid4()

    for change in changes:
        entry = insert_log(
            db,
            action_type="detail_updated",
            reference_id=reference_id,
            reference_type=payload.reference_type,
            admin_user_id=admin.id,
            field_name=change.field_name,
            old_value=_as_text(change.old_value),
            new_value=_as_text(change.new_value),
            batch_id=batch_id,
        )
        if not entry:
            raise HTTPException(status_code=500, detail="Failed to log detail update")

    return {"success": True, "logged": len(changes)}


@router.post(
    "/student-enrollment",
    summary="Record a student being added to or removed from a class",
)
def log_student_enrollment(
    payload: StudentEnrollmentLogRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not payload.student_id or not payload.class_id or not payload.action:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: student_id, class_id, action",
        )
    if payload.action not in ("add", "remove"):
        raise HTTPException(status_code=400, detail='Invalid action. Must be "add" or "remove"')

    student_id = _uuid_or_400(payload.student_id, "student_id")
    class_uuid = _uuid_or_400(payload.class_id, "class_id")
    entry = insert_log(
        db,
        action_type="student_added" if payload.action == "add" else "student_removed",
        reference_id=class_uuid,
        reference_type="class",
        admin_user_id=admin.id,
        student_id=student_id,
        class_id=class_uuid,
    )
    if not entry:
        raise HTTPException(status_code=500, detail="Failed to log student enrollment action")
    return {"success": True}


# ── History ───────────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=List[LogEntryResponse],
    summary="Rendered history for a program, course, class or student page",
)
def list_logs(
    reference_id: str = Query(...),
    reference_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Log).options(joinedload(Log.admin)).filter(
        Log.reference_id == _uuid_or_400(reference_id, "reference_id"),
    )
    if reference_type:
        query = query.filter(Log.reference_type == reference_type)
    logs = query.order_by(Log.timestamp.desc()).limit(limit).all()

    student_ids = {log.student_id for log in logs if log.student_id}
    class_ids = {log.class_id for log in logs if log.class_id}
    students = {
        s.id: s for s in db.query(Student).filter(Student.id.in_(student_ids)).all()
    } if student_ids else {}
    class_codes = {
        c.id: c.class_id for c in db.query(Class).filter(Class.id.in_(class_ids)).all()
    } if class_ids else {}

    return [
        LogEntryResponse(
            id=log.id,
            action_type=log.action_type,
            reference_id=log.reference_id,
            reference_type=log.reference_type,
            field_name=log.field_name,
            old_value=log.old_value,
            new_value=log.new_value,
            timestamp=log.timestamp,
            message=format_log_message(
                log,
                student=students.get(log.student_id),
                human_class_id=class_codes.get(log.class_id),
            ),
        )
        for log in logs
    ]
