# midwestea/api/v1/endpoints/students.py
# Admin student endpoints backed by the Supabase identity store
# students.email is only a copy; the auth identity owns the address.

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.core.dependencies import require_admin
from midwestea.core.security import is_valid_email
from midwestea.db.session import get_db
from midwestea.models.admin import Admin
from midwestea.models.student import Student
from midwestea.schemas.student import UpdateEmailRequest
from midwestea.services import supabase_auth
from midwestea.services.audit_log import insert_log
from midwestea.services.supabase_auth import SupabaseAuthError

logger = logging.getLogger("midwestea.students")

router = APIRouter()


def _parse_student_id(student_id: str) -> UUID:
    try:
        return UUID(student_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="User not found")


def _get_auth_user(student_id: UUID) -> dict:
    try:
        user = supabase_auth.get_user(student_id)
    except SupabaseAuthError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="User not found")
        raise HTTPException(status_code=500, detail=str(e))
    if not user or not user.get("id"):
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get(
    "/{student_id}/email",
    summary="Get a student's login email",
)
def get_student_email(
    student_id: str,
    admin: Admin = Depends(require_admin),
):
    user = _get_auth_user(_parse_student_id(student_id))
    return {"email": user.get("email")}


@router.post(
    "/{student_id}/update-email",
    summary="Change a student's login email",
)
def update_student_email(
    student_id: str,
    payload: UpdateEmailRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Updates the auth identity (pre-confirmed) and the students.email copy,
    then records a detail_updated log row.
    """
    if not payload.email or not isinstance(payload.email, str):
        raise HTTPException(status_code=400, detail="Missing or invalid email field")

    email = payload.email.strip()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    user_id = _parse_student_id(student_id)
    user = _get_auth_user(user_id)
    old_email = user.get("email")

    if old_email == email:
        return {"success": True, "email": email, "message": "Email unchanged"}

    try:
        updated = supabase_auth.update_user_email(user_id, email)
    except SupabaseAuthError as e:
        logger.error(f"Email update failed for {user_id}: {e}")
        message = str(e)
        if "already" in message.lower() or "duplicate" in message.lower():
            message = "This email address is already in use by another user"
        raise HTTPException(status_code=500, detail=message)

    student = db.query(Student).filter(Student.id == user_id).first()
    if student:
        student.email = email
        db.flush()

    insert_log(
        db,
        action_type="detail_updated",
        reference_id=user_id,
        reference_type="student",
        admin_user_id=admin.id,
        field_name="email",
        old_value=old_email,
        new_value=email,
        student_id=user_id,
    )
    return {"success": True, "email": updated.get("email", email)}
