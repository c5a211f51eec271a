# midwestea/api/v1/endpoints/waitlist.py
# Course waitlist: public signup from the checkout site, admin listing

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

import midwestea.db.base  # noqa: F401
from midwestea.core.dependencies import require_admin
from midwestea.db.session import get_db
from midwestea.models.admin import Admin
from midwestea.models.student import Waitlist
from midwestea.schemas.waitlist import WaitlistEntryResponse, WaitlistSubmitRequest
from midwestea.services.enrollment_service import find_or_create_student
from midwestea.services.supabase_auth import SupabaseAuthError

logger = logging.getLogger("midwestea.waitlist")

router = APIRouter()


def _entry(row: Waitlist) -> dict:
    entry = WaitlistEntryResponse.model_validate(row)
    if row.student:
        entry.full_name = row.student.display_name or None
        entry.email = row.student.email
    return entry.model_dump(mode="json")


@router.post(
    "/submit",
    summary="Join the waitlist for a course",
)
def submit_waitlist(
    payload: WaitlistSubmitRequest,
    db: Session = Depends(get_db),
):
    """Idempotent per (student, course): a repeat signup reports alreadyOnWaitlist."""
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")
    if not payload.full_name:
        raise HTTPException(status_code=400, detail="Full name is required")
    if not payload.course_code:
        raise HTTPException(status_code=400, detail="Course code is required")

    course_code = payload.course_code.strip().upper()

    try:
        student, _ = find_or_create_student(db, payload.email, payload.full_name)
    except SupabaseAuthError as e:
        logger.error(f"Waitlist signup failed for {payload.email}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create user: {e}")

    existing = db.query(Waitlist).filter(
        Waitlist.student_id == student.id,
        Waitlist.course_code == course_code,
    ).first()
    if existing:
        return {
            "success": True,
            "message": "You are already on the waitlist for this course",
            "alreadyOnWaitlist": True,
        }

    entry = Waitlist(student_id=student.id, course_code=course_code)
    db.add(entry)
    db.flush()

    logger.info(f"{student.email} joined the {course_code} waitlist")
    return {
        "success": True,
        "message": "Successfully added to waitlist",
        "waitlistEntry": _entry(entry),
    }


@router.get(
    "/by-course-code/{course_code}",
    summary="Waitlist for a course, oldest first",
)
def get_waitlist(
    course_code: str,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = db.query(Waitlist).options(joinedload(Waitlist.student)).filter(
        Waitlist.course_code == course_code.upper(),
    ).order_by(Waitlist.created_at.asc()).all()
    return {"waitlist": [_entry(r) for r in rows]}
