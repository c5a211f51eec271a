# midwestea/api/v1/endpoints/classes.py
# Class endpoints: public lookups for checkout pages, admin CRUD with
# Webflow sync and audit logging.
#
# Static paths (/active, /by-course-code, /by-class-id, /generate-id) are
# declared before /{id} so they are never captured as an id.

import logging
from datetime import date, timedelta
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

import midwestea.db.base  # noqa: F401
from midwestea.core.dependencies import require_admin
from midwestea.db.session import get_db
from midwestea.models.admin import Admin
from midwestea.models.class_ import Class, Course
from midwestea.schemas.class_ import (
    ActiveClass,
    CheckoutClassDisplay,
    ClassCreateRequest,
    ClassOption,
    ClassResponse,
    ClassUpdateRequest,
    ClassWithInvoiceDates,
)
from midwestea.services import webflow_service
from midwestea.services.audit_log import insert_log
from midwestea.services.course_catalog import generate_class_id, get_course_code_from_slug
from midwestea.services.formatting import format_currency, format_long_date
from midwestea.services.invoice_service import invoice_due_dates

logger = logging.getLogger("midwestea.classes")

router = APIRouter()

REQUIRED_CREATE_FIELDS = (
    ("course_uuid", "courseUuid"),
    ("class_name", "className"),
    ("course_code", "courseCode"),
    ("class_id", "classId"),
)


def is_enrollment_open(class_: Class, today: date) -> bool:
    """Online classes are always open; others only inside their enrollment window."""
    if class_.is_online:
        return True
    if class_.enrollment_start and class_.enrollment_close:
        return class_.enrollment_start <= today <= class_.enrollment_close
    return False


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError):
        return None


def _get_class_or_404(db: Session, id: str) -> Class:
    class_uuid = _parse_uuid(id)
    class_ = None
    if class_uuid:
        class_ = db.query(Class).options(joinedload(Class.course)).filter(Class.id == class_uuid).first()
    if not class_:
        raise HTTPException(status_code=404, detail="Class not found")
    return class_


def _stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _serialize(class_: Class) -> dict:
    return ClassResponse.model_validate(class_).model_dump(mode="json")


# ── Public: Checkout Lookups ──────────────────────────────────────────────────

@router.get(
    "/active",
    summary="Classes open for enrollment for a course (by code or URL slug)",
)
def get_active_classes(
    course_code: Optional[str] = Query(None, alias="courseCode"),
    slug: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    if not course_code and not slug:
        raise HTTPException(status_code=400, detail="Either courseCode or slug parameter is required")

    resolved = course_code
    if not resolved:
        resolved = get_course_code_from_slug(slug)
        if not resolved:
            raise HTTPException(status_code=404, detail=f"No course code found for slug: {slug}")

    today = date.today()
    classes = db.query(Class).filter(
        Class.course_code == resolved,
    ).order_by(Class.class_start_date.asc()).all()

    return {
        "courseCode": resolved,
        "classes": [
            ActiveClass.model_validate(c, from_attributes=True).model_dump(mode="json", by_alias=True)
            for c in classes
            if is_enrollment_open(c, today)
        ],
    }


@router.get(
    "/by-course-code/{course_code}",
    summary="Class selector options for a course",
)
def get_classes_by_course_code(course_code: str, db: Session = Depends(get_db)):
    today = date.today()
    classes = db.query(Class).filter(
        Class.course_code == course_code,
    ).order_by(Class.class_start_date.asc()).all()

    options = []
    for c in classes:
        if not is_enrollment_open(c, today):
            continue
        start = format_long_date(c.class_start_date)
        location = f" ({c.location})" if c.location else ""
        options.append(ClassOption(
            id=c.id,
            class_id=c.class_id or "",
            class_name=c.class_name or "",
            start_date=start,
            location=c.location or "",
            is_online=bool(c.is_online),
            display_text=f"{c.class_id or 'Class'} - {start}{location}",
        ).model_dump(mode="json", by_alias=True))

    return {"courseCode": course_code, "classes": options}


@router.get(
    "/by-class-id/{class_id}",
    summary="Get a class by its human class id",
)
def get_class_by_human_id(class_id: str, db: Session = Depends(get_db)):
    """Exact match first, then case-insensitive. Adds both invoice due dates."""
    class_ = db.query(Class).filter(Class.class_id == class_id).first()
    if not class_:
        class_ = db.query(Class).filter(func.lower(Class.class_id) == class_id.lower()).first()
    if not class_:
        raise HTTPException(status_code=404, detail="Class not found")

    result = ClassWithInvoiceDates.model_validate(class_)
    result.invoice_1_due_date, result.invoice_2_due_date = invoice_due_dates(class_)
    return {"class": result.model_dump(mode="json")}


# ── Admin: Class IDs ──────────────────────────────────────────────────────────

@router.get(
    "/generate-id/{course_code}",
    summary="Next free class id for a course",
)
def get_next_class_id(
    course_code: str,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"classId": generate_class_id(db, course_code)}


# ── Public: Checkout Display ──────────────────────────────────────────────────

@router.get(
    "/{id}",
    summary="Class details formatted for the checkout page",
)
def get_class_for_checkout(id: str, db: Session = Depends(get_db)):
    """
    Amounts split in two: amountNow = floor(base / 2), amountLater = the rest.
    base is the registration fee, else the price.
    """
    class_ = _get_class_or_404(db, id)

    base = class_.registration_fee or class_.price or 0
    amount_now = base // 2
    amount_later = base - amount_now

    if class_.class_close_date:
        due_later = format_long_date(class_.class_close_date)
    elif class_.class_start_date:
        due_later = format_long_date(class_.class_start_date + timedelta(days=30))
    else:
        due_later = ""

    return CheckoutClassDisplay(
        class_id=class_.class_id or "",
        class_name=class_.class_name or "",
        course_code=class_.course_code or "",
        location=class_.location or "",
        is_online=bool(class_.is_online),
        is_online_display="Yes" if class_.is_online else "No",
        enrollment_start=format_long_date(class_.enrollment_start),
        enrollment_close=format_long_date(class_.enrollment_close),
        class_start_date=format_long_date(class_.class_start_date),
        class_close_date=format_long_date(class_.class_close_date),
        amount_now=format_currency(amount_now),
        amount_later=format_currency(amount_later),
        total_amount=format_currency(base),
        due_date_now=format_long_date(class_.class_start_date),
        due_date_later=due_later,
        amount_now_cents=amount_now,
        amount_later_cents=amount_later,
        total_amount_cents=base,
        length_of_class=class_.length_of_class or "",
        certification_length=class_.certification_length,
        graduation_rate=class_.graduation_rate,
        registration_limit=class_.registration_limit,
    ).model_dump(by_alias=True)


# ── Admin: Create / Update / Delete ───────────────────────────────────────────

@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a class and sync it to Webflow",
)
def create_class(
    payload: ClassCreateRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Webflow sync failures are reported in webflowError but never fail the
    request: the class is saved either way.
    """
    missing = [alias for field, alias in REQUIRED_CREATE_FIELDS if not getattr(payload, field)]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")

    course = db.query(Course).filter(Course.id == payload.course_uuid).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    if db.query(Class).filter(Class.class_id == payload.class_id).first():
        raise HTTPException(status_code=409, detail=f"Class ID {payload.class_id} already exists")

    class_ = Class(**payload.model_dump(exclude_unset=True))
    class_.course = course
    if class_.is_online is None:
        class_.is_online = False
    db.add(class_)
    db.flush()

    webflow_item_id, webflow_error = webflow_service.sync_class(class_)
    if webflow_item_id:
        class_.webflow_item_id = webflow_item_id
        db.flush()

    insert_log(
        db,
        action_type="class_created",
        reference_id=course.id,
        reference_type=course.program_type or "course",
        admin_user_id=admin.id,
        class_id=class_.id,
    )
    insert_log(
        db,
        action_type="class_created",
        reference_id=class_.id,
        reference_type="class",
        admin_user_id=admin.id,
        class_id=class_.id,
    )

    logger.info(f"Class {class_.class_id} created by {admin.email}")
    return {
        "success": True,
        "class": _serialize(class_),
        "webflowItemId": webflow_item_id,
        "webflowError": webflow_error,
    }


@router.put(
    "/{id}",
    summary="Update a class (only the fields present)",
)
def update_class(
    id: str,
    payload: ClassUpdateRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    class_ = _get_class_or_404(db, id)
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if getattr(class_, field) != value
    }

    new_class_id = changes.get("class_id")
    if new_class_id and db.query(Class).filter(
        Class.class_id == new_class_id,
        Class.id != class_.id,
    ).first():
        raise HTTPException(status_code=409, detail=f"Class ID {new_class_id} already exists")

    previous = {field: getattr(class_, field) for field in changes}
    for field, new_value in changes.items():
        setattr(class_, field, new_value)
    db.flush()

    for field, new_value in changes.items():
        insert_log(
            db,
            action_type="detail_updated",
            reference_id=class_.id,
            reference_type="class",
            admin_user_id=admin.id,
            field_name=field,
            old_value=_stringify(previous[field]),
            new_value=_stringify(new_value),
        )

    webflow_error = None
    if class_.webflow_item_id:
        _, webflow_error = webflow_service.sync_class(class_)

    return {"success": True, "class": _serialize(class_), "webflowError": webflow_error}


@router.delete(
    "/{id}",
    summary="Delete a class",
)
def delete_class(
    id: str,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    class_ = _get_class_or_404(db, id)
    class_uuid, human_id = class_.id, class_.class_id

    db.delete(class_)
    db.flush()

    insert_log(
        db,
        action_type="class_deleted",
        reference_id=class_uuid,
        reference_type="class",
        admin_user_id=admin.id,
        class_id=class_uuid,
    )
    logger.info(f"Class {human_id} deleted by {admin.email}")
    return {"success": True}


@router.post(
    "/{id}/sync-webflow",
    summary="Create or update the class's Webflow item",
)
def sync_class_to_webflow(
    id: str,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    class_ = _get_class_or_404(db, id)
    webflow_item_id, error = webflow_service.sync_class(class_)
    if error:
        raise HTTPException(status_code=500, detail=f"Webflow sync failed: {error}")

    class_.webflow_item_id = webflow_item_id
    db.flush()
    return {"success": True, "webflowItemId": webflow_item_id}
