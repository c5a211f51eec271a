# midwestea/api/v1/endpoints/courses.py
# Public course lookup for checkout and waitlist pages

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.db.session import get_db
from midwestea.models.class_ import Course
from midwestea.schemas.class_ import CourseResponse

router = APIRouter()


@router.get(
    "/by-course-code/{course_code}",
    summary="Get a course by its code",
)
def get_course_by_code(course_code: str, db: Session = Depends(get_db)):
    """Codes are stored upper-case; the lookup upper-cases its input."""
    course = db.query(Course).filter(Course.course_code == course_code.upper()).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return {"course": CourseResponse.model_validate(course).model_dump(mode="json")}
