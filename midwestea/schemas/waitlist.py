# midwestea/schemas/waitlist.py
# Pydantic request/response models for waitlist endpoints

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from midwestea.schemas.common import CamelModel


class WaitlistSubmitRequest(CamelModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    course_code: Optional[str] = None


class WaitlistEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    course_code: str
    created_at: datetime
    updated_at: datetime
    full_name: Optional[str] = None
    email: Optional[str] = None
