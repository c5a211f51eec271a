# midwestea/schemas/admin.py
# Pydantic request/response models for admin auth and email monitoring

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class SendOtpRequest(BaseModel):
    email: Optional[str] = None


class EmailLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_email: str
    recipient_name: Optional[str] = None
    subject: str
    email_type: str
    enrollment_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    success: bool
    email_id: Optional[str] = None
    error: Optional[str] = None
    retries: int
    created_at: datetime


class EmailLogListResponse(BaseModel):
    logs: list[EmailLogResponse]
    total: int
