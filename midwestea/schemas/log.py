# midwestea/schemas/log.py
# Pydantic request/response models for the admin audit-log endpoints
# These bodies are snake_case; the admin app posts table column names.

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel


class ClassDeleteLogRequest(BaseModel):
    class_id: Optional[str] = None


class FieldChange(BaseModel):
    field_name: str
    old_value: Any = None
    new_value: Any = None


class DetailUpdateLogRequest(BaseModel):
    """
    One change (field_name/old_value/new_value) or several sharing a
    batch_id (field_changes).
    """
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    field_name: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    field_changes: Optional[List[FieldChange]] = None
    batch_id: Optional[str] = None


class StudentEnrollmentLogRequest(BaseModel):
    student_id: Optional[str] = None
    class_id: Optional[str] = None
    action: Optional[str] = None


class LogEntryResponse(BaseModel):
    id: UUID
    action_type: str
    reference_id: Optional[UUID] = None
    reference_type: Optional[str] = None
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    timestamp: datetime
    message: str                     # Rendered sentence for the UI
