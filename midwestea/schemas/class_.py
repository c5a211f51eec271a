# midwestea/schemas/class_.py
# Pydantic request/response models for class and course endpoints

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from midwestea.schemas.common import CamelModel


# ── Rows ──────────────────────────────────────────────────────────────────────

class ClassResponse(BaseModel):
    """Full class row, snake_case like the table."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_uuid: Optional[UUID] = None
    class_name: Optional[str] = None
    course_code: Optional[str] = None
    class_id: Optional[str] = None
    enrollment_start: Optional[date] = None
    enrollment_close: Optional[date] = None
    class_start_date: Optional[date] = None
    class_close_date: Optional[date] = None
    location: Optional[str] = None
    is_online: bool = False
    product_id: Optional[str] = None
    length_of_class: Optional[str] = None
    certification_length: Optional[int] = None
    graduation_rate: Optional[int] = None
    registration_limit: Optional[int] = None
    price: Optional[int] = None                  # Cents
    registration_fee: Optional[int] = None       # Cents
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_payment_link: Optional[str] = None
    webflow_item_id: Optional[str] = None
    programming_offering: Optional[str] = None
    class_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClassWithInvoiceDates(ClassResponse):
    invoice_1_due_date: Optional[date] = None
    invoice_2_due_date: Optional[date] = None


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_name: str
    course_code: str
    program_type: Optional[str] = None
    length_of_class: Optional[str] = None
    certification_length: Optional[int] = None
    graduation_rate: Optional[int] = None
    registration_limit: Optional[int] = None
    price: Optional[int] = None
    registration_fee: Optional[int] = None
    stripe_product_id: Optional[str] = None
    course_image: Optional[str] = None
    created_at: Optional[datetime] = None


# ── Public listings ───────────────────────────────────────────────────────────

class ActiveClass(CamelModel):
    id: UUID
    class_id: Optional[str] = None
    class_name: Optional[str] = None
    course_code: Optional[str] = None
    enrollment_start: Optional[date] = None
    enrollment_close: Optional[date] = None
    class_start_date: Optional[date] = None
    class_close_date: Optional[date] = None
    location: Optional[str] = None
    is_online: bool = False
    product_id: Optional[str] = None
    length_of_class: Optional[str] = None
    certification_length: Optional[int] = None
    graduation_rate: Optional[int] = None
    registration_limit: Optional[int] = None
    price: Optional[int] = None
    registration_fee: Optional[int] = None


class ClassOption(CamelModel):
    """Entry in the checkout class selector."""
    id: UUID
    class_id: str
    class_name: str
    start_date: str
    location: str
    is_online: bool
    display_text: str


class CheckoutClassDisplay(CamelModel):
    """Everything the checkout page shows, pre-formatted."""
    class_id: str
    class_name: str
    course_code: str
    location: str
    is_online: bool
    is_online_display: str

    enrollment_start: str
    enrollment_close: str
    class_start_date: str
    class_close_date: str

    amount_now: str
    amount_later: str
    total_amount: str
    due_date_now: str
    due_date_later: str

    amount_now_cents: int
    amount_later_cents: int
    total_amount_cents: int

    length_of_class: str
    certification_length: Optional[int] = None
    graduation_rate: Optional[int] = None
    registration_limit: Optional[int] = None


# ── Admin writes ──────────────────────────────────────────────────────────────

class ClassFields(CamelModel):
    """Editable class fields. Only fields present in the body are applied."""
    class_name: Optional[str] = None
    course_code: Optional[str] = None
    class_id: Optional[str] = None
    enrollment_start: Optional[date] = None
    enrollment_close: Optional[date] = None
    class_start_date: Optional[date] = None
    class_close_date: Optional[date] = None
    location: Optional[str] = None
    is_online: Optional[bool] = None
    product_id: Optional[str] = None
    length_of_class: Optional[str] = None
    certification_length: Optional[int] = None
    graduation_rate: Optional[int] = None
    registration_limit: Optional[int] = None
    price: Optional[int] = None
    registration_fee: Optional[int] = None
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_payment_link: Optional[str] = None
    programming_offering: Optional[str] = None
    class_image: Optional[str] = None


class ClassCreateRequest(ClassFields):
    course_uuid: Optional[UUID] = None


class ClassUpdateRequest(ClassFields):
    pass
