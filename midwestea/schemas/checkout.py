# midwestea/schemas/checkout.py
# Pydantic request/response models for the public checkout endpoints
# Fields are optional so handlers can answer with field-specific 400 messages.

from typing import Any, Optional

from midwestea.schemas.common import CamelModel


class CreateCheckoutSessionRequest(CamelModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    class_id: Optional[str] = None


class CheckoutSessionResponse(CamelModel):
    checkout_url: str


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: Optional[str] = None


class CreateInvoiceRequest(CamelModel):
    email: Optional[str] = None
    class_id: Optional[str] = None


class CreateInvoiceResponse(CamelModel):
    success: bool = True
    invoice_id: str
    payment_url: str
    invoice: dict[str, Any]


class PaymentLinkRequest(CamelModel):
    class_id: Optional[str] = None


class PaymentLinkResponse(CamelModel):
    success: bool = True
    payment_url: str


class EnsureUserRequest(CamelModel):
    email: Optional[str] = None


class EnsureUserResponse(CamelModel):
    success: bool = True
    user_existed: bool
    student_exists: bool
    user_id: Optional[str] = None
    message: str
