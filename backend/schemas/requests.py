# schemas/requests.py
# ============================================================================
# ASTA EDUCATION BACKEND - REQUEST SCHEMAS
# ============================================================================
# Inbound payloads. Fields are optional at parse time; the pipelines decide
# what is missing so clients get the service's own 400 bodies.
# ============================================================================

from decimal import Decimal
from typing import ClassVar, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class _Payload(BaseModel):
    """Base payload: numbers sent for text fields are accepted as text."""

    @field_validator("*", mode="before")
    @classmethod
    def _numbers_as_text(cls, value, info):
        field = cls.model_fields.get(info.field_name)
        if field is not None and field.annotation == Optional[str]:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return str(value)
        return value

    def missing(self, *names: str) -> List[str]:
        return [name for name in names if _blank(getattr(self, name))]


class StudentInfo(_Payload):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    course: Optional[str] = None
    amount: Optional[Decimal] = None

    REQUIRED: ClassVar[Tuple[str, ...]] = ("name", "email", "phone", "course", "amount")


class CreateOrderRequest(StudentInfo):
    pass


class VerifyPaymentRequest(_Payload):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    student_info: Optional[StudentInfo] = None


class ContactSubmission(_Payload):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None

    REQUIRED: ClassVar[Tuple[str, ...]] = ("name", "email", "subject", "message")


class AboutSubmission(_Payload):
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None

    REQUIRED: ClassVar[Tuple[str, ...]] = ("name", "email", "subject", "message")


class ContentCreateRequest(_Payload):
    """Metadata for an asset already uploaded to the media host."""
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    storage_key: Optional[str] = Field(default=None, alias="public_id")
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    file_name: Optional[str] = None
    created_by: Optional[str] = None
    creator_email: Optional[str] = None
    external_auth_id: Optional[str] = None

    model_config = {"populate_by_name": True}

    REQUIRED: ClassVar[Tuple[str, ...]] = ("title", "url")
