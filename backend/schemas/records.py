# schemas/records.py
# ============================================================================
# ASTA EDUCATION BACKEND - RECORD SCHEMAS
# ============================================================================
# Typed rows for every table owned by the record store
# ============================================================================

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# SECTION 1: ENUMS
# ============================================================================

class PaymentStatus(str, Enum):
    SUCCESSFUL = "successful"


class EntityKind(str, Enum):
    """Entities that are mirrored into spreadsheet exports."""
    STUDENTS = "students"
    CONTACT_MESSAGES = "contact_messages"
    ABOUT_INQUIRIES = "about_inquiries"


class ContentType(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    VIDEO = "video"
    WORD = "word"
    PPT = "ppt"
    OTHER = "other"


# ============================================================================
# SECTION 2: INSERT PAYLOADS
# ============================================================================

class StudentCreate(BaseModel):
    name: str
    email: str
    phone: str
    course: str
    amount: Decimal = Field(gt=0)
    payment_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.SUCCESSFUL


class ContactMessageCreate(BaseModel):
    name: str
    email: str
    phone: str = ""
    subject: str
    message: str


class AboutInquiryCreate(BaseModel):
    name: str
    email: str
    subject: str
    message: str


class ContentCreate(BaseModel):
    title: str
    description: Optional[str] = None
    content_type: ContentType = ContentType.OTHER
    url: str
    storage_key: Optional[str] = None
    file_size: Optional[int] = None
    file_name: Optional[str] = None
    created_by: Optional[str] = None
    creator_email: Optional[str] = None
    external_auth_id: Optional[str] = None


# ============================================================================
# SECTION 3: COMMITTED RECORDS
# ============================================================================

class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class StudentRegistration(_Record):
    id: int
    name: str
    email: str
    phone: str
    course: str
    amount: Decimal
    payment_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.SUCCESSFUL
    registration_date: datetime


class ContactMessage(_Record):
    id: int
    name: str
    email: str
    phone: Optional[str] = ""
    subject: str
    message: str
    submission_date: datetime


class AboutInquiry(_Record):
    id: int
    name: str
    email: str
    subject: str
    message: str
    submission_date: datetime


class ContentMetadata(_Record):
    id: int
    title: str
    description: Optional[str] = None
    content_type: ContentType
    url: str
    storage_key: Optional[str] = None
    file_size: Optional[int] = None
    file_name: Optional[str] = None
    created_by: Optional[str] = None
    creator_email: Optional[str] = None
    external_auth_id: Optional[str] = None
    created_at: datetime


class User(_Record):
    id: int
    name: Optional[str] = None
    email: str
    external_auth_id: Optional[str] = None
    role: str = "student"
    created_at: datetime
