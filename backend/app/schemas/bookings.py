# backend/app/schemas/bookings.py

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ..models.documents import BookingStatus
from ..services.slots.config import TIME_RE, canonical_date

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 7


def _clean(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


def _check_date(v: str) -> str:
    return canonical_date(v)


def _check_time(v: str) -> str:
    if not TIME_RE.match(v):
        raise ValueError("Time must be in HH:MM format")
    return v


def _check_phone(v: Optional[str]) -> Optional[str]:
    v = _clean(v)
    if v is not None and len(re.sub(r"\D", "", v)) < MIN_PHONE_DIGITS:
        raise ValueError("Phone number is too short")
    return v


def _check_email(v: Optional[str]) -> Optional[str]:
    v = _clean(v)
    if v is not None and not EMAIL_RE.match(v):
        raise ValueError("Invalid email address")
    return v


class BookingCreate(BaseModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    service: Optional[str] = None
    price: Optional[str] = None

    date: str
    time: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v)

    @field_validator("service", "price")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _clean(v)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_date(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)

    @model_validator(mode="after")
    def require_contact(self) -> "BookingCreate":
        if not self.phone and not self.email:
            raise ValueError("Phone or email is required")
        return self


class BookingUpdate(BaseModel):
    """Edit/reschedule body. Unset fields are left unchanged."""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    service: Optional[str] = None
    price: Optional[str] = None

    date: Optional[str] = None
    time: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip() if v is not None else None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v)

    @field_validator("service", "price")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _clean(v)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: Optional[str]) -> Optional[str]:
        return _check_date(v) if v is not None else None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v) if v is not None else None


class BookingRead(BaseModel):
    id: str

    date: str
    time: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    service: Optional[str] = None
    price: Optional[str] = None

    status: BookingStatus
    slot_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
