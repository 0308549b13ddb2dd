# backend/app/schemas/pricing.py

from typing import Optional
from pydantic import BaseModel, field_validator

DETAILS_COUNT = 3
DEFAULT_CURRENCY = "CAD"


def normalize_details(details: Optional[list[str]]) -> list[str]:
    """Exactly three bullet points: extra ones are cut, missing ones are blank."""
    details = list(details or [])[:DETAILS_COUNT]
    while len(details) < DETAILS_COUNT:
        details.append("")
    return details


class PricingCreate(BaseModel):
    name: str = "New Package"
    price: str = "$.."
    details: list[str] = ["Point one", "Point two", "Point three"]
    currency: str = DEFAULT_CURRENCY
    active: bool = True

    @field_validator("details")
    @classmethod
    def validate_details(cls, v: list[str]) -> list[str]:
        return normalize_details(v)


class PricingUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[str] = None
    details: Optional[list[str]] = None
    currency: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("details")
    @classmethod
    def validate_details(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return normalize_details(v) if v is not None else None


class PricingRead(BaseModel):
    id: str
    name: str
    price: str
    details: list[str]
    currency: str = DEFAULT_CURRENCY
    active: bool
    order: int

    created_at: Optional[str] = None
    updated_at: Optional[str] = None
