# backend/app/schemas/services.py

from typing import Optional
from pydantic import BaseModel, field_validator

ICON_KEYS = (
    "Wrench",
    "Gauge",
    "Settings",
    "Car",
    "ShieldCheck",
    "Hammer",
    "Sparkles",
    "Zap",
    "BatteryCharging",
)
DEFAULT_ICON = "Wrench"


def _icon(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return v if v in ICON_KEYS else DEFAULT_ICON


class ServiceCreate(BaseModel):
    icon_key: str = DEFAULT_ICON
    title: str = "New Service"
    desc: str = "Describe the service."
    price_label: str = "from $.. / .."
    active: bool = True

    @field_validator("icon_key")
    @classmethod
    def validate_icon(cls, v: str) -> str:
        return _icon(v)


class ServiceUpdate(BaseModel):
    icon_key: Optional[str] = None
    title: Optional[str] = None
    desc: Optional[str] = None
    price_label: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("icon_key")
    @classmethod
    def validate_icon(cls, v: Optional[str]) -> Optional[str]:
        return _icon(v)


class ServiceRead(BaseModel):
    id: str
    icon_key: str = DEFAULT_ICON
    title: str
    desc: str = ""
    price_label: str = ""
    active: bool
    order: int

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("icon_key")
    @classmethod
    def validate_icon(cls, v: str) -> str:
        return _icon(v)
