from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
import re
import phonenumbers


def validate_phone(value: Optional[str]) -> Optional[str]:
    """Accept international numbers with or without a leading '+'."""
    if value is None:
        return value
    raw = value.strip()
    cleaned = re.sub(r"[^\d+]", "", raw)
    if not cleaned:
        raise ValueError("phone number is empty")
    if not cleaned.startswith("+"):
        cleaned = "+" + cleaned
    try:
        number = phonenumbers.parse(cleaned, None)
    except phonenumbers.NumberParseException as e:
        raise ValueError(f"invalid phone number: {e}")
    if not phonenumbers.is_possible_number(number):
        raise ValueError("invalid phone number")
    return raw


class LeadBase(BaseModel):
    full_name: str
    phone: str
    whatsapp_number: Optional[str] = None
    email: Optional[str] = None
    consultant_id: Optional[int] = None
    status: str = "New"
    priority: str = "Medium"
    source: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('phone', 'whatsapp_number')
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


class LeadCreate(LeadBase):
    pass


class LeadUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    email: Optional[str] = None
    consultant_id: Optional[int] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('full_name', 'phone', 'status', 'priority')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v

    @field_validator('phone', 'whatsapp_number')
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


class LeadResponse(BaseModel):
    id: int
    full_name: str
    phone: str
    whatsapp_number: Optional[str] = None
    email: Optional[str] = None
    consultant_id: Optional[int] = None
    created_by: Optional[int] = None
    status: str
    priority: str
    source: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
