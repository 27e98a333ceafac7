from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class WhatsappChatResponse(BaseModel):
    id: int
    lead_id: Optional[int] = None
    phone_number: str
    consultant_id: Optional[int] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WhatsappMessageResponse(BaseModel):
    id: int
    chat_id: int
    content: str
    direction: str
    status: str
    message_id: Optional[str] = None
    timestamp: Optional[datetime] = None

    class Config:
        from_attributes = True


class WhatsappSettingsUpdate(BaseModel):
    api_key: Optional[str] = None
    phone_number_id: Optional[str] = None
    business_account_id: Optional[str] = None
    webhook_verify_token: Optional[str] = None


class WhatsappSettingsResponse(WhatsappSettingsUpdate):
    id: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
