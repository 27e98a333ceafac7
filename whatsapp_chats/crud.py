from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from datetime import datetime
from .models import WhatsappChat, WhatsappMessage, WhatsappSettings

# ---------------- Chats ----------------

def get_whatsapp_chats(db: Session, consultant_id: Optional[int] = None) -> List[WhatsappChat]:
    query = db.query(WhatsappChat)
    if consultant_id is not None:
        query = query.filter(WhatsappChat.consultant_id == consultant_id)
    return query.order_by(WhatsappChat.last_message_time.desc()).all()

def get_whatsapp_chat(db: Session, chat_id: int) -> Optional[WhatsappChat]:
    return db.query(WhatsappChat).filter(WhatsappChat.id == chat_id).first()

def find_chat_by_phone_number(db: Session, phone_number: str) -> Optional[WhatsappChat]:
    return db.query(WhatsappChat).filter(WhatsappChat.phone_number == phone_number).first()

def create_whatsapp_chat(db: Session, lead_id: Optional[int], phone_number: str, consultant_id: Optional[int]) -> WhatsappChat:
    chat = WhatsappChat(
        lead_id=lead_id,
        phone_number=phone_number,
        consultant_id=consultant_id,
        last_message_time=datetime.utcnow(),
        unread_count=0,
    )
    db.add(chat)
    db.commit()
    db.refresh(chat)
    return chat

def mark_chat_read(db: Session, chat: WhatsappChat) -> WhatsappChat:
    chat.unread_count = 0
    db.commit()
    db.refresh(chat)
    return chat

# ---------------- Messages ----------------

def create_whatsapp_message(
    db: Session,
    chat: WhatsappChat,
    content: str,
    direction: str,
    status: str,
    message_id: Optional[str] = None,
) -> WhatsappMessage:
    """Store a message and keep the chat's bookkeeping in step"""
    now = datetime.utcnow()
    message = WhatsappMessage(
        chat_id=chat.id,
        content=content,
        direction=direction,
        status=status,
        message_id=message_id,
        timestamp=now,
    )
    db.add(message)
    chat.last_message_time = now
    if direction == "incoming":
        chat.unread_count = (chat.unread_count or 0) + 1
    db.commit()
    db.refresh(message)
    return message

def get_chat_messages(db: Session, chat_id: int, limit: int = 100, offset: int = 0) -> List[WhatsappMessage]:
    return (db.query(WhatsappMessage)
            .filter(WhatsappMessage.chat_id == chat_id)
            .order_by(WhatsappMessage.id.asc())
            .offset(offset)
            .limit(limit)
            .all())

# ---------------- Settings ----------------

def get_whatsapp_settings(db: Session) -> Optional[WhatsappSettings]:
    return db.query(WhatsappSettings).order_by(WhatsappSettings.id.asc()).first()

def save_whatsapp_settings(db: Session, data: Dict[str, Any]) -> WhatsappSettings:
    settings = get_whatsapp_settings(db)
    if settings is None:
        settings = WhatsappSettings(**data)
        db.add(settings)
    else:
        for key, value in data.items():
            setattr(settings, key, value)
    db.commit()
    db.refresh(settings)
    return settings
