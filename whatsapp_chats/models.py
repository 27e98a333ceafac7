from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from config.database import Base
from leads.models import Lead
from datetime import datetime


class WhatsappChat(Base):
    __tablename__ = "whatsapp_chats"

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="SET NULL"), nullable=True)
    # One chat thread per phone number
    phone_number = Column(String(32), nullable=False, unique=True, index=True)
    consultant_id = Column(Integer, nullable=True)
    last_message_time = Column(DateTime, default=datetime.utcnow, nullable=True)
    unread_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lead = relationship(Lead)
    messages = relationship(
        "WhatsappMessage",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="WhatsappMessage.id",
    )

    def __repr__(self):
        return f"<WhatsappChat(id={self.id}, phone_number={self.phone_number})>"


class WhatsappMessage(Base):
    __tablename__ = "whatsapp_messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("whatsapp_chats.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    direction = Column(String(20), nullable=False)  # incoming, outgoing
    status = Column(String(20), nullable=False)     # received, sent, failed, read
    message_id = Column(String(300), nullable=True)  # provider (wamid) id
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    chat = relationship("WhatsappChat", back_populates="messages")

    def __repr__(self):
        return f"<WhatsappMessage(id={self.id}, chat_id={self.chat_id}, direction={self.direction})>"


class WhatsappSettings(Base):
    __tablename__ = "whatsapp_settings"

    id = Column(Integer, primary_key=True)
    api_key = Column(String(500), nullable=True)  # Cloud API access token
    phone_number_id = Column(String(100), nullable=True)
    business_account_id = Column(String(100), nullable=True)
    webhook_verify_token = Column(String(255), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<WhatsappSettings(phone_number_id={self.phone_number_id})>"
