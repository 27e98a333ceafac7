from sqlalchemy import Column, Integer, String, DateTime, Text
from config.database import Base
from datetime import datetime


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False, index=True)
    whatsapp_number = Column(String(32), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    consultant_id = Column(Integer, nullable=True)
    created_by = Column(Integer, nullable=True)
    status = Column(String(50), default="New", nullable=False)
    priority = Column(String(50), default="Medium", nullable=False)
    source = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Lead(id={self.id}, phone={self.phone})>"
