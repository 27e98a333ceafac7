from sqlalchemy import Column, Integer, String, DateTime, JSON, Text
from config.database import Base
from datetime import datetime


class Schedule(Base):
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    course_id = Column(Integer, nullable=False)
    trainer_id = Column(Integer, nullable=False, index=True)
    student_ids = Column(JSON, nullable=False, default=list)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), default="confirmed", nullable=False)  # confirmed, pending, cancelled
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Schedule(id={self.id}, trainer_id={self.trainer_id}, {self.start_time} - {self.end_time})>"
