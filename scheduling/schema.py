from pydantic import BaseModel, ValidationInfo, field_validator, model_validator
from datetime import date as dt_date, time as dt_time, datetime as dt_datetime, timezone
from typing import Optional, List, Literal, Union, Tuple

ScheduleStatus = Literal["confirmed", "pending", "cancelled"]


def to_naive_utc(value: dt_datetime) -> dt_datetime:
    """Schedules are stored as naive UTC; offset-aware input is converted"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ScheduleBase(BaseModel):
    title: str
    course_id: int
    trainer_id: int
    student_ids: List[int] = []
    start_time: dt_datetime
    end_time: dt_datetime
    status: ScheduleStatus = "confirmed"
    notes: Optional[str] = None

    @field_validator('start_time')
    @classmethod
    def normalize_start_time(cls, v):
        return to_naive_utc(v)

    @field_validator('end_time')
    @classmethod
    def validate_end_time(cls, v, info: ValidationInfo):
        v = to_naive_utc(v)
        start = info.data.get('start_time')
        if start is not None and v <= start:
            raise ValueError('end_time must be after start_time')
        return v


class ScheduleCreate(ScheduleBase):
    pass


class ScheduleUpdate(BaseModel):
    title: Optional[str] = None
    course_id: Optional[int] = None
    trainer_id: Optional[int] = None
    student_ids: Optional[List[int]] = None
    start_time: Optional[dt_datetime] = None
    end_time: Optional[dt_datetime] = None
    status: Optional[ScheduleStatus] = None
    notes: Optional[str] = None

    @field_validator('title', 'course_id', 'trainer_id', 'student_ids', 'start_time', 'end_time', 'status')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError('may not be null')
        if isinstance(v, dt_datetime):
            return to_naive_utc(v)
        return v


class ScheduleResponse(ScheduleBase):
    id: int
    created_by: Optional[int] = None
    created_at: Optional[dt_datetime] = None

    class Config:
        from_attributes = True


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: List[ScheduleResponse] = []


class ConflictCheckRequest(BaseModel):
    """Either full datetimes, or a date plus start/end times of day"""
    trainer_id: int
    start_time: Union[dt_datetime, dt_time]
    end_time: Union[dt_datetime, dt_time]
    date: Optional[dt_date] = None
    exclude_schedule_id: Optional[int] = None

    @model_validator(mode='after')
    def check_interval(self):
        start, end = self.interval()
        if end <= start:
            raise ValueError('end_time must be after start_time')
        return self

    def interval(self) -> Tuple[dt_datetime, dt_datetime]:
        start, end = self.start_time, self.end_time
        if isinstance(start, dt_time):
            if self.date is None:
                raise ValueError('date is required when start_time is a time of day')
            start = dt_datetime.combine(self.date, start)
        if isinstance(end, dt_time):
            if self.date is None:
                raise ValueError('date is required when end_time is a time of day')
            end = dt_datetime.combine(self.date, end)
        return to_naive_utc(start), to_naive_utc(end)
