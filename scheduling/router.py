from fastapi import APIRouter, Request, Depends, HTTPException
from sqlalchemy import orm
from config.database import get_db
from shared_utils.auth import get_current_user_id
from .models import Schedule
from .schema import (
    ScheduleCreate, ScheduleUpdate, ScheduleResponse,
    ConflictCheckRequest, ConflictCheckResponse,
)
from .conflicts import find_conflicts, CANCELLED
from typing import List, Optional
import logging

router = APIRouter(prefix="/api/schedules", tags=["schedules"])
logger = logging.getLogger(__name__)


def _reject_conflicts(db: orm.Session, trainer_id: int, start, end, exclude_schedule_id: Optional[int] = None):
    conflicts = find_conflicts(db, trainer_id, start, end, exclude_schedule_id=exclude_schedule_id)
    if conflicts:
        ids = [schedule.id for schedule in conflicts]
        logger.info(f"Trainer {trainer_id} already booked {start} - {end} (schedules {ids})")
        raise HTTPException(
            status_code=409,
            detail={"message": "Trainer has a conflicting schedule", "conflicting_ids": ids},
        )


@router.get("", response_model=List[ScheduleResponse])
def read_schedules(
    trainer_id: Optional[int] = None,
    course_id: Optional[int] = None,
    status: Optional[str] = None,
    db: orm.Session = Depends(get_db),
):
    query = db.query(Schedule)
    if trainer_id is not None:
        query = query.filter(Schedule.trainer_id == trainer_id)
    if course_id is not None:
        query = query.filter(Schedule.course_id == course_id)
    if status:
        query = query.filter(Schedule.status == status)
    return query.order_by(Schedule.start_time.asc()).all()


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
def check_conflicts(payload: ConflictCheckRequest, db: orm.Session = Depends(get_db)):
    start, end = payload.interval()
    conflicts = find_conflicts(db, payload.trainer_id, start, end, exclude_schedule_id=payload.exclude_schedule_id)
    return ConflictCheckResponse(
        has_conflict=bool(conflicts),
        conflicts=[ScheduleResponse.model_validate(schedule) for schedule in conflicts],
    )


@router.get("/{schedule_id}", response_model=ScheduleResponse)
def read_schedule(schedule_id: int, db: orm.Session = Depends(get_db)):
    schedule = db.query(Schedule).filter(Schedule.id == schedule_id).first()
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return schedule


@router.post("", response_model=ScheduleResponse, status_code=201)
def create_schedule(payload: ScheduleCreate, request: Request, db: orm.Session = Depends(get_db)):
    try:
        if payload.status != CANCELLED:
            _reject_conflicts(db, payload.trainer_id, payload.start_time, payload.end_time)

        schedule = Schedule(**payload.model_dump(), created_by=get_current_user_id(request))
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        logger.info(f"✅ Schedule {schedule.id} created for trainer {schedule.trainer_id}")
        return schedule
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating schedule: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create schedule")


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(schedule_id: int, payload: ScheduleUpdate, db: orm.Session = Depends(get_db)):
    try:
        schedule = db.query(Schedule).filter(Schedule.id == schedule_id).first()
        if not schedule:
            raise HTTPException(status_code=404, detail="Schedule not found")

        changes = payload.model_dump(exclude_unset=True)
        trainer_id = changes.get("trainer_id", schedule.trainer_id)
        start = changes.get("start_time", schedule.start_time)
        end = changes.get("end_time", schedule.end_time)
        status = changes.get("status", schedule.status)

        if end <= start:
            raise HTTPException(status_code=422, detail="end_time must be after start_time")
        if status != CANCELLED:
            _reject_conflicts(db, trainer_id, start, end, exclude_schedule_id=schedule.id)

        for key, value in changes.items():
            setattr(schedule, key, value)
        db.commit()
        db.refresh(schedule)
        return schedule
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating schedule {schedule_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update schedule")


@router.delete("/{schedule_id}")
def delete_schedule(schedule_id: int, db: orm.Session = Depends(get_db)):
    try:
        schedule = db.query(Schedule).filter(Schedule.id == schedule_id).first()
        if not schedule:
            raise HTTPException(status_code=404, detail="Schedule not found")
        db.delete(schedule)
        db.commit()
        return {"message": f"Schedule {schedule_id} deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting schedule {schedule_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete schedule")
