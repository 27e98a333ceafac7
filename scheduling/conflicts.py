"""
Trainer schedule conflict detection
Two schedules conflict when they share a trainer, neither is cancelled and
their half-open [start, end) intervals overlap
"""
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
from .models import Schedule

CANCELLED = "cancelled"


def find_conflicts(
    db: Session,
    trainer_id: int,
    start: datetime,
    end: datetime,
    exclude_schedule_id: Optional[int] = None,
) -> List[Schedule]:
    """Existing non-cancelled schedules of the trainer that overlap [start, end)"""
    # Back-to-back slots (one ends exactly when the other starts) do not overlap
    query = db.query(Schedule).filter(
        Schedule.trainer_id == trainer_id,
        Schedule.status != CANCELLED,
        Schedule.start_time < end,
        Schedule.end_time > start,
    )
    if exclude_schedule_id is not None:
        query = query.filter(Schedule.id != exclude_schedule_id)
    return query.order_by(Schedule.start_time.asc(), Schedule.id.asc()).all()
