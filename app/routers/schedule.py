"""Lesson deadline endpoints."""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter
from pydantic import BaseModel, Field, validator
from app.services.schedule import (
    LessonRef,
    compute_deadlines,
    deadline_status,
    format_schedule_days,
)
from app.logging_config import get_logger

router = APIRouter(prefix="/api/schedule", tags=["schedule"])
logger = get_logger(__name__)


class LessonInput(BaseModel):
    """A lesson to schedule."""
    id: str = Field(..., min_length=1, max_length=100)
    lesson_name: str = Field(..., max_length=200)
    order_index: int


class DeadlineRequest(BaseModel):
    """Request body for computing lesson deadlines."""
    start_date: date
    schedule_days: List[str] = Field(default_factory=list, max_length=50)
    lessons: List[LessonInput] = Field(default_factory=list, max_length=500)
    today: Optional[date] = None

    @validator('lessons')
    def validate_unique_lessons(cls, v):
        """Lesson ids must be unique within one schedule."""
        ids = [lesson.id for lesson in v]
        if len(ids) != len(set(ids)):
            raise ValueError('lesson ids must be unique')
        return v


@router.post("/deadlines")
async def calculate_deadlines(body: DeadlineRequest):
    """
    Compute the due date of every lesson for an enrollment.

    Returns:
    - schedule_label: short weekday summary, e.g. "Mon, Wed, Fri"
    - deadlines: one entry per lesson in lesson order, with status badge
    """
    lessons = [
        LessonRef(id=lesson.id, name=lesson.lesson_name, order_index=lesson.order_index)
        for lesson in body.lessons
    ]
    deadlines = compute_deadlines(body.start_date, body.schedule_days, lessons, today=body.today)

    results = []
    for deadline in deadlines:
        status, label = deadline_status(deadline)
        results.append({
            "lesson_id": deadline.lesson_id,
            "lesson_name": deadline.lesson_name,
            "order_index": deadline.order_index,
            "deadline": deadline.deadline.isoformat(),
            "deadline_formatted": deadline.deadline_formatted,
            "is_past": deadline.is_past,
            "is_due_today": deadline.is_due_today,
            "days_remaining": deadline.days_remaining,
            "status": status.value,
            "status_label": label
        })

    overdue = sum(1 for d in deadlines if d.is_past)
    logger.debug(f"Computed {len(results)} deadlines ({overdue} overdue)")

    return {
        "schedule_label": format_schedule_days(body.schedule_days),
        "deadlines": results
    }
