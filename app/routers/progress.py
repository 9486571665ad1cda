"""Progress evaluation and daily streak endpoints."""
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import DailyStreak
from app.services.progress import (
    BonusConfig,
    BonusEvent,
    BonusKind,
    compute_progress,
    compute_progress_between,
    first_time_bonus,
    lesson_item_count,
    milestone_bonus,
    streak_bonus,
)
from app.services.streak import StreakState, advance_streak
from app.constants import COMPLETION_MASTERY_LEVEL
from app.logging_config import get_logger

router = APIRouter(prefix="/api/progress", tags=["progress"])
logger = get_logger(__name__)


class ProgressEvaluation(BaseModel):
    """Request body for evaluating one practice event."""
    categories: Optional[Dict[str, Any]] = None
    mastery_levels: List[float] = Field(default_factory=list)
    completed_before: Optional[int] = Field(None, ge=0, description="Exact completed count before this event")
    recent_scores: List[float] = Field(default_factory=list, max_length=1000)
    attempt_count: Optional[int] = Field(None, ge=0, description="Attempts including the current one")
    bonus_config: Dict[str, float] = Field(default_factory=dict)

    @validator('bonus_config')
    def validate_bonus_config(cls, v):
        """Reject unknown bonus settings and fractional coin amounts."""
        known = BonusConfig.__dataclass_fields__
        unknown = sorted(set(v) - set(known))
        if unknown:
            raise ValueError(f"unknown bonus settings: {', '.join(unknown)}")

        resolved = {}
        for key, value in v.items():
            if known[key].type in (int, "int"):
                if not float(value).is_integer():
                    raise ValueError(f"{key} must be a whole number")
                value = int(value)
            resolved[key] = value
        return resolved


def serialize_bonus(bonus: BonusEvent) -> Dict[str, Any]:
    data = asdict(bonus)
    data["kind"] = bonus.kind.value
    return {key: value for key, value in data.items() if value is not None}


def serialize_streak(streak: DailyStreak) -> Dict[str, Any]:
    return {
        "user_id": streak.user_id,
        "current_streak": streak.current_streak,
        "longest_streak": streak.longest_streak,
        "last_practice_date": streak.last_practice_date.isoformat() if streak.last_practice_date else None,
        "streak_start_date": streak.streak_start_date.isoformat() if streak.streak_start_date else None
    }


@router.post("/evaluate")
async def evaluate_progress(body: ProgressEvaluation):
    """
    Evaluate lesson progress and bonuses for one practice event.

    Bonuses are reported, not granted: the caller must record the coins
    exactly once per event.

    Returns:
    - progress: completion statistics and any milestone reached
    - bonuses: milestone, streak and first-time bonuses triggered
    - total_bonus_coins: sum of all bonus coins
    """
    config = BonusConfig.from_overrides(body.bonus_config)

    if body.completed_before is not None:
        stats = compute_progress_between(
            lesson_item_count(body.categories),
            body.completed_before,
            len([level for level in body.mastery_levels if level >= COMPLETION_MASTERY_LEVEL])
        )
    else:
        stats = compute_progress(body.categories, body.mastery_levels)

    bonuses: List[BonusEvent] = []

    milestone = milestone_bonus(stats.milestone_achieved, config)
    if milestone:
        bonuses.append(milestone)

    streak = streak_bonus(body.recent_scores, config)
    if streak:
        bonuses.append(streak)

    if body.attempt_count is not None:
        coins = first_time_bonus(body.attempt_count, config)
        if coins:
            bonuses.append(BonusEvent(kind=BonusKind.FIRST_TIME, coins=coins, label="First Practice Bonus"))

    total_coins = sum(bonus.coins for bonus in bonuses)
    if bonuses:
        logger.info(f"Progress evaluation triggered {len(bonuses)} bonuses worth {total_coins} coins")

    return {
        "progress": asdict(stats),
        "bonuses": [serialize_bonus(bonus) for bonus in bonuses],
        "total_bonus_coins": total_coins
    }


@router.get("/streak/{user_id}")
async def get_streak(user_id: str, db: Session = Depends(get_db)):
    """Return the stored daily practice streak for a learner."""
    streak = db.query(DailyStreak).filter(DailyStreak.user_id == user_id).first()
    if not streak:
        raise HTTPException(status_code=404, detail="No streak recorded")
    return serialize_streak(streak)


@router.post("/streak/{user_id}")
async def record_practice_day(
    user_id: str,
    practice_date: Optional[date] = None,
    db: Session = Depends(get_db)
):
    """
    Record that a learner practiced today and update their streak.

    Concurrent updates for the same learner are not merged; the last write
    wins.

    Returns:
    - streak fields after the update
    - is_new_day: False if the learner had already practiced that day
    - streak_extended: True if the streak grew past one day
    """
    today = practice_date or date.today()
    record = db.query(DailyStreak).filter(DailyStreak.user_id == user_id).first()

    previous = None
    if record:
        previous = StreakState(
            current_streak=record.current_streak,
            longest_streak=record.longest_streak,
            last_practice_date=record.last_practice_date,
            streak_start_date=record.streak_start_date
        )

    update = advance_streak(previous, today)

    if update.is_new_day:
        if record is None:
            record = DailyStreak(user_id=user_id)
            db.add(record)
        record.current_streak = update.state.current_streak
        record.longest_streak = update.state.longest_streak
        record.last_practice_date = update.state.last_practice_date
        record.streak_start_date = update.state.streak_start_date

        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save streak: {e}", exc_info=True, extra={"user_id": user_id})
            raise
        db.refresh(record)

        if update.streak_extended:
            logger.info(f"Streak extended to {record.current_streak} days", extra={"user_id": user_id})

    result = serialize_streak(record)
    result["is_new_day"] = update.is_new_day
    result["streak_extended"] = update.streak_extended
    return result
