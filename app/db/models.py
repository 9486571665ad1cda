"""SQLAlchemy models for the Lesson Pacer service."""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, Text, Date, DateTime, Float, CheckConstraint, Index
from app.db.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ScoringConfig(Base):
    """Persisted weight and thresholds of one scoring metric."""
    __tablename__ = "scoring_config"

    id = Column(Text, primary_key=True, default=_new_id)
    metric_name = Column(Text, unique=True, nullable=False)  # e.g. "speech_rate"
    weight = Column(Float, nullable=False, default=0.0)  # fraction 0.0-1.0
    min_value = Column(Float, nullable=True)
    max_value = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("weight >= 0 AND weight <= 1", name="ck_scoring_config_weight"),
    )


class DailyStreak(Base):
    """Consecutive-day practice streak for one learner."""
    __tablename__ = "daily_streaks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, unique=True, nullable=False)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_practice_date = Column(Date, nullable=True)
    streak_start_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_streak_current', 'current_streak'),
    )
