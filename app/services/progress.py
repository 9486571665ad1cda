"""Lesson progress and coin bonus calculation.

Turns mastery records and score history into completion statistics and
edge-triggered bonus events. All functions are pure: callers persist any
coins granted, and must not re-run an evaluation over the same event or the
bonus will be granted twice.
"""
import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from app.constants import (
    COMPLETION_MASTERY_LEVEL,
    MILESTONES,
    DEFAULT_MILESTONE_BONUSES,
    DEFAULT_STREAK_THRESHOLD,
    DEFAULT_STREAK_MIN_SCORE,
    DEFAULT_STREAK_COINS,
    DEFAULT_FIRST_PRACTICE_BONUS,
    MAX_SCORE_COINS,
    EARLY_COMPLETION_MAX_DAYS,
    EARLY_COMPLETION_MAX_BONUS,
    LATE_PENALTY_MAX_DAYS,
    LATE_PENALTY_MAX_COINS,
)
from app.services.numeric import coerce_number, round_half_up

logger = logging.getLogger(__name__)

MILESTONE_DETAILS = {
    25: ("Quarter Complete", "🎯"),
    50: ("Halfway There", "🔥"),
    75: ("Almost Done", "⭐"),
    100: ("Lesson Complete", "🏆"),
}


class BonusKind(str, Enum):
    """Kind of coin bonus."""
    MILESTONE = "milestone"
    STREAK = "streak"
    FIRST_TIME = "first_time"


@dataclass(frozen=True)
class ProgressStats:
    """Completion statistics for one lesson."""
    total_items: int
    completed_items: int
    completion_percent: int
    previous_percent: int
    milestone_achieved: Optional[int] = None


@dataclass(frozen=True)
class BonusEvent:
    """A coin bonus triggered by a single evaluation."""
    kind: BonusKind
    coins: int
    label: str
    milestone: Optional[int] = None
    icon: Optional[str] = None
    consecutive_high_scores: Optional[int] = None


@dataclass
class BonusConfig:
    """Overridable bonus amounts and streak rules."""
    milestone_25_bonus: int = DEFAULT_MILESTONE_BONUSES[25]
    milestone_50_bonus: int = DEFAULT_MILESTONE_BONUSES[50]
    milestone_75_bonus: int = DEFAULT_MILESTONE_BONUSES[75]
    milestone_100_bonus: int = DEFAULT_MILESTONE_BONUSES[100]
    streak_bonus_threshold: int = DEFAULT_STREAK_THRESHOLD
    streak_bonus_min_score: float = DEFAULT_STREAK_MIN_SCORE
    streak_bonus_coins: int = DEFAULT_STREAK_COINS
    first_practice_bonus: int = DEFAULT_FIRST_PRACTICE_BONUS

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, Any]] = None) -> "BonusConfig":
        """Build a config from a partial mapping; unknown keys and None values are ignored."""
        known = {f.name for f in fields(cls)}
        values = {
            key: value
            for key, value in (overrides or {}).items()
            if key in known and value is not None
        }
        return cls(**values)

    def milestone_coins(self, milestone: int) -> int:
        return getattr(self, f"milestone_{milestone}_bonus")


def _resolve_config(config) -> BonusConfig:
    if isinstance(config, BonusConfig):
        return config
    return BonusConfig.from_overrides(config)


def _mastery_level(record: Any) -> float:
    """Read a mastery level from a bare number, a mapping or an object."""
    if isinstance(record, Mapping):
        return coerce_number(record.get("mastery_level"))
    if hasattr(record, "mastery_level"):
        return coerce_number(record.mastery_level)
    return coerce_number(record)


def lesson_item_count(categories: Optional[Mapping[str, Any]]) -> int:
    """
    Count practice items across all categories of a lesson.

    Categories whose value is not a list contribute nothing.
    """
    if not categories:
        return 0
    return sum(len(items) for items in categories.values() if isinstance(items, (list, tuple)))


def percent_complete(completed: int, total: int) -> int:
    """Completion percentage 0-100, or 0 when there is nothing to complete."""
    if total <= 0:
        return 0
    return round_half_up(completed / total * 100)


def detect_milestone(current_percent: int, previous_percent: int) -> Optional[int]:
    """
    Return the first milestone crossed between two completion percentages.

    Milestones are scanned in ascending order, so only the lowest newly
    crossed threshold is reported.
    """
    for milestone in MILESTONES:
        if current_percent >= milestone and previous_percent < milestone:
            return milestone
    return None


def compute_progress_between(
    total_items: int,
    completed_before: int,
    completed_after: int
) -> ProgressStats:
    """
    Calculate progress from explicit before/after completed counts.

    Use this when several items may complete between evaluations; unlike
    compute_progress it cannot skip a milestone.
    """
    total = max(0, int(total_items))
    completed = max(0, int(completed_after))
    previous = max(0, int(completed_before))

    completion_percent = percent_complete(completed, total)
    previous_percent = percent_complete(previous, total)

    return ProgressStats(
        total_items=total,
        completed_items=completed,
        completion_percent=completion_percent,
        previous_percent=previous_percent,
        milestone_achieved=detect_milestone(completion_percent, previous_percent),
    )


def compute_progress(
    categories: Optional[Mapping[str, Any]],
    mastery_records: Iterable[Any]
) -> ProgressStats:
    """
    Calculate lesson completion and detect a newly reached milestone.

    An item counts as completed at mastery level 3 or above. The previous
    percentage assumes exactly one item completed since the last evaluation,
    so this must be called once per newly completed item.

    Args:
        categories: Lesson categories mapping name -> list of items
        mastery_records: Mastery levels, as numbers or records with a
            mastery_level field

    Returns:
        ProgressStats for the lesson
    """
    total_items = lesson_item_count(categories)
    completed_items = sum(
        1 for record in mastery_records
        if _mastery_level(record) >= COMPLETION_MASTERY_LEVEL
    )

    stats = compute_progress_between(
        total_items,
        max(0, completed_items - 1),
        completed_items,
    )

    if stats.milestone_achieved is not None:
        logger.debug(
            f"Milestone {stats.milestone_achieved}% reached "
            f"({stats.previous_percent}% -> {stats.completion_percent}%)"
        )
    return stats


def milestone_bonus(milestone: Optional[int], config=None) -> Optional[BonusEvent]:
    """
    Look up the coin bonus for a milestone.

    Args:
        milestone: 25, 50, 75 or 100
        config: BonusConfig or mapping of overrides

    Returns:
        BonusEvent, or None for any other value
    """
    details = MILESTONE_DETAILS.get(milestone)
    if details is None:
        return None

    label, icon = details
    return BonusEvent(
        kind=BonusKind.MILESTONE,
        coins=_resolve_config(config).milestone_coins(milestone),
        label=label,
        milestone=milestone,
        icon=icon,
    )


def streak_bonus(recent_scores: Iterable[Any], config=None) -> Optional[BonusEvent]:
    """
    Award a bonus for consecutive high scores at the end of the history.

    The run is counted backward from the most recent score. Coins scale in
    whole multiples of the threshold: with threshold 3, runs of 3-5 earn one
    multiple and runs of 6-8 earn two.

    Args:
        recent_scores: Scores in chronological order, most recent last
        config: BonusConfig or mapping of overrides

    Returns:
        BonusEvent, or None if the run is shorter than the threshold
    """
    streak_config = _resolve_config(config)
    threshold = int(streak_config.streak_bonus_threshold)
    if threshold <= 0:
        return None

    consecutive = 0
    for score in reversed(list(recent_scores)):
        if coerce_number(score) >= streak_config.streak_bonus_min_score:
            consecutive += 1
        else:
            break

    if consecutive < threshold:
        return None

    return BonusEvent(
        kind=BonusKind.STREAK,
        coins=streak_config.streak_bonus_coins * (consecutive // threshold),
        label=f"{consecutive}x Streak Bonus",
        consecutive_high_scores=consecutive,
    )


def first_time_bonus(attempt_count: int, config=None) -> int:
    """
    Coins for practicing an item for the first time.

    attempt_count must already include the current attempt; only exactly 1
    earns the bonus.
    """
    if attempt_count != 1:
        return 0
    return _resolve_config(config).first_practice_bonus


def score_coins(score: Any) -> int:
    """Base coins earned for a practice score (0-100 maps to 0-15 coins)."""
    value = min(100.0, max(0.0, coerce_number(score)))
    return round_half_up(value / 100 * MAX_SCORE_COINS)


def early_completion_bonus(days_early: Any) -> int:
    """Coins for finishing a lesson before its deadline, capped at 3 days early."""
    days = coerce_number(days_early)
    if days <= 0:
        return 0
    capped = min(days, EARLY_COMPLETION_MAX_DAYS)
    return round_half_up(capped / EARLY_COMPLETION_MAX_DAYS * EARLY_COMPLETION_MAX_BONUS)


def late_penalty(days_late: Any, completion_percent: Any) -> int:
    """
    Coins deducted for an overdue lesson.

    Grows with days late (capped at a week) and shrinks with how much of the
    lesson was completed. Returned as a positive amount.
    """
    days = coerce_number(days_late)
    if days <= 0:
        return 0
    completion = min(100.0, max(0.0, coerce_number(completion_percent)))
    capped = min(days, LATE_PENALTY_MAX_DAYS)
    return round_half_up(capped / LATE_PENALTY_MAX_DAYS * LATE_PENALTY_MAX_COINS * (1 - completion / 100))
