"""Daily practice streak tracking."""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


@dataclass(frozen=True)
class StreakState:
    """Stored streak for one learner."""
    current_streak: int
    longest_streak: int
    last_practice_date: Optional[date] = None
    streak_start_date: Optional[date] = None


@dataclass(frozen=True)
class StreakUpdate:
    """Result of recording a practice day."""
    state: StreakState
    is_new_day: bool
    streak_extended: bool = False


def advance_streak(state: Optional[StreakState], today: date) -> StreakUpdate:
    """
    Record a practice on `today` and return the resulting streak.

    Rules:
    - No previous streak: start at 1
    - Already practiced today: unchanged
    - Last practice was yesterday: extend by 1
    - Any longer gap (or a last practice in the future): reset to 1

    Args:
        state: Stored streak, or None if the learner has never practiced
        today: Date of the practice

    Returns:
        StreakUpdate with the new state and whether this was a new day
    """
    if state is None:
        return StreakUpdate(
            state=StreakState(
                current_streak=1,
                longest_streak=1,
                last_practice_date=today,
                streak_start_date=today,
            ),
            is_new_day=True,
        )

    if state.last_practice_date == today:
        return StreakUpdate(state=state, is_new_day=False)

    new_streak = 1
    streak_start = today
    if state.last_practice_date is not None and today - state.last_practice_date == timedelta(days=1):
        new_streak = state.current_streak + 1
        streak_start = state.streak_start_date or today

    new_state = StreakState(
        current_streak=new_streak,
        longest_streak=max(state.longest_streak, new_streak),
        last_practice_date=today,
        streak_start_date=streak_start,
    )
    return StreakUpdate(state=new_state, is_new_day=True, streak_extended=new_streak > 1)
