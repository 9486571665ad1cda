"""Lesson deadline scheduling.

Converts an enrollment start date plus a weekly recurrence pattern into an
ordered list of per-lesson due dates. One lesson falls due on each scheduled
weekday, in lesson order. An empty recurrence set means one lesson per
calendar day starting on the start date.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum, IntEnum
from typing import Iterable, List, Optional, Tuple, Union

from app.constants import (
    WEEKDAY_SEARCH_WINDOW,
    DUE_SOON_DAYS,
    DEADLINE_DATE_FORMAT,
    NO_SCHEDULE_LABEL,
)

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)
"""Comparison point for overdue checks: a deadline lasts until the end of its day."""


class Weekday(IntEnum):
    """Day of week, numbered from Sunday."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def short_name(self) -> str:
        return self.name[:3].title()


WEEKDAY_NUMBERS = {day.name.lower(): int(day) for day in Weekday}


class DeadlineStatus(str, Enum):
    """Display classification of a deadline."""
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_SOON = "due_soon"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class LessonRef:
    """A lesson as seen by the scheduler."""
    id: str
    name: str
    order_index: int


@dataclass(frozen=True)
class Deadline:
    """Computed due date for one lesson."""
    lesson_id: str
    lesson_name: str
    order_index: int
    deadline: date
    deadline_formatted: str
    is_past: bool
    is_due_today: bool
    days_remaining: int


def weekday_number(day: date) -> int:
    """Return the Sunday-based weekday number (0-6) of a date."""
    return day.isoweekday() % 7


def to_date(value: Union[date, datetime, str]) -> date:
    """
    Coerce a start date input to a calendar date.

    Accepts a date, a datetime (time-of-day dropped) or an ISO-8601 string
    such as "2025-03-05" or "2025-03-05T08:30:00Z".

    Raises:
        ValueError: If a string cannot be parsed as an ISO date
        TypeError: For any other input type
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    raise TypeError(f"Unsupported start date type: {type(value).__name__}")


def normalize_weekdays(tokens: Optional[Iterable]) -> List[int]:
    """
    Normalize weekday tokens to a sorted list of unique weekday numbers.

    Names are matched case-insensitively ("Monday", "monday", " MONDAY ").
    Weekday enum members are accepted as-is. Anything else is dropped.

    Args:
        tokens: Weekday names, or None

    Returns:
        Sorted list of weekday numbers (Sunday=0), possibly empty
    """
    numbers = set()
    for token in tokens or ():
        if isinstance(token, Weekday):
            numbers.add(int(token))
        elif isinstance(token, str):
            number = WEEKDAY_NUMBERS.get(token.strip().lower())
            if number is not None:
                numbers.add(number)
            else:
                logger.debug(f"Ignoring unknown weekday token {token!r}")
        else:
            logger.debug(f"Ignoring non-string weekday token {token!r}")
    return sorted(numbers)


def _first_scheduled_day(start: date, day_numbers: List[int]) -> date:
    """Find the first scheduled date on or after start."""
    start_day = weekday_number(start)
    for offset in range(WEEKDAY_SEARCH_WINDOW):
        if (start_day + offset) % 7 in day_numbers:
            return start + timedelta(days=offset)
    return start


def _next_scheduled_day(current: date, day_numbers: List[int]) -> date:
    """Find the next scheduled date strictly after current."""
    candidate = current + timedelta(days=1)
    for _ in range(WEEKDAY_SEARCH_WINDOW):
        if weekday_number(candidate) in day_numbers:
            return candidate
        candidate += timedelta(days=1)
    # Unreachable with a non-empty set of valid weekday numbers
    return current + timedelta(days=1)


def format_deadline_date(day: date) -> str:
    """Format a deadline as e.g. 'Mar 5, 2025'."""
    return DEADLINE_DATE_FORMAT.format(month=day.strftime("%b"), day=day.day, year=day.year)


def build_deadline(lesson: LessonRef, deadline: date, today: date) -> Deadline:
    """
    Derive the status fields of a deadline relative to today.

    A deadline is past only once today's start lies beyond the end of the
    deadline day, so a lesson due today is never overdue.
    """
    deadline_end = datetime.combine(deadline, END_OF_DAY)
    today_start = datetime.combine(today, time.min)
    days_remaining = (deadline - today).days

    return Deadline(
        lesson_id=lesson.id,
        lesson_name=lesson.name,
        order_index=lesson.order_index,
        deadline=deadline,
        deadline_formatted=format_deadline_date(deadline),
        is_past=today_start > deadline_end,
        is_due_today=deadline == today,
        days_remaining=max(0, days_remaining),
    )


def compute_deadlines(
    start_date: Union[date, datetime, str],
    weekday_set: Optional[Iterable],
    lessons: Iterable[LessonRef],
    today: Optional[date] = None
) -> List[Deadline]:
    """
    Calculate lesson deadlines from an enrollment start date and weekly schedule.

    Algorithm:
    - Lessons are ordered by order_index (stable for equal indexes)
    - Empty schedule: lesson i is due on start_date + i days
    - Otherwise the first lesson is due on the first scheduled weekday on or
      after start_date, and each following lesson on the next scheduled
      weekday after the previous one

    Args:
        start_date: Enrollment start date (time-of-day ignored)
        weekday_set: Weekday names; unknown tokens are ignored
        lessons: Lessons to schedule, in any order
        today: Reference date for status fields (defaults to local today)

    Returns:
        One Deadline per lesson, in lesson order
    """
    start = to_date(start_date)
    if today is None:
        today = date.today()

    sorted_lessons = sorted(lessons, key=lambda lesson: lesson.order_index)
    day_numbers = normalize_weekdays(weekday_set)

    if not day_numbers:
        logger.debug(f"No schedule days, using daily cadence for {len(sorted_lessons)} lessons")
        return [
            build_deadline(lesson, start + timedelta(days=index), today)
            for index, lesson in enumerate(sorted_lessons)
        ]

    deadlines = []
    current = _first_scheduled_day(start, day_numbers)
    for lesson in sorted_lessons:
        deadlines.append(build_deadline(lesson, current, today))
        current = _next_scheduled_day(current, day_numbers)

    logger.debug(
        f"Scheduled {len(deadlines)} lessons on weekdays {day_numbers} starting {start.isoformat()}"
    )
    return deadlines


def deadline_status(deadline: Deadline) -> Tuple[DeadlineStatus, str]:
    """
    Classify a deadline for display.

    Returns:
        (status, label) where label is one of 'Overdue', 'Due Today',
        'Nd left' or the formatted absolute date
    """
    if deadline.is_past:
        return DeadlineStatus.OVERDUE, "Overdue"
    if deadline.is_due_today:
        return DeadlineStatus.DUE_TODAY, "Due Today"
    if deadline.days_remaining <= DUE_SOON_DAYS:
        return DeadlineStatus.DUE_SOON, f"{deadline.days_remaining}d left"
    return DeadlineStatus.SCHEDULED, deadline.deadline_formatted


def format_schedule_days(tokens: Optional[Iterable[str]]) -> str:
    """
    Render a weekday schedule as short day names, e.g. 'Mon, Wed, Fri'.

    Tokens keep their input order; unknown tokens are shown verbatim.
    """
    tokens = list(tokens or [])
    if not tokens:
        return NO_SCHEDULE_LABEL

    labels = []
    for token in tokens:
        number = WEEKDAY_NUMBERS.get(str(token).strip().lower())
        labels.append(Weekday(number).short_name if number is not None else str(token))
    return ", ".join(labels)
