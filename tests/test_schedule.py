"""Unit tests for lesson deadline scheduling."""
from datetime import date, datetime, timedelta
from itertools import combinations
import pytest
from app.services.schedule import (
    Weekday,
    LessonRef,
    DeadlineStatus,
    compute_deadlines,
    deadline_status,
    format_schedule_days,
    normalize_weekdays,
    weekday_number,
    to_date,
)

# 2025-03-03 is a Monday
MONDAY = date(2025, 3, 3)
DAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


def make_lessons(count):
    return [LessonRef(id=f"lesson-{i}", name=f"Lesson {i}", order_index=i) for i in range(count)]


class TestNormalizeWeekdays:
    """Tests for weekday token normalization."""

    def test_names_map_to_sunday_based_numbers(self):
        """Weekday names should map to numbers starting at Sunday=0."""
        assert normalize_weekdays(["sunday", "saturday", "wednesday"]) == [0, 3, 6]

    def test_case_insensitive_and_deduplicated(self):
        """Case and surrounding whitespace are ignored; duplicates collapse."""
        assert normalize_weekdays(["Monday", "MONDAY", " monday ", "Friday"]) == [1, 5]

    def test_unknown_tokens_dropped(self):
        """Unrecognized tokens and non-strings are silently dropped."""
        assert normalize_weekdays(["funday", "", "mon", None, 3, "tuesday"]) == [2]

    def test_enum_members_accepted(self):
        """Weekday enum members are used directly."""
        assert normalize_weekdays([Weekday.FRIDAY, "monday"]) == [1, 5]

    def test_none_is_empty(self):
        """A missing schedule normalizes to an empty list."""
        assert normalize_weekdays(None) == []


class TestComputeDeadlines:
    """Tests for deadline date assignment."""

    def test_weekly_schedule_assigns_consecutive_schedule_days(self):
        """Mon/Wed/Fri schedule from a Monday should walk the schedule days in order."""
        deadlines = compute_deadlines(MONDAY, ["monday", "wednesday", "friday"], make_lessons(4), today=MONDAY)

        assert [d.deadline for d in deadlines] == [
            date(2025, 3, 3),
            date(2025, 3, 5),
            date(2025, 3, 7),
            date(2025, 3, 10),
        ]

    def test_first_deadline_skips_to_next_schedule_day(self):
        """A start date off-schedule should move forward to the next schedule day."""
        tuesday = MONDAY + timedelta(days=1)
        deadlines = compute_deadlines(tuesday, ["monday"], make_lessons(2), today=tuesday)

        assert [d.deadline for d in deadlines] == [date(2025, 3, 10), date(2025, 3, 17)]

    def test_start_date_qualifies_when_on_schedule(self):
        """The start date itself is used if its weekday is scheduled."""
        deadlines = compute_deadlines(MONDAY, ["monday"], make_lessons(1), today=MONDAY)
        assert deadlines[0].deadline == MONDAY

    def test_empty_schedule_is_daily(self):
        """No schedule days means one lesson per calendar day from the start date."""
        deadlines = compute_deadlines(MONDAY, [], make_lessons(5), today=MONDAY)

        assert [d.deadline for d in deadlines] == [MONDAY + timedelta(days=i) for i in range(5)]

    def test_only_unknown_tokens_is_daily(self):
        """A schedule of unrecognized tokens degrades to the daily cadence."""
        deadlines = compute_deadlines(MONDAY, ["someday", "never"], make_lessons(3), today=MONDAY)

        assert [d.deadline for d in deadlines] == [MONDAY + timedelta(days=i) for i in range(3)]

    def test_lessons_sorted_by_order_index(self):
        """Lessons are scheduled in order_index order regardless of input order."""
        lessons = [
            LessonRef(id="c", name="Third", order_index=30),
            LessonRef(id="a", name="First", order_index=1),
            LessonRef(id="b", name="Second", order_index=7),
        ]
        deadlines = compute_deadlines(MONDAY, [], lessons, today=MONDAY)

        assert [d.lesson_id for d in deadlines] == ["a", "b", "c"]
        assert [d.order_index for d in deadlines] == [1, 7, 30]
        assert deadlines[0].lesson_name == "First"

    def test_no_lessons(self):
        """Zero lessons yields zero deadlines."""
        assert compute_deadlines(MONDAY, ["monday"], [], today=MONDAY) == []

    def test_string_start_date(self):
        """ISO date and datetime strings are accepted; time-of-day is ignored."""
        from_date = compute_deadlines("2025-03-03", ["monday"], make_lessons(1), today=MONDAY)
        from_datetime = compute_deadlines("2025-03-03T15:30:00Z", ["monday"], make_lessons(1), today=MONDAY)

        assert from_date[0].deadline == MONDAY
        assert from_datetime[0].deadline == MONDAY

    def test_datetime_start_date(self):
        """A datetime start is reduced to its calendar date."""
        deadlines = compute_deadlines(datetime(2025, 3, 3, 23, 45), [], make_lessons(2), today=MONDAY)
        assert deadlines[1].deadline == date(2025, 3, 4)

    @pytest.mark.parametrize("size", range(1, 8))
    def test_every_weekday_subset_gives_increasing_scheduled_dates(self, size):
        """For any non-empty schedule, N lessons get N strictly increasing dates on scheduled days."""
        for subset in combinations(range(7), size):
            names = [DAY_NAMES[i] for i in subset]
            deadlines = compute_deadlines(MONDAY, names, make_lessons(10), today=MONDAY)

            assert len(deadlines) == 10
            dates = [d.deadline for d in deadlines]
            assert all(later > earlier for earlier, later in zip(dates, dates[1:]))
            assert all(weekday_number(day) in subset for day in dates)
            assert dates[0] >= MONDAY
            assert (dates[0] - MONDAY).days < 7


class TestDeadlineStatusFields:
    """Tests for past/today/remaining fields relative to today."""

    TODAY = date(2025, 3, 10)

    def deadline_on(self, day):
        return compute_deadlines(day, [], make_lessons(1), today=self.TODAY)[0]

    def test_past_deadline(self):
        """A deadline before today is past with zero days remaining."""
        deadline = self.deadline_on(date(2025, 3, 7))

        assert deadline.is_past is True
        assert deadline.is_due_today is False
        assert deadline.days_remaining == 0

    def test_deadline_today_is_not_past(self):
        """A deadline today lasts until the end of the day."""
        deadline = self.deadline_on(self.TODAY)

        assert deadline.is_past is False
        assert deadline.is_due_today is True
        assert deadline.days_remaining == 0

    def test_future_deadline(self):
        """A future deadline counts whole days remaining."""
        deadline = self.deadline_on(date(2025, 3, 15))

        assert deadline.is_past is False
        assert deadline.is_due_today is False
        assert deadline.days_remaining == 5

    def test_flags_mutually_exclusive(self):
        """is_past and is_due_today never both hold, and days_remaining is never negative."""
        deadlines = compute_deadlines(date(2025, 3, 1), [], make_lessons(20), today=self.TODAY)

        for deadline in deadlines:
            assert not (deadline.is_past and deadline.is_due_today)
            assert deadline.days_remaining >= 0

    def test_formatted_date(self):
        """Deadlines carry an abbreviated absolute date label."""
        assert self.deadline_on(date(2025, 3, 5)).deadline_formatted == "Mar 5, 2025"


class TestDeadlineStatus:
    """Tests for display classification."""

    TODAY = date(2025, 3, 10)

    def status_for(self, day):
        deadline = compute_deadlines(day, [], make_lessons(1), today=self.TODAY)[0]
        return deadline_status(deadline)

    def test_overdue(self):
        assert self.status_for(date(2025, 3, 9)) == (DeadlineStatus.OVERDUE, "Overdue")

    def test_due_today(self):
        assert self.status_for(self.TODAY) == (DeadlineStatus.DUE_TODAY, "Due Today")

    def test_due_soon(self):
        """One or two days out shows a countdown."""
        assert self.status_for(date(2025, 3, 11)) == (DeadlineStatus.DUE_SOON, "1d left")
        assert self.status_for(date(2025, 3, 12)) == (DeadlineStatus.DUE_SOON, "2d left")

    def test_scheduled(self):
        """Further out shows the absolute date."""
        assert self.status_for(date(2025, 3, 13)) == (DeadlineStatus.SCHEDULED, "Mar 13, 2025")


class TestFormatScheduleDays:
    """Tests for the schedule summary label."""

    def test_empty(self):
        assert format_schedule_days([]) == "No schedule"
        assert format_schedule_days(None) == "No schedule"

    def test_short_names_in_input_order(self):
        assert format_schedule_days(["Friday", "monday", "WEDNESDAY"]) == "Fri, Mon, Wed"

    def test_unknown_tokens_shown_verbatim(self):
        assert format_schedule_days(["monday", "holiday"]) == "Mon, holiday"


class TestToDate:
    """Tests for start date coercion."""

    def test_invalid_string_raises(self):
        with pytest.raises(ValueError):
            to_date("not-a-date")

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            to_date(20250303)
