"""Application-wide constants and policy values.

This module centralizes all magic numbers and hardcoded values used by the
scheduling, progress and scoring engines, making them easier to maintain and
adjust.
"""

# Scheduling
WEEKDAY_SEARCH_WINDOW = 7
"""Maximum number of days scanned forward when looking for the next scheduled weekday."""

DUE_SOON_DAYS = 2
"""Deadlines with this many days remaining or fewer are labelled 'Nd left'."""

DEADLINE_DATE_FORMAT = "{month} {day}, {year}"
"""Absolute deadline label, e.g. 'Mar 5, 2025'."""

NO_SCHEDULE_LABEL = "No schedule"
"""Label shown for a class with no weekday recurrence configured."""

# Progress Calculation
COMPLETION_MASTERY_LEVEL = 3
"""Minimum mastery level for a practiced item to count as completed."""

MILESTONES = (25, 50, 75, 100)
"""Completion percentages that trigger a one-time milestone bonus, ascending."""

# Bonus Defaults
DEFAULT_MILESTONE_BONUSES = {25: 10, 50: 25, 75: 50, 100: 100}
"""Coins granted per milestone when no override is configured."""

DEFAULT_STREAK_THRESHOLD = 3
"""Consecutive high scores required for one streak bonus multiple."""

DEFAULT_STREAK_MIN_SCORE = 80
"""Minimum score for a practice attempt to count toward a streak."""

DEFAULT_STREAK_COINS = 5
"""Coins granted per full streak threshold multiple."""

DEFAULT_FIRST_PRACTICE_BONUS = 2
"""Coins granted on the very first attempt at an item."""

# Coin Formulas
MAX_SCORE_COINS = 15
"""Coins earned for a perfect (100) practice score."""

EARLY_COMPLETION_MAX_DAYS = 3
"""Days early at which the early completion bonus is capped."""

EARLY_COMPLETION_MAX_BONUS = 50
"""Maximum early completion bonus in coins."""

LATE_PENALTY_MAX_DAYS = 7
"""Days late at which the late penalty is capped."""

LATE_PENALTY_MAX_COINS = 100
"""Maximum late penalty in coins, scaled down by completion."""

# Scoring Weights
BALANCED_WEIGHT_TOTAL = 100
"""Target sum of enabled metric weights on the UI scale."""

MIN_ENABLED_WEIGHT = 5
"""Weight given to a metric that is switched on while at zero weight."""

DEFAULT_SPEECH_RATE_METHOD = "energy-peaks"
"""Speech rate detection method used when none has been chosen."""

# Side-channel Store Keys
SPEECH_RATE_METHOD_KEY = "speechRateMethod"
"""Store key holding the speech rate detection method."""

METRIC_CONFIG_KEY = "metricConfig"
"""Store key holding the denormalized snapshot of the resolved metric config."""
