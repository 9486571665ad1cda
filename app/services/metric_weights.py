"""Scoring metric weight configuration.

Reconciles the sparse rows of the scoring_config table into a complete
weighted-scoring configuration with exactly one setting per metric, and
converts a configuration back into rows for saving.

Weights are integers 0-100 on the settings screen and fractions 0.0-1.0 in
the table. Both threshold columns are generic: min_value always holds the
minimum threshold, while max_value holds the maximum threshold for pause
management and the ideal threshold for every other metric. On load, max_value
is read back as the ideal threshold for every metric, and also as the
maximum for pause management.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from app.constants import (
    BALANCED_WEIGHT_TOTAL,
    MIN_ENABLED_WEIGHT,
    DEFAULT_SPEECH_RATE_METHOD,
    SPEECH_RATE_METHOD_KEY,
    METRIC_CONFIG_KEY,
)
from app.services.local_store import KeyValueStore
from app.services.numeric import coerce_number, round_half_up

logger = logging.getLogger(__name__)


class MetricId(str, Enum):
    """Scoring metrics shown on the settings screen."""
    VOLUME = "volume"
    SPEECH_RATE = "speechRate"
    ACCELERATION = "acceleration"
    RESPONSE_TIME = "responseTime"
    PAUSE_MANAGEMENT = "pauseManagement"


@dataclass(frozen=True)
class MetricDefinition:
    """Persisted name, display label and defaults of one metric."""
    db_name: str
    label: str
    weight: int
    min_threshold: float
    ideal_threshold: float
    max_threshold: float
    method: Optional[str] = None


METRIC_TABLE: Dict[MetricId, MetricDefinition] = {
    MetricId.VOLUME: MetricDefinition("volume", "Volume", 30, -35, -15, 0),
    MetricId.SPEECH_RATE: MetricDefinition(
        "speech_rate", "Speech Rate", 30, 90, 150, 220, DEFAULT_SPEECH_RATE_METHOD
    ),
    MetricId.ACCELERATION: MetricDefinition("end_intensity", "Acceleration", 15, 0, 50, 100),
    MetricId.RESPONSE_TIME: MetricDefinition("latency", "Response Time", 10, 2000, 200, 0),
    MetricId.PAUSE_MANAGEMENT: MetricDefinition("pauses", "Pause Management", 15, 3, 0, 2.71),
}

_BY_DB_NAME = {definition.db_name: metric_id for metric_id, definition in METRIC_TABLE.items()}


def metric_for_db_name(name: Any) -> Optional[MetricId]:
    """Map a persisted metric_name to its MetricId, or None if unknown."""
    return _BY_DB_NAME.get(name)


@dataclass(frozen=True)
class MetricSetting:
    """Resolved settings for one metric."""
    metric_id: MetricId
    weight: int
    min_threshold: float
    ideal_threshold: float
    max_threshold: float
    method: Optional[str] = None
    enabled: bool = True
    row_id: Optional[str] = None

    @classmethod
    def default(cls, metric_id: MetricId) -> "MetricSetting":
        definition = METRIC_TABLE[metric_id]
        return cls(
            metric_id=metric_id,
            weight=definition.weight,
            min_threshold=definition.min_threshold,
            ideal_threshold=definition.ideal_threshold,
            max_threshold=definition.max_threshold,
            method=definition.method,
            enabled=definition.weight > 0,
            row_id=f"virtual-{metric_id.value}",
        )

    @property
    def effective_weight(self) -> int:
        """Weight that counts toward scoring: zero while disabled."""
        return self.weight if self.enabled else 0


@dataclass(frozen=True)
class ScoringRow:
    """One row of the scoring_config table, as plain values."""
    metric_name: str
    weight: float
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    id: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScoringWeightConfig:
    """Settings for every metric, in MetricId order."""
    settings: Tuple[MetricSetting, ...]

    def __iter__(self) -> Iterator[MetricSetting]:
        return iter(self.settings)

    def __len__(self) -> int:
        return len(self.settings)

    def get(self, metric_id: MetricId) -> MetricSetting:
        for setting in self.settings:
            if setting.metric_id == metric_id:
                return setting
        raise KeyError(metric_id)

    def to_snapshot(self) -> List[Dict[str, Any]]:
        """Denormalized form cached in the side-channel store."""
        return [
            {
                "id": setting.metric_id.value,
                "weight": setting.effective_weight,
                "enabled": setting.enabled,
                "thresholds": {
                    "min": setting.min_threshold,
                    "ideal": setting.ideal_threshold,
                    "max": setting.max_threshold,
                },
                "method": setting.method,
            }
            for setting in self.settings
        ]


@dataclass(frozen=True)
class WeightDistribution:
    """Sum of enabled weights and whether it hits the target total."""
    total: int
    balanced: bool
    enabled_metrics: Tuple[MetricId, ...]


def complete_config(settings: Iterable[MetricSetting]) -> ScoringWeightConfig:
    """
    Build a config holding exactly one setting per metric.

    Later settings for the same metric replace earlier ones; metrics with no
    setting get their defaults.
    """
    by_id = {setting.metric_id: setting for setting in settings}
    return ScoringWeightConfig(
        settings=tuple(by_id.get(metric_id) or MetricSetting.default(metric_id) for metric_id in MetricId)
    )


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _threshold(value: Any, fallback: float) -> float:
    if value is None:
        return fallback
    return coerce_number(value)


def _weight_percent(fraction: Any) -> int:
    return min(100, max(0, round_half_up(coerce_number(fraction) * 100)))


def _setting_from_row(metric_id: MetricId, row: Any, store: Optional[KeyValueStore]) -> MetricSetting:
    definition = METRIC_TABLE[metric_id]
    weight = _weight_percent(_field(row, "weight"))
    max_value = _field(row, "max_value")

    ideal_threshold = _threshold(max_value, definition.ideal_threshold)
    if metric_id == MetricId.PAUSE_MANAGEMENT:
        max_threshold = _threshold(max_value, definition.max_threshold)
    else:
        max_threshold = definition.max_threshold

    method = None
    if metric_id == MetricId.SPEECH_RATE:
        stored = store.get(SPEECH_RATE_METHOD_KEY) if store is not None else None
        method = stored or definition.method

    row_id = _field(row, "id")
    return MetricSetting(
        metric_id=metric_id,
        weight=weight,
        min_threshold=_threshold(_field(row, "min_value"), definition.min_threshold),
        ideal_threshold=ideal_threshold,
        max_threshold=max_threshold,
        method=method,
        enabled=weight > 0,
        row_id=str(row_id) if row_id is not None else None,
    )


def load_config(rows: Optional[Iterable[Any]], store: Optional[KeyValueStore] = None) -> ScoringWeightConfig:
    """
    Resolve persisted scoring rows into a complete configuration.

    Args:
        rows: scoring_config rows as ScoringRow, mappings or ORM objects;
            rows with unknown metric names are skipped
        store: Side-channel store holding the speech rate method

    Returns:
        ScoringWeightConfig with one setting per MetricId
    """
    resolved = []
    for row in rows or []:
        name = _field(row, "metric_name")
        metric_id = metric_for_db_name(name)
        if metric_id is None:
            logger.debug(f"Skipping scoring row with unknown metric name {name!r}")
            continue
        resolved.append(_setting_from_row(metric_id, row, store))

    config = complete_config(resolved)
    missing = len(MetricId) - len({setting.metric_id for setting in resolved})
    if missing:
        logger.debug(f"Synthesized defaults for {missing} metrics without stored rows")
    return config


def to_persisted_rows(
    config: Iterable[MetricSetting],
    store: Optional[KeyValueStore] = None,
    now: Optional[datetime] = None
) -> List[ScoringRow]:
    """
    Convert a configuration back into scoring_config rows.

    Disabled metrics are saved with weight 0. When a store is given, the
    speech rate method and a snapshot of the whole config are written to it.

    Args:
        config: Resolved settings
        store: Side-channel store to update, if any
        now: Timestamp for updated_at (defaults to utcnow)

    Returns:
        One ScoringRow per setting, in input order
    """
    if now is None:
        now = datetime.utcnow()

    settings = list(config)
    rows = []
    for setting in settings:
        definition = METRIC_TABLE[setting.metric_id]
        if setting.metric_id == MetricId.PAUSE_MANAGEMENT:
            max_value = setting.max_threshold
        else:
            max_value = setting.ideal_threshold

        rows.append(ScoringRow(
            metric_name=definition.db_name,
            weight=setting.effective_weight / 100,
            min_value=setting.min_threshold,
            max_value=max_value,
            id=setting.row_id,
            updated_at=now,
        ))

    if store is not None:
        save_to_store(settings, store)

    return rows


def save_to_store(config: Iterable[MetricSetting], store: KeyValueStore) -> None:
    """Write the speech rate method and a snapshot of the config to the side-channel store."""
    settings = tuple(config)
    for setting in settings:
        if setting.metric_id == MetricId.SPEECH_RATE and setting.method:
            store.set(SPEECH_RATE_METHOD_KEY, setting.method)
    store.set(METRIC_CONFIG_KEY, ScoringWeightConfig(settings=settings).to_snapshot())


def weight_distribution(config: Iterable[MetricSetting]) -> WeightDistribution:
    """Sum the weights of enabled metrics; flags but never fixes an unbalanced total."""
    enabled = [setting for setting in config if setting.enabled]
    total = sum(setting.weight for setting in enabled)
    return WeightDistribution(
        total=total,
        balanced=total == BALANCED_WEIGHT_TOTAL,
        enabled_metrics=tuple(setting.metric_id for setting in enabled),
    )


def rebalance(config: ScoringWeightConfig) -> ScoringWeightConfig:
    """
    Scale enabled weights so they sum to 100.

    Disabled metrics drop to weight 0. Enabled weights are apportioned by
    largest remainder: each gets the floor of its exact share, and the
    leftover points go one each to the largest fractional parts, earlier
    metrics first on ties, so no weight goes negative. Returned unchanged
    when nothing is enabled, the enabled weights are all zero, or the total
    is already 100.
    """
    distribution = weight_distribution(config)
    if not distribution.enabled_metrics:
        return config
    if distribution.total in (0, BALANCED_WEIGHT_TOTAL):
        return config

    shares = {
        index: divmod(setting.weight * BALANCED_WEIGHT_TOTAL, distribution.total)
        for index, setting in enumerate(config.settings)
        if setting.enabled
    }
    leftover = BALANCED_WEIGHT_TOTAL - sum(whole for whole, _ in shares.values())
    by_remainder = sorted(shares, key=lambda index: (-shares[index][1], index))
    bumped = set(by_remainder[:leftover])

    scaled = []
    for index, setting in enumerate(config.settings):
        if index in shares:
            weight = shares[index][0] + (1 if index in bumped else 0)
        else:
            weight = 0
        scaled.append(replace(setting, weight=weight))

    logger.info(f"Rebalanced metric weights from total {distribution.total} to {BALANCED_WEIGHT_TOTAL}")
    return ScoringWeightConfig(settings=tuple(scaled))


def toggle_metric(config: ScoringWeightConfig, metric_id: MetricId, enabled: bool) -> ScoringWeightConfig:
    """Switch a metric on or off, then rebalance the remaining weights."""
    toggled = []
    for setting in config:
        if setting.metric_id == metric_id:
            weight = max(setting.weight, MIN_ENABLED_WEIGHT) if enabled else 0
            setting = replace(setting, enabled=enabled, weight=weight)
        toggled.append(setting)
    return rebalance(ScoringWeightConfig(settings=tuple(toggled)))
