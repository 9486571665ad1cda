"""Scoring metric settings endpoints."""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from app.config import settings
from app.db.database import get_db
from app.db.models import ScoringConfig
from app.services.local_store import JsonFileStore, KeyValueStore
from app.services.metric_weights import (
    METRIC_TABLE,
    MetricId,
    MetricSetting,
    ScoringWeightConfig,
    complete_config,
    load_config,
    metric_for_db_name,
    rebalance,
    save_to_store,
    to_persisted_rows,
    weight_distribution,
)
from app.services.numeric import coerce_number
from app.logging_config import get_logger

router = APIRouter(prefix="/api/metrics", tags=["metrics"])
logger = get_logger(__name__)


def get_local_store() -> KeyValueStore:
    """Side-channel store dependency."""
    return JsonFileStore(settings.LOCAL_STORE_PATH)


class MetricSettingInput(BaseModel):
    """Settings for one metric as edited on the settings screen."""
    metric_id: MetricId
    weight: int = Field(..., ge=0, le=100)
    min_threshold: float
    ideal_threshold: float
    max_threshold: float
    method: Optional[str] = Field(None, max_length=50)
    enabled: bool = True

    def to_setting(self, row_id: Optional[str] = None) -> MetricSetting:
        return MetricSetting(
            metric_id=self.metric_id,
            weight=self.weight if self.enabled else 0,
            min_threshold=coerce_number(self.min_threshold),
            ideal_threshold=coerce_number(self.ideal_threshold),
            max_threshold=coerce_number(self.max_threshold),
            method=self.method if self.metric_id == MetricId.SPEECH_RATE else None,
            enabled=self.enabled,
            row_id=row_id,
        )


class MetricSettingsUpdate(BaseModel):
    """Request body for saving or previewing metric settings."""
    metrics: List[MetricSettingInput] = Field(..., min_length=1, max_length=len(MetricId))
    rebalance: bool = False

    @validator('metrics')
    def validate_unique_metrics(cls, v):
        """Each metric may appear at most once."""
        ids = [metric.metric_id for metric in v]
        if len(ids) != len(set(ids)):
            raise ValueError('each metric may appear only once')
        return v


def serialize_config(config: ScoringWeightConfig) -> Dict[str, Any]:
    distribution = weight_distribution(config)
    return {
        "metrics": [
            {
                "id": setting.row_id,
                "metric_id": setting.metric_id.value,
                "label": METRIC_TABLE[setting.metric_id].label,
                "weight": setting.weight,
                "min_threshold": setting.min_threshold,
                "ideal_threshold": setting.ideal_threshold,
                "max_threshold": setting.max_threshold,
                "method": setting.method,
                "enabled": setting.enabled
            }
            for setting in config
        ],
        "distribution": {
            "total": distribution.total,
            "balanced": distribution.balanced,
            "enabled_metrics": [metric_id.value for metric_id in distribution.enabled_metrics]
        }
    }


def merge_update(current: ScoringWeightConfig, body: MetricSettingsUpdate) -> ScoringWeightConfig:
    """Apply submitted settings over the current config; unsent metrics keep their values."""
    updated = [
        metric.to_setting(row_id=current.get(metric.metric_id).row_id)
        for metric in body.metrics
    ]
    config = complete_config(list(current) + updated)
    if body.rebalance:
        config = rebalance(config)
    return config


@router.get("/settings")
async def get_metric_settings(
    db: Session = Depends(get_db),
    store: KeyValueStore = Depends(get_local_store)
):
    """
    Load the complete scoring configuration.

    Metrics without a stored row are filled in from defaults.

    Returns:
    - metrics: one entry per metric
    - distribution: total of enabled weights and whether it equals 100
    """
    rows = db.query(ScoringConfig).all()
    return serialize_config(load_config(rows, store))


@router.put("/settings")
async def save_metric_settings(
    body: MetricSettingsUpdate,
    db: Session = Depends(get_db),
    store: KeyValueStore = Depends(get_local_store)
):
    """
    Save metric settings.

    Weights are saved as submitted unless `rebalance` is true; an unbalanced
    total is reported in the response, not corrected.
    """
    existing = {row.metric_name: row for row in db.query(ScoringConfig).all()}
    config = merge_update(load_config(existing.values(), store), body)

    for row in to_persisted_rows(config):
        record = existing.get(row.metric_name)
        if record is None:
            record = ScoringConfig(
                metric_name=row.metric_name,
                description=METRIC_TABLE[metric_for_db_name(row.metric_name)].label
            )
            db.add(record)
        record.weight = row.weight
        record.min_value = row.min_value
        record.max_value = row.max_value
        record.updated_at = row.updated_at

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save metric settings: {e}", exc_info=True)
        raise

    save_to_store(config, store)

    rows = db.query(ScoringConfig).all()
    saved = load_config(rows, store)
    distribution = weight_distribution(saved)
    if not distribution.balanced:
        logger.warning(f"Saved metric weights total {distribution.total}, not 100")
    return serialize_config(saved)


@router.post("/rebalance")
async def preview_rebalance(
    body: MetricSettingsUpdate,
    db: Session = Depends(get_db),
    store: KeyValueStore = Depends(get_local_store)
):
    """Return the submitted settings rebalanced to total 100, without saving."""
    current = load_config(db.query(ScoringConfig).all(), store)
    config = merge_update(current, body)
    return serialize_config(rebalance(config))
