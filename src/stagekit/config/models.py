"""Pydantic models for central YAML configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator, model_validator

from stagekit.constants import (
    CHECKPOINT_DIR_NAME,
    DEFAULT_CHECKPOINT_MEDIA_DIR,
    DEFAULT_CHECKPOINT_TTL_DAYS,
    DEFAULT_HISTORY_MAX_RESULTS,
    DEFAULT_HISTORY_MEDIA_DIR,
    DEFAULT_STORAGE_ROOT,
    SCHEMA_VERSION,
)
from stagekit.schemas.base import StrictSchemaModel
from stagekit.schemas.enums import normalize_storage_key
from stagekit.stages.models import Stage


class StorageConfig(StrictSchemaModel):
    """Location of the durable storage area."""

    root_dir: Path = Path(DEFAULT_STORAGE_ROOT)
    transitions_db: str = "transitions.db"


class CheckpointConfig(StrictSchemaModel):
    """Checkpoint store controls."""

    ttl_days: int = Field(default=DEFAULT_CHECKPOINT_TTL_DAYS, ge=1, le=365)
    media_dir_name: str = Field(default=DEFAULT_CHECKPOINT_MEDIA_DIR, min_length=1)


class HistoryConfig(StrictSchemaModel):
    """Results history controls."""

    max_results: int = Field(default=DEFAULT_HISTORY_MAX_RESULTS, ge=1, le=10_000)
    media_dir_name: str = Field(default=DEFAULT_HISTORY_MEDIA_DIR, min_length=1)
    categories: list[str] = Field(default_factory=list)

    @field_validator("categories")
    @classmethod
    def normalize_categories(cls, value: list[str]) -> list[str]:
        return [normalize_storage_key(category) for category in value]


class FlowConfig(StrictSchemaModel):
    """Declarative linear flow definition."""

    name: str = Field(min_length=1)
    allows_back_navigation: bool = True
    shows_progress: bool = True
    stages: list[Stage] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_unique_stage_ids(self) -> "FlowConfig":
        stage_ids = [stage.id for stage in self.stages]
        if len(stage_ids) != len(set(stage_ids)):
            raise ValueError(f"Flow {self.name!r} has duplicate stage ids")
        return self


class AppConfig(StrictSchemaModel):
    """Central application configuration."""

    schema_version: str = Field(default=SCHEMA_VERSION, min_length=1)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    checkpoints: CheckpointConfig = Field(default_factory=CheckpointConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    flows: dict[str, FlowConfig] = Field(default_factory=dict)

    @field_validator("flows")
    @classmethod
    def normalize_flow_ids(cls, value: dict[str, FlowConfig]) -> dict[str, FlowConfig]:
        return {normalize_storage_key(flow_id): flow for flow_id, flow in value.items()}

    @model_validator(mode="after")
    def validate_media_namespaces(self) -> "AppConfig":
        if self.checkpoints.media_dir_name == self.history.media_dir_name:
            raise ValueError("checkpoint and history media directories must differ")
        if CHECKPOINT_DIR_NAME in {self.checkpoints.media_dir_name, self.history.media_dir_name}:
            raise ValueError(f"media directories cannot use the reserved name {CHECKPOINT_DIR_NAME!r}")
        return self
