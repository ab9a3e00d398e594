"""Shared schema base classes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from stagekit.constants import SCHEMA_VERSION


class StrictSchemaModel(BaseModel):
    """Base model with strict validation defaults."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, frozen=False)


class FrozenSchemaModel(BaseModel):
    """Immutable value object base."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class VersionedRecord(StrictSchemaModel):
    """Envelope for persisted records tagged with a schema version."""

    schema_version: str = Field(default=SCHEMA_VERSION, min_length=1)
