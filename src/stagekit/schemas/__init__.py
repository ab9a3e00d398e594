"""Schema contract exports."""

from stagekit.schemas.base import FrozenSchemaModel, StrictSchemaModel, VersionedRecord
from stagekit.schemas.enums import (
    FlowPhase,
    MediaType,
    StageKind,
    TransitionAction,
    ValidationCode,
    normalize_storage_key,
)

__all__ = [
    "FlowPhase",
    "FrozenSchemaModel",
    "MediaType",
    "StageKind",
    "StrictSchemaModel",
    "TransitionAction",
    "ValidationCode",
    "VersionedRecord",
    "normalize_storage_key",
]
