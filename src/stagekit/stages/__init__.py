"""Stage model exports."""

from stagekit.stages.models import (
    BaseStage,
    CustomStage,
    MediaCaptureStage,
    ProcessingStage,
    ProfileStage,
    ResultsStage,
    SelectionOption,
    SelectionStage,
    Stage,
)
from stagekit.stages.payloads import MediaStageData, ProfileData, SelectionData, StageData
from stagekit.stages.validation import ValidationReason, ValidationResult

__all__ = [
    "BaseStage",
    "CustomStage",
    "MediaCaptureStage",
    "MediaStageData",
    "ProcessingStage",
    "ProfileData",
    "ProfileStage",
    "ResultsStage",
    "SelectionData",
    "SelectionOption",
    "SelectionStage",
    "Stage",
    "StageData",
    "ValidationReason",
    "ValidationResult",
]
