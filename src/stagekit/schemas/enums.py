"""Enum definitions for canonical contracts."""

from __future__ import annotations

from enum import Enum


class StageKind(str, Enum):
    SELECTION = "selection"
    MEDIA_CAPTURE = "media_capture"
    PROFILE = "profile"
    PROCESSING = "processing"
    RESULTS = "results"
    CUSTOM = "custom"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class FlowPhase(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETE = "complete"


class TransitionAction(str, Enum):
    START = "start"
    PROCEED = "proceed"
    BACK = "back"
    SKIP = "skip"
    RESTART = "restart"
    RESTORE = "restore"


class ValidationCode(str, Enum):
    MISSING_DATA = "missing_data"
    WRONG_DATA_TYPE = "wrong_data_type"
    EMPTY_SELECTION = "empty_selection"
    UNKNOWN_OPTION = "unknown_option"
    TOO_FEW_ITEMS = "too_few_items"
    TOO_MANY_ITEMS = "too_many_items"
    TOO_MANY_IMAGES = "too_many_images"
    TOO_MANY_VIDEOS = "too_many_videos"
    MEDIA_TYPE_NOT_ALLOWED = "media_type_not_allowed"
    MISSING_FIELD = "missing_field"


def normalize_storage_key(raw_value: str) -> str:
    """Normalize flow-type and category labels into storage-safe keys."""
    normalized = raw_value.strip().lower().replace("-", "_").replace(" ", "_")
    if not normalized or not all(ch.isalnum() or ch == "_" for ch in normalized):
        raise ValueError(f"Unsupported storage key: {raw_value!r}")
    return normalized
