"""Package-wide constants."""

from __future__ import annotations

PACKAGE_VERSION = "0.1.0"
SCHEMA_VERSION = "1.0.0"

DEFAULT_CHECKPOINT_TTL_DAYS = 7
DEFAULT_HISTORY_MAX_RESULTS = 50
DEFAULT_CHECKPOINT_MEDIA_DIR = "flow_media"
DEFAULT_HISTORY_MEDIA_DIR = "results_media"
DEFAULT_STORAGE_ROOT = ".stagekit"
CHECKPOINT_DIR_NAME = "checkpoints"


def schema_major(version: str) -> str:
    """Return the major component of a dotted schema version."""
    return version.split(".", 1)[0]
