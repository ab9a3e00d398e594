"""Persistence exports."""

from stagekit.persistence.checkpoint_store import (
    CheckpointEnvelope,
    FlowCheckpointStore,
    FlowProgressCheckpoint,
    PersistedFlowState,
    SavedStateInfo,
)
from stagekit.persistence.history_store import (
    MediaBlob,
    ResultOutcome,
    ResultsHistoryStore,
    StoredResult,
)
from stagekit.persistence.media import MediaDirectory
from stagekit.persistence.queue import SerialQueue

__all__ = [
    "CheckpointEnvelope",
    "FlowCheckpointStore",
    "FlowProgressCheckpoint",
    "MediaBlob",
    "MediaDirectory",
    "PersistedFlowState",
    "ResultOutcome",
    "ResultsHistoryStore",
    "SavedStateInfo",
    "SerialQueue",
    "StoredResult",
]
