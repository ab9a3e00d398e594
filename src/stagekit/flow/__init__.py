"""Flow orchestration exports."""

from stagekit.flow.definition import FlowDefinition, LinearFlow
from stagekit.flow.state import FlowStateMachine
from stagekit.flow.transition_store import (
    FlowTransitionStore,
    NoOpRecorder,
    TransitionRecorder,
    TransitionRow,
)

__all__ = [
    "FlowDefinition",
    "FlowStateMachine",
    "FlowTransitionStore",
    "LinearFlow",
    "NoOpRecorder",
    "TransitionRecorder",
    "TransitionRow",
]
