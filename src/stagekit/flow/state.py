"""Live state of one flow instance and its transition operations."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping
from uuid import uuid4

from stagekit.flow.definition import FlowDefinition
from stagekit.flow.transition_store import NoOpRecorder, TransitionRecorder
from stagekit.schemas.enums import FlowPhase, TransitionAction
from stagekit.stages.models import BaseStage
from stagekit.stages.validation import ValidationResult

LOGGER = logging.getLogger(__name__)


class FlowStateMachine:
    """Synchronous state machine driving a single flow run.

    All operations mutate in place and return immediately. Transition
    methods return True when the machine changed state and False when the
    request was ignored.
    """

    def __init__(
        self,
        flow: FlowDefinition,
        *,
        recorder: TransitionRecorder | None = None,
        run_id: str | None = None,
    ) -> None:
        self.recorder: TransitionRecorder = recorder or NoOpRecorder()
        self.run_id = run_id or uuid4().hex
        self.start(flow)

    def start(self, flow: FlowDefinition) -> None:
        """Bind a flow and position the machine on its first stage."""
        self.flow = flow
        self.current_stage: BaseStage | None = None
        self.stage_data: dict[str, Any] = {}
        self.completed_stages: set[str] = set()
        self.is_processing = False
        self.error: Exception | None = None
        self.validation_error: ValidationResult | None = None
        self._stage_history: list[str] = []
        self._enter_first_stage(TransitionAction.START, "Flow started")

    def set_data(self, stage_id: str, data: Any) -> None:
        if data is None:
            self.stage_data.pop(stage_id, None)
            return
        self.stage_data[stage_id] = data

    def get_data(self, stage_id: str) -> Any | None:
        return self.stage_data.get(stage_id)

    def validate_current(self) -> ValidationResult | None:
        """Validate the current stage's data; None when no stage is active."""
        stage = self.current_stage
        if stage is None:
            return None
        return stage.validate_data(self.get_data(stage.id))

    def can_proceed(self) -> bool:
        stage = self.current_stage
        if stage is None:
            return False
        result = stage.validate_data(self.get_data(stage.id))
        return result.is_valid or (not stage.is_required and stage.can_skip)

    def proceed(self) -> bool:
        """Complete the current stage and move to the next one."""
        current = self.current_stage
        if current is None:
            LOGGER.warning("proceed() ignored for flow %s: no current stage", self.flow.id)
            return False

        result = current.validate_data(self.get_data(current.id))
        if current.is_required and not current.can_skip and not result.is_valid:
            self.validation_error = result
            LOGGER.info(
                "Stage %s blocked by validation: %s",
                current.id,
                "; ".join(result.messages),
            )
            return False

        self.validation_error = None
        self._advance(current, TransitionAction.PROCEED)
        return True

    def skip(self) -> bool:
        """Advance past a skippable stage without validating its data."""
        current = self.current_stage
        if current is None or not current.can_skip:
            return False
        self.validation_error = None
        self._advance(current, TransitionAction.SKIP)
        return True

    def go_back(self) -> bool:
        current = self.current_stage
        if current is None or not self.flow.allows_back_navigation or not current.can_go_back:
            return False
        previous = self.flow.previous_stage(current)
        if previous is None:
            return False

        self.current_stage = previous
        self._stage_history.append(previous.id)
        self.validation_error = None
        self._record(TransitionAction.BACK, current.id, previous.id, "Navigated back")
        return True

    def restart(self) -> None:
        previous_id = self.current_stage.id if self.current_stage else None
        self.stage_data.clear()
        self.completed_stages.clear()
        self._stage_history.clear()
        self.error = None
        self.validation_error = None
        self.is_processing = False
        self.current_stage = None
        self._enter_first_stage(TransitionAction.RESTART, "Flow restarted", previous_id)

    def restore(
        self,
        *,
        current_stage_id: str,
        completed_stages: Iterable[str],
        stage_data: Mapping[str, Any],
        stage_history: Iterable[str] = (),
    ) -> bool:
        """Reposition the machine from a checkpoint snapshot.

        Returns False and leaves the machine untouched when the snapshot
        names a stage this flow does not have.
        """
        stages_by_id = {stage.id: stage for stage in self.flow.stages}
        target = stages_by_id.get(current_stage_id)
        if target is None:
            LOGGER.warning(
                "Cannot restore flow %s: unknown stage %s", self.flow.id, current_stage_id
            )
            return False

        previous_id = self.current_stage.id if self.current_stage else None
        self.current_stage = target
        self.completed_stages = {sid for sid in completed_stages if sid in stages_by_id}
        self.stage_data = {
            sid: data for sid, data in stage_data.items() if sid in stages_by_id
        }
        history = [sid for sid in stage_history if sid in stages_by_id]
        self._stage_history = history or [target.id]
        self.error = None
        self.validation_error = None
        self.is_processing = False
        self._record(TransitionAction.RESTORE, previous_id, target.id, "Restored from checkpoint")
        return True

    def fail(self, error: Exception) -> None:
        """Record a terminal error raised by a collaborator."""
        self.error = error
        self.is_processing = False

    def is_complete(self) -> bool:
        current = self.current_stage
        if current is None or not self.flow.stages:
            return False
        return self.flow.stages[-1].id == current.id and current.id in self.completed_stages

    @property
    def phase(self) -> FlowPhase:
        if self.current_stage is None:
            return FlowPhase.NOT_STARTED
        if self.is_complete():
            return FlowPhase.COMPLETE
        return FlowPhase.ACTIVE

    @property
    def stage_history(self) -> tuple[str, ...]:
        return tuple(self._stage_history)

    def current_stage_index(self) -> int:
        current = self.current_stage
        if current is None:
            return 0
        for index, stage in enumerate(self.flow.stages):
            if stage.id == current.id:
                return index
        return 0

    def total_stages(self) -> int:
        return len(self.flow.stages)

    def progress(self) -> float:
        """Fraction of the flow reached, for progress bars."""
        total = self.total_stages()
        if total == 0 or self.current_stage is None:
            return 0.0
        if self.is_complete():
            return 1.0
        return (self.current_stage_index() + 1) / total

    def _advance(self, current: BaseStage, action: TransitionAction) -> None:
        self.completed_stages.add(current.id)
        next_stage = self.flow.next_stage(current, self.stage_data)
        if next_stage is None:
            LOGGER.debug("Flow %s reached terminal stage %s", self.flow.id, current.id)
            self._record(action, current.id, None, "Terminal stage completed")
            return
        self.current_stage = next_stage
        self._stage_history.append(next_stage.id)
        self._record(action, current.id, next_stage.id, f"Completed {current.id}")

    def _enter_first_stage(
        self,
        action: TransitionAction,
        reason: str,
        previous_id: str | None = None,
    ) -> None:
        if not self.flow.stages:
            return
        first = self.flow.stages[0]
        self.current_stage = first
        self._stage_history.append(first.id)
        self._record(action, previous_id, first.id, reason)

    def _record(
        self,
        action: TransitionAction,
        from_stage: str | None,
        to_stage: str | None,
        reason: str,
    ) -> None:
        self.recorder.record_transition(
            run_id=self.run_id,
            flow_id=self.flow.id,
            action=action.value,
            from_stage=from_stage,
            to_stage=to_stage,
            reason=reason,
        )
