"""Flow definitions: ordered stages plus transition policy."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from stagekit.stages.models import BaseStage


class FlowDefinition(Protocol):
    """Contract the state machine uses to resolve stage transitions."""

    id: str
    name: str
    stages: Sequence[BaseStage]
    allows_back_navigation: bool
    shows_progress: bool

    def next_stage(
        self,
        current: BaseStage,
        data: Mapping[str, Any],
    ) -> BaseStage | None:
        """Return the stage after current, or None at the end of the flow."""

    def previous_stage(self, current: BaseStage) -> BaseStage | None:
        """Return the stage before current, or None at the start of the flow."""


class LinearFlow:
    """Flow that resolves transitions purely by stage position."""

    def __init__(
        self,
        *,
        id: str,
        name: str,
        stages: Sequence[BaseStage],
        allows_back_navigation: bool = True,
        shows_progress: bool = True,
    ) -> None:
        seen: set[str] = set()
        for stage in stages:
            if stage.id in seen:
                raise ValueError(f"Duplicate stage id in flow {id!r}: {stage.id}")
            seen.add(stage.id)
        self.id = id
        self.name = name
        self.stages: tuple[BaseStage, ...] = tuple(stages)
        self.allows_back_navigation = allows_back_navigation
        self.shows_progress = shows_progress

    def index_of(self, stage_id: str) -> int | None:
        for index, stage in enumerate(self.stages):
            if stage.id == stage_id:
                return index
        return None

    def stage_by_id(self, stage_id: str) -> BaseStage | None:
        index = self.index_of(stage_id)
        return None if index is None else self.stages[index]

    def next_stage(
        self,
        current: BaseStage,
        data: Mapping[str, Any],
    ) -> BaseStage | None:
        del data
        index = self.index_of(current.id)
        if index is None or index + 1 >= len(self.stages):
            return None
        return self.stages[index + 1]

    def previous_stage(self, current: BaseStage) -> BaseStage | None:
        index = self.index_of(current.id)
        if index is None or index == 0:
            return None
        return self.stages[index - 1]

    def __repr__(self) -> str:
        stage_ids = ", ".join(stage.id for stage in self.stages)
        return f"LinearFlow(id={self.id!r}, stages=[{stage_ids}])"
