"""Builds flows and stores from validated configuration."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from stagekit.config.models import AppConfig, FlowConfig
from stagekit.flow.definition import LinearFlow
from stagekit.flow.transition_store import FlowTransitionStore
from stagekit.persistence.checkpoint_store import FlowCheckpointStore
from stagekit.persistence.history_store import ResultsHistoryStore
from stagekit.schemas.enums import normalize_storage_key


class StoreFactory:
    """Factory for config-driven flows and persistence stores."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def root_dir(self) -> Path:
        return self._config.storage.root_dir.expanduser()

    def get_flow_config(self, flow_id: str) -> FlowConfig:
        """Resolve a flow definition by id."""
        key = normalize_storage_key(flow_id)
        flow = self._config.flows.get(key)
        if flow is None:
            raise ValueError(f"Unknown flow: {flow_id}")
        return flow

    def build_flow(self, flow_id: str) -> LinearFlow:
        flow = self.get_flow_config(flow_id)
        return LinearFlow(
            id=normalize_storage_key(flow_id),
            name=flow.name,
            stages=flow.stages,
            allows_back_navigation=flow.allows_back_navigation,
            shows_progress=flow.shows_progress,
        )

    def create_checkpoint_store(self) -> FlowCheckpointStore:
        return FlowCheckpointStore(
            self.root_dir,
            ttl=timedelta(days=self._config.checkpoints.ttl_days),
            media_dir_name=self._config.checkpoints.media_dir_name,
        )

    def create_history_store(self) -> ResultsHistoryStore:
        return ResultsHistoryStore(
            self.root_dir,
            categories=self._config.history.categories,
            max_results=self._config.history.max_results,
            media_dir_name=self._config.history.media_dir_name,
        )

    def create_transition_store(self) -> FlowTransitionStore:
        return FlowTransitionStore(self.root_dir / self._config.storage.transitions_db)
