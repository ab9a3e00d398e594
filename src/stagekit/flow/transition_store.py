"""Flow transition logging for state tracking."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import NamedTuple, Protocol


class TransitionRecorder(Protocol):
    """Sink for state machine transitions."""

    def record_transition(
        self,
        *,
        run_id: str,
        flow_id: str,
        action: str,
        from_stage: str | None,
        to_stage: str | None,
        reason: str,
    ) -> None:
        """Record one transition."""


class NoOpRecorder:
    """Recorder that drops every transition."""

    def record_transition(
        self,
        *,
        run_id: str,
        flow_id: str,
        action: str,
        from_stage: str | None,
        to_stage: str | None,
        reason: str,
    ) -> None:
        del run_id, flow_id, action, from_stage, to_stage, reason


class TransitionRow(NamedTuple):
    flow_id: str
    action: str
    from_stage: str | None
    to_stage: str | None
    timestamp: str
    reason: str


class FlowTransitionStore:
    """SQLite-backed transition log store."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS flow_transitions (
                    run_id TEXT NOT NULL,
                    flow_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    from_stage TEXT,
                    to_stage TEXT,
                    timestamp TEXT NOT NULL,
                    reason TEXT NOT NULL
                )
                """
            )

    def record_transition(
        self,
        *,
        run_id: str,
        flow_id: str,
        action: str,
        from_stage: str | None,
        to_stage: str | None,
        reason: str,
    ) -> None:
        """Insert a transition record for a flow run."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO flow_transitions (run_id, flow_id, action, from_stage, to_stage, timestamp, reason)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    flow_id,
                    action,
                    from_stage,
                    to_stage,
                    datetime.now(UTC).isoformat(),
                    reason,
                ),
            )

    def list_transitions(self, run_id: str) -> list[TransitionRow]:
        """Return transitions in insertion order for a run."""
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT flow_id, action, from_stage, to_stage, timestamp, reason
                FROM flow_transitions
                WHERE run_id = ?
                ORDER BY rowid ASC
                """,
                (run_id,),
            ).fetchall()
        return [TransitionRow(*row) for row in rows]

    def delete_run(self, run_id: str) -> int:
        """Drop every transition for a run; returns the number removed."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM flow_transitions WHERE run_id = ?",
                (run_id,),
            )
        return cursor.rowcount
