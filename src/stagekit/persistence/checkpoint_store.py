"""Checkpoint/resume of in-progress flows, one slot per flow type."""

from __future__ import annotations

import contextlib
import logging
import os
import re
from concurrent.futures import Future
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, ClassVar, Mapping, NamedTuple, TypeVar

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stagekit.constants import (
    CHECKPOINT_DIR_NAME,
    DEFAULT_CHECKPOINT_MEDIA_DIR,
    DEFAULT_CHECKPOINT_TTL_DAYS,
    SCHEMA_VERSION,
    schema_major,
)
from stagekit.flow.state import FlowStateMachine
from stagekit.persistence.media import MediaDirectory
from stagekit.persistence.queue import SerialQueue
from stagekit.schemas.base import VersionedRecord
from stagekit.schemas.enums import normalize_storage_key
from stagekit.stages.payloads import MediaStageData, StageData

LOGGER = logging.getLogger(__name__)

_IDENTIFIER_PATTERN = re.compile(r"[^A-Za-z0-9_-]+")

StateT = TypeVar("StateT", bound="PersistedFlowState")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class PersistedFlowState(VersionedRecord):
    """Base checkpoint record. Subclasses set ``flow_type`` and add payload."""

    flow_type: ClassVar[str] = ""

    current_stage_id: str = Field(min_length=1)
    saved_at: datetime = Field(default_factory=_utcnow)

    @field_validator("saved_at")
    @classmethod
    def normalize_saved_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def is_valid(self, media: MediaDirectory) -> bool:
        """Return whether the record is still usable, e.g. its media exists."""
        del media
        return True


class FlowProgressCheckpoint(PersistedFlowState):
    """Checkpoint holding a full state machine snapshot."""

    completed_stages: list[str] = Field(default_factory=list)
    stage_history: list[str] = Field(default_factory=list)
    stage_data: dict[str, StageData] = Field(default_factory=dict)

    @classmethod
    def from_machine(cls: type[StateT], machine: FlowStateMachine, **extra: Any) -> StateT:
        if machine.current_stage is None:
            raise ValueError("Cannot checkpoint a flow without a current stage")
        return cls(
            current_stage_id=machine.current_stage.id,
            completed_stages=sorted(machine.completed_stages),
            stage_history=list(machine.stage_history),
            stage_data=dict(machine.stage_data),
            **extra,
        )

    def apply_to(self, machine: FlowStateMachine) -> bool:
        return machine.restore(
            current_stage_id=self.current_stage_id,
            completed_stages=self.completed_stages,
            stage_data=self.stage_data,
            stage_history=self.stage_history,
        )

    def media_references(self) -> list[str]:
        references: list[str] = []
        for data in self.stage_data.values():
            if isinstance(data, MediaStageData):
                references.extend(data.media_paths())
        return references

    def is_valid(self, media: MediaDirectory) -> bool:
        for reference in self.media_references():
            path = media.resolve(reference)
            if path is None or not path.is_file():
                return False
        return True


class CheckpointEnvelope(BaseModel):
    """Minimal view of a checkpoint used by cheap existence probes."""

    model_config = ConfigDict(extra="ignore")

    schema_version: str = SCHEMA_VERSION
    current_stage_id: str
    saved_at: datetime

    @field_validator("saved_at")
    @classmethod
    def normalize_saved_at(cls, value: datetime) -> datetime:
        return _as_utc(value)


class SavedStateInfo(NamedTuple):
    flow_type: str
    stage_id: str
    saved_at: datetime


class FlowCheckpointStore:
    """File-backed checkpoint store with TTL expiry and managed media.

    Writes and deletions run on a private serial queue, so concurrent
    calls are applied in submission order. Metadata probes read on the
    calling thread and route any resulting cleanup back through the queue.
    """

    def __init__(
        self,
        root: Path,
        *,
        ttl: timedelta = timedelta(days=DEFAULT_CHECKPOINT_TTL_DAYS),
        media_dir_name: str = DEFAULT_CHECKPOINT_MEDIA_DIR,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if media_dir_name == CHECKPOINT_DIR_NAME:
            raise ValueError(f"media_dir_name cannot be {CHECKPOINT_DIR_NAME!r}")
        self.root = root
        self.ttl = ttl
        self._clock = clock
        self.checkpoint_dir = root / CHECKPOINT_DIR_NAME
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        self.media = MediaDirectory(root, media_dir_name)
        self._queue = SerialQueue("checkpoint-store")
        self._queue.submit(self._sweep_expired).result()

    def __enter__(self) -> "FlowCheckpointStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._queue.shutdown()

    def flush(self) -> None:
        """Wait for queued writes and deletions to finish."""
        self._queue.drain()

    def save(self, state: PersistedFlowState) -> Future[bool]:
        flow_type = _flow_type_of(type(state))
        return self._queue.submit(self._write_record, flow_type, state)

    def load(self, state_type: type[StateT]) -> Future[StateT | None]:
        flow_type = _flow_type_of(state_type)
        return self._queue.submit(self._load_record, flow_type, state_type)

    def has_saved_state(self, flow_type: str) -> bool:
        return self.get_saved_state_info(flow_type) is not None

    def get_saved_state_info(self, flow_type: str) -> SavedStateInfo | None:
        key = normalize_storage_key(flow_type)
        envelope = self._read_envelope(key)
        if envelope is None:
            return None
        if self._is_expired(envelope.saved_at):
            LOGGER.info("%s checkpoint expired; scheduling removal", key)
            self._queue.submit(self._remove_record, key)
            return None
        return SavedStateInfo(key, envelope.current_stage_id, envelope.saved_at)

    def saved_state_age(self, flow_type: str) -> timedelta | None:
        info = self.get_saved_state_info(flow_type)
        if info is None:
            return None
        return self._clock() - info.saved_at

    def readable_stage_name(
        self,
        flow_type: str,
        stage_names: Mapping[str, str] | None = None,
    ) -> str | None:
        """Human-readable name of the saved stage for resume prompts."""
        info = self.get_saved_state_info(flow_type)
        if info is None:
            return None
        if stage_names and info.stage_id in stage_names:
            return stage_names[info.stage_id]
        return info.stage_id.replace("-", " ").replace("_", " ").title()

    def saved_flow_types(self) -> list[str]:
        if not self.checkpoint_dir.is_dir():
            return []
        return sorted(path.stem for path in self.checkpoint_dir.glob("*.json"))

    def clear(self, flow_type: str) -> Future[None]:
        key = normalize_storage_key(flow_type)
        return self._queue.submit(self._remove_record, key)

    def clear_all(self) -> Future[None]:
        return self._queue.submit(self._remove_all)

    def save_image(
        self,
        data: bytes,
        identifier: str,
        flow_type: str,
        *,
        suffix: str = ".jpg",
    ) -> str | None:
        """Store image bytes; returns a root-relative reference or None."""
        file_name = self._media_file_name(flow_type, identifier, suffix)
        if file_name is None or not self.media.write_bytes(file_name, data):
            return None
        LOGGER.debug("Saved image %s", file_name)
        return self.media.reference(file_name)

    def save_video(
        self,
        source: Path,
        identifier: str,
        flow_type: str,
    ) -> str | None:
        """Copy a video into the media directory; returns a reference or None."""
        file_name = self._media_file_name(flow_type, identifier, source.suffix or ".mp4")
        if file_name is None or not self.media.copy_file(source, file_name):
            return None
        LOGGER.debug("Saved video %s", file_name)
        return self.media.reference(file_name)

    def load_image(self, relative_path: str) -> bytes | None:
        path = self.get_media_path(relative_path)
        if path is None:
            LOGGER.warning("Image not found: %s", relative_path)
            return None
        return self.media.read_bytes(path.name)

    def get_media_path(self, relative_path: str) -> Path | None:
        path = self.media.resolve(relative_path)
        if path is None or not path.is_file():
            return None
        return path

    def media_file_exists(self, relative_path: str) -> bool:
        return self.get_media_path(relative_path) is not None

    def delete_media_file(self, relative_path: str) -> bool:
        path = self.media.resolve(relative_path)
        if path is None:
            return False
        return self.media.delete(path.name)

    def _media_file_name(self, flow_type: str, identifier: str, suffix: str) -> str | None:
        try:
            key = normalize_storage_key(flow_type)
        except ValueError as exc:
            LOGGER.error("Cannot save media: %s", exc)
            return None
        safe_identifier = _IDENTIFIER_PATTERN.sub("_", identifier).strip("_") or "media"
        return self.media.unique_name(f"{key}_{safe_identifier}", suffix)

    def _record_path(self, flow_type: str) -> Path:
        return self.checkpoint_dir / f"{flow_type}.json"

    def _is_expired(self, saved_at: datetime) -> bool:
        return self._clock() - saved_at > self.ttl

    def _write_record(self, flow_type: str, state: PersistedFlowState) -> bool:
        path = self._record_path(flow_type)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            payload = orjson.dumps(state.model_dump(mode="json"))
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, path)
        except (OSError, TypeError, orjson.JSONEncodeError) as exc:
            LOGGER.error("Failed to save %s checkpoint: %s", flow_type, exc)
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            return False
        LOGGER.info("Saved %s checkpoint at stage %s", flow_type, state.current_stage_id)
        return True

    def _load_record(self, flow_type: str, state_type: type[StateT]) -> StateT | None:
        path = self._record_path(flow_type)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            LOGGER.error("Failed to read %s checkpoint: %s", flow_type, exc)
            return None

        try:
            state = state_type.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as exc:
            LOGGER.warning("Discarding undecodable %s checkpoint: %s", flow_type, exc)
            self._remove_record(flow_type)
            return None

        if schema_major(state.schema_version) != schema_major(SCHEMA_VERSION):
            LOGGER.warning(
                "Discarding %s checkpoint with schema %s", flow_type, state.schema_version
            )
            self._remove_record(flow_type)
            return None
        if self._is_expired(state.saved_at):
            LOGGER.info("%s checkpoint expired, clearing", flow_type)
            self._remove_record(flow_type)
            return None
        if not state.is_valid(self.media):
            LOGGER.warning("%s checkpoint invalid (missing media), clearing", flow_type)
            self._remove_record(flow_type)
            return None

        LOGGER.info("Loaded %s checkpoint at stage %s", flow_type, state.current_stage_id)
        return state

    def _read_envelope(self, flow_type: str) -> CheckpointEnvelope | None:
        try:
            raw = self._record_path(flow_type).read_bytes()
        except OSError:
            return None
        try:
            envelope = CheckpointEnvelope.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError):
            return None
        if schema_major(envelope.schema_version) != schema_major(SCHEMA_VERSION):
            return None
        return envelope

    def _remove_record(self, flow_type: str) -> None:
        path = self._record_path(flow_type)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.error("Failed to clear %s checkpoint: %s", flow_type, exc)
            return
        LOGGER.info("Cleared %s checkpoint", flow_type)

    def _remove_all(self) -> None:
        for flow_type in self.saved_flow_types():
            self._remove_record(flow_type)
        removed = self.media.purge()
        LOGGER.info("Cleared all checkpoints and %d media file(s)", removed)

    def _sweep_expired(self) -> None:
        for stale_tmp in self.checkpoint_dir.glob("*.json.tmp"):
            try:
                stale_tmp.unlink(missing_ok=True)
            except OSError as exc:
                LOGGER.warning("Could not remove partial checkpoint %s: %s", stale_tmp.name, exc)
        for flow_type in self.saved_flow_types():
            try:
                raw = self._record_path(flow_type).read_bytes()
                envelope = CheckpointEnvelope.model_validate(orjson.loads(raw))
            except OSError as exc:
                LOGGER.warning("Skipping unreadable %s checkpoint: %s", flow_type, exc)
                continue
            except (orjson.JSONDecodeError, ValidationError):
                self._remove_record(flow_type)
                continue
            if self._is_expired(envelope.saved_at):
                LOGGER.info("Cleaned up expired %s checkpoint", flow_type)
                self._remove_record(flow_type)


def _flow_type_of(state_type: type[PersistedFlowState]) -> str:
    if not state_type.flow_type:
        raise ValueError(f"{state_type.__name__} does not declare a flow_type")
    return normalize_storage_key(state_type.flow_type)
