"""Bounded, newest-first history of completed flow results."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence
from uuid import uuid4

import orjson
from pydantic import Field, TypeAdapter, ValidationError

from stagekit.constants import (
    DEFAULT_HISTORY_MAX_RESULTS,
    DEFAULT_HISTORY_MEDIA_DIR,
    SCHEMA_VERSION,
    schema_major,
)
from stagekit.persistence.media import MediaDirectory
from stagekit.persistence.queue import SerialQueue
from stagekit.schemas.base import FrozenSchemaModel, StrictSchemaModel
from stagekit.schemas.enums import normalize_storage_key

LOGGER = logging.getLogger(__name__)

INDEX_SUFFIX = "_index.json"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ResultOutcome(StrictSchemaModel):
    """Scored outcome handed over by the analysis collaborator."""

    overall_score: int
    label: str | None = None
    comment: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class StoredResult(FrozenSchemaModel):
    """Immutable history entry."""

    schema_version: str = Field(default=SCHEMA_VERSION, min_length=1)
    id: str = Field(min_length=1)
    category: str = Field(min_length=1)
    created_at: datetime
    overall_score: int
    label: str | None = None
    comment: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    media_files: dict[str, str] = Field(default_factory=dict)


_INDEX_ADAPTER = TypeAdapter(list[StoredResult])


@dataclass(frozen=True)
class MediaBlob:
    """Media accompanying a result: in-memory bytes or a file to copy."""

    role: str
    suffix: str
    data: bytes | None = None
    source_path: Path | None = None

    def __post_init__(self) -> None:
        if (self.data is None) == (self.source_path is None):
            raise ValueError("MediaBlob needs exactly one of data or source_path")
        if not self.role or not self.role.replace("_", "").isalnum():
            raise ValueError(f"Invalid media role: {self.role!r}")


class ResultsHistoryStore:
    """Per-category result history with atomic index files and owned media.

    Every mutation runs on a private serial queue. Readers get snapshots of
    the in-memory lists, which are replaced wholesale after each mutation.
    """

    def __init__(
        self,
        root: Path,
        *,
        categories: Iterable[str] = (),
        max_results: int = DEFAULT_HISTORY_MAX_RESULTS,
        media_dir_name: str = DEFAULT_HISTORY_MEDIA_DIR,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_results < 1:
            raise ValueError("max_results must be >= 1")
        self.root = root
        self.max_results = max_results
        self._clock = clock
        self.root.mkdir(parents=True, exist_ok=True)
        self.media = MediaDirectory(root, media_dir_name)
        self._categories = {normalize_storage_key(category) for category in categories}
        self._lock = threading.Lock()
        self._results: dict[str, tuple[StoredResult, ...]] = {}
        self._queue = SerialQueue("history-store")
        self._load_all()

    def __enter__(self) -> "ResultsHistoryStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._queue.shutdown()

    def flush(self) -> None:
        self._queue.drain()

    @property
    def categories(self) -> list[str]:
        with self._lock:
            return sorted(self._categories | set(self._results))

    def results(self, category: str) -> list[StoredResult]:
        key = normalize_storage_key(category)
        with self._lock:
            return list(self._results.get(key, ()))

    def latest(self, category: str) -> StoredResult | None:
        entries = self.results(category)
        return entries[0] if entries else None

    def get(self, category: str, result_id: str) -> StoredResult | None:
        for entry in self.results(category):
            if entry.id == result_id:
                return entry
        return None

    def media_path(self, result: StoredResult, role: str) -> Path | None:
        file_name = result.media_files.get(role)
        if file_name is None:
            return None
        path = self.media.path_for(file_name)
        if path is None or not path.is_file():
            return None
        return path

    def load_media(self, result: StoredResult, role: str) -> bytes | None:
        file_name = result.media_files.get(role)
        if file_name is None:
            return None
        return self.media.read_bytes(file_name)

    def save(
        self,
        category: str,
        outcome: ResultOutcome,
        media: Sequence[MediaBlob] = (),
    ) -> Future[StoredResult]:
        key = self._resolve_category(category)
        roles = [blob.role for blob in media]
        if len(roles) != len(set(roles)):
            raise ValueError("Media roles must be unique per result")
        return self._queue.submit(self._save, key, outcome, tuple(media))

    def delete(self, result: StoredResult) -> Future[None]:
        key = normalize_storage_key(result.category)
        return self._queue.submit(self._delete, key, result.id)

    def _resolve_category(self, category: str) -> str:
        key = normalize_storage_key(category)
        if self._categories and key not in self._categories:
            raise ValueError(f"Unknown result category: {category}")
        return key

    def _save(
        self,
        category: str,
        outcome: ResultOutcome,
        media: tuple[MediaBlob, ...],
    ) -> StoredResult:
        result_id = uuid4().hex
        media_files: dict[str, str] = {}
        for blob in media:
            file_name = f"{category}_{blob.role}_{result_id}{blob.suffix}"
            if blob.data is not None:
                written = self.media.write_bytes(file_name, blob.data)
            else:
                assert blob.source_path is not None
                written = self.media.copy_file(blob.source_path, file_name)
            if written:
                media_files[blob.role] = file_name

        stored = StoredResult(
            id=result_id,
            category=category,
            created_at=self._clock(),
            overall_score=outcome.overall_score,
            label=outcome.label,
            comment=outcome.comment,
            details=dict(outcome.details),
            media_files=media_files,
        )

        with self._lock:
            updated = [stored, *self._results.get(category, ())]
        while len(updated) > self.max_results:
            evicted = updated.pop()
            self._cleanup_media(evicted)
            LOGGER.info("Evicted oldest %s result %s", category, evicted.id)

        self._persist_index(category, updated)
        with self._lock:
            self._results[category] = tuple(updated)
        LOGGER.info("Saved %s result %s (score %d)", category, stored.id, stored.overall_score)
        return stored

    def _delete(self, category: str, result_id: str) -> None:
        with self._lock:
            current = self._results.get(category, ())
        target = next((entry for entry in current if entry.id == result_id), None)
        if target is None:
            LOGGER.debug("Delete ignored: %s result %s not found", category, result_id)
            return

        self._cleanup_media(target)
        updated = [entry for entry in current if entry.id != result_id]
        self._persist_index(category, updated)
        with self._lock:
            self._results[category] = tuple(updated)
        LOGGER.info("Deleted %s result %s", category, result_id)

    def _cleanup_media(self, result: StoredResult) -> None:
        for file_name in result.media_files.values():
            self.media.delete(file_name)

    def _index_path(self, category: str) -> Path:
        return self.root / f"{category}{INDEX_SUFFIX}"

    def _persist_index(self, category: str, results: list[StoredResult]) -> None:
        index_path = self._index_path(category)
        tmp_path = index_path.with_name(f"{index_path.name}.tmp")
        try:
            payload = orjson.dumps(_INDEX_ADAPTER.dump_python(results, mode="json"))
            tmp_path.write_bytes(payload)
            self._commit_index(tmp_path, index_path)
        except (OSError, TypeError, orjson.JSONEncodeError) as exc:
            LOGGER.error("Failed to persist %s index: %s", category, exc)

    @staticmethod
    def _commit_index(tmp_path: Path, index_path: Path) -> None:
        os.replace(tmp_path, index_path)

    def _load_all(self) -> None:
        discovered = {
            path.name[: -len(INDEX_SUFFIX)]
            for path in self.root.glob(f"*{INDEX_SUFFIX}")
        }
        for category in sorted(self._categories | discovered):
            self._results[category] = self._load_index(category)
        LOGGER.info(
            "History store initialized: %s",
            ", ".join(f"{name}={len(entries)}" for name, entries in self._results.items())
            or "empty",
        )

    def _load_index(self, category: str) -> tuple[StoredResult, ...]:
        index_path = self._index_path(category)
        stale_tmp = index_path.with_name(f"{index_path.name}.tmp")
        if stale_tmp.exists():
            LOGGER.warning("Removing incomplete %s index write", category)
            stale_tmp.unlink(missing_ok=True)

        try:
            raw = index_path.read_bytes()
        except FileNotFoundError:
            return ()
        except OSError as exc:
            LOGGER.error("Failed to read %s index: %s", category, exc)
            return ()

        try:
            entries = _INDEX_ADAPTER.validate_python(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as exc:
            LOGGER.warning("Discarding undecodable %s index: %s", category, exc)
            return ()

        current_major = schema_major(SCHEMA_VERSION)
        kept = [entry for entry in entries if schema_major(entry.schema_version) == current_major]
        if len(kept) != len(entries):
            LOGGER.warning(
                "Skipped %d %s result(s) with a foreign schema version",
                len(entries) - len(kept),
                category,
            )
        return tuple(kept)
