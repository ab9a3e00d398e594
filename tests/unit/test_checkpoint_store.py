"""Flow checkpoint store tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import ClassVar

import orjson
import pytest

from stagekit.persistence import (
    FlowCheckpointStore,
    FlowProgressCheckpoint,
    PersistedFlowState,
)
from stagekit.stages import MediaStageData, SelectionData

TTL = timedelta(days=7)


class _SkillCheckCheckpoint(FlowProgressCheckpoint):
    flow_type: ClassVar[str] = "skill_check"

    selected_skill: str | None = None


class _StickAnalyzerState(PersistedFlowState):
    flow_type: ClassVar[str] = "stick-analyzer"

    height_cm: int


class _UntypedState(PersistedFlowState):
    pass


def _store(root: Path, **kwargs: object) -> FlowCheckpointStore:
    return FlowCheckpointStore(root, ttl=TTL, **kwargs)  # type: ignore[arg-type]


def _checkpoint(**overrides: object) -> _SkillCheckCheckpoint:
    params: dict[str, object] = {
        "current_stage_id": "capture",
        "completed_stages": ["select"],
        "stage_history": ["select", "capture"],
        "stage_data": {"select": SelectionData.single("wrist")},
        "selected_skill": "wrist",
    }
    params.update(overrides)
    return _SkillCheckCheckpoint(**params)


def test_save_then_load_round_trips(tmp_path: Path) -> None:
    """A fresh, valid checkpoint loads back deep-equal."""
    with _store(tmp_path) as store:
        state = _checkpoint()
        assert store.save(state).result() is True
        loaded = store.load(_SkillCheckCheckpoint).result()

    assert loaded == state
    assert isinstance(loaded.stage_data["select"], SelectionData)
    assert loaded.saved_at.tzinfo is not None


def test_probes_read_envelope_only(tmp_path: Path) -> None:
    """Existence and info probes work without decoding the payload type."""
    with _store(tmp_path) as store:
        state = _StickAnalyzerState(current_stage_id="body-scan", height_cm=180)
        store.save(state).result()

        assert store.has_saved_state("stick_analyzer")
        info = store.get_saved_state_info("stick-analyzer")
        assert info is not None
        assert info.stage_id == "body-scan"
        assert info.saved_at == state.saved_at
        assert store.readable_stage_name("stick_analyzer") == "Body Scan"
        assert (
            store.readable_stage_name("stick_analyzer", {"body-scan": "Body Measurements"})
            == "Body Measurements"
        )
        assert store.has_saved_state("skill_check") is False
        assert store.saved_flow_types() == ["stick_analyzer"]


def test_expired_checkpoint_is_absent_and_removed(tmp_path: Path) -> None:
    """A checkpoint older than the TTL is treated as nonexistent."""
    with _store(tmp_path) as store:
        stale = _checkpoint(saved_at=datetime.now(UTC) - TTL - timedelta(days=1))
        store.save(stale).result()
        record = tmp_path / "checkpoints" / "skill_check.json"
        assert record.exists()

        assert store.has_saved_state("skill_check") is False
        store.flush()
        assert not record.exists()

        store.save(stale).result()
        assert store.load(_SkillCheckCheckpoint).result() is None
        assert not record.exists()

        fresh = _checkpoint(current_stage_id="select", completed_stages=[])
        store.save(fresh).result()
        assert store.load(_SkillCheckCheckpoint).result() == fresh


def test_expiry_uses_injected_clock(tmp_path: Path) -> None:
    """The TTL is measured against the store clock."""
    now = {"value": datetime(2026, 1, 1, tzinfo=UTC)}
    with _store(tmp_path, clock=lambda: now["value"]) as store:
        store.save(_checkpoint(saved_at=now["value"])).result()
        now["value"] += timedelta(days=6)
        assert store.has_saved_state("skill_check")
        assert store.saved_state_age("skill_check") == timedelta(days=6)
        now["value"] += timedelta(days=2)
        assert store.has_saved_state("skill_check") is False


def test_startup_sweep_removes_expired_and_corrupt(tmp_path: Path) -> None:
    """Store construction clears stale checkpoints without a load."""
    checkpoints = tmp_path / "checkpoints"
    checkpoints.mkdir()
    expired = _checkpoint(saved_at=datetime.now(UTC) - timedelta(days=30))
    (checkpoints / "skill_check.json").write_bytes(
        orjson.dumps(expired.model_dump(mode="json"))
    )
    (checkpoints / "sty_check.json").write_bytes(b"{not json")
    (checkpoints / "hockey_card.json.tmp").write_bytes(b"partial")
    fresh = _StickAnalyzerState(current_stage_id="body-scan", height_cm=170)
    (checkpoints / "stick_analyzer.json").write_bytes(orjson.dumps(fresh.model_dump(mode="json")))

    with _store(tmp_path) as store:
        assert store.saved_flow_types() == ["stick_analyzer"]
    assert not (checkpoints / "hockey_card.json.tmp").exists()


def test_invalid_checkpoint_is_absent_even_when_fresh(tmp_path: Path) -> None:
    """Deleting referenced media invalidates the checkpoint."""
    with _store(tmp_path) as store:
        reference = store.save_image(b"jpeg", "front", "skill_check")
        assert reference is not None
        state = _checkpoint(
            stage_data={
                "select": SelectionData.single("wrist"),
                "capture": MediaStageData(images=[reference]),
            }
        )
        store.save(state).result()
        assert store.load(_SkillCheckCheckpoint).result() == state

        store.save(state).result()
        store.delete_media_file(reference)
        assert store.load(_SkillCheckCheckpoint).result() is None
        assert store.has_saved_state("skill_check") is False


def test_corrupt_or_foreign_checkpoint_is_discarded(tmp_path: Path) -> None:
    """Undecodable data and other schema majors read as absent."""
    with _store(tmp_path) as store:
        record = tmp_path / "checkpoints" / "skill_check.json"
        record.write_bytes(b'{"current_stage_id": 12')
        assert store.load(_SkillCheckCheckpoint).result() is None
        assert not record.exists()

        payload = _checkpoint().model_dump(mode="json")
        payload["schema_version"] = "2.0.0"
        record.write_bytes(orjson.dumps(payload))
        assert store.has_saved_state("skill_check") is False
        assert store.load(_SkillCheckCheckpoint).result() is None
        assert not record.exists()


def test_one_slot_per_flow_type(tmp_path: Path) -> None:
    """A new save for the same flow type overwrites the previous one."""
    with _store(tmp_path) as store:
        store.save(_checkpoint(current_stage_id="select"))
        store.save(_checkpoint(current_stage_id="process"))
        loaded = store.load(_SkillCheckCheckpoint).result()
    assert loaded is not None
    assert loaded.current_stage_id == "process"


def test_save_failure_is_swallowed(tmp_path: Path) -> None:
    """Write errors resolve to False instead of raising."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    with _store(tmp_path) as store:
        store.checkpoint_dir = blocker / "checkpoints"
        assert store.save(_checkpoint()).result() is False


def test_save_requires_flow_type(tmp_path: Path) -> None:
    """State classes must declare the flow type they checkpoint."""
    with _store(tmp_path) as store:
        with pytest.raises(ValueError):
            store.save(_UntypedState(current_stage_id="x"))


def test_clear_and_clear_all(tmp_path: Path) -> None:
    """clear() drops one slot; clear_all() drops every slot and the media."""
    with _store(tmp_path) as store:
        store.save(_checkpoint())
        store.save(_StickAnalyzerState(current_stage_id="body-scan", height_cm=175))
        reference = store.save_image(b"jpeg", "front", "skill_check")
        store.flush()

        store.clear("skill_check").result()
        assert store.saved_flow_types() == ["stick_analyzer"]

        store.clear_all().result()
        assert store.saved_flow_types() == []
        assert reference is not None
        assert store.media_file_exists(reference) is False
        assert store.media.list_files() == []


def test_media_operations(tmp_path: Path) -> None:
    """Media saves get fresh relative names and can be read and deleted."""
    source = tmp_path / "recording.mov"
    source.write_bytes(b"video-bytes")
    with _store(tmp_path) as store:
        first = store.save_image(b"a", "front net", "skill_check")
        second = store.save_image(b"b", "front net", "skill_check")
        video = store.save_video(source, "side", "skill_check")

        assert first is not None and second is not None and video is not None
        assert first != second
        assert first.startswith("flow_media/skill_check_front_net_")
        assert first.endswith(".jpg")
        assert video.endswith(".mov")
        assert store.load_image(first) == b"a"
        assert store.get_media_path(video) == tmp_path / video
        assert store.save_video(tmp_path / "missing.mp4", "side", "skill_check") is None

        assert store.delete_media_file(first) is True
        assert store.media_file_exists(first) is False
        assert store.load_image(first) is None
        assert store.get_media_path("../outside.jpg") is None


def test_media_saves_with_invalid_flow_type_return_none(tmp_path: Path) -> None:
    """Unusable flow types are logged and reported as a failed save."""
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"video")
    with _store(tmp_path) as store:
        assert store.save_image(b"jpeg", "front", "bad/flow") is None
        assert store.save_video(source, "side", "") is None
        assert store.media.list_files() == []


def test_sweep_survives_undeletable_partial_write(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A partial write that cannot be removed does not stop the store from opening."""
    checkpoints = tmp_path / "checkpoints"
    checkpoints.mkdir()
    partial = checkpoints / "skill_check.json.tmp"
    partial.write_bytes(b"partial")
    original_unlink = Path.unlink

    def _locked_unlink(path: Path, missing_ok: bool = False) -> None:
        if path.name.endswith(".json.tmp"):
            raise PermissionError("file is locked")
        original_unlink(path, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", _locked_unlink)
    with _store(tmp_path) as store:
        assert store.saved_flow_types() == []
    assert partial.exists()


def test_media_directory_cannot_shadow_checkpoint_records(tmp_path: Path) -> None:
    """Using the record directory for media is rejected before anything is purged."""
    with pytest.raises(ValueError, match="media_dir_name"):
        _store(tmp_path, media_dir_name="checkpoints")
