"""Configuration loading tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from stagekit.config import StoreFactory, load_app_config
from stagekit.config.loader import DEFAULT_CONFIG_PATH
from stagekit.stages import MediaCaptureStage, SelectionStage

_BASE_CONFIG = """
schema_version: "1.0.0"
storage:
  root_dir: "yaml-root"
checkpoints:
  ttl_days: 7
history:
  max_results: 50
  categories: ["skill-check"]
flows:
  skill-check:
    name: "Skill Check"
    stages:
      - kind: "selection"
        id: "skill-selection"
        title: "Pick a skill"
        options:
          - id: "wrist_shot"
            title: "Wrist Shot"
      - kind: "media_capture"
        id: "video-capture"
        title: "Record"
        media_types: ["video"]
        max_items: 1
      - kind: "results"
        id: "results"
        title: "Results"
""".strip()


def _write_config(tmp_path: Path, content: str = _BASE_CONFIG) -> Path:
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(content, encoding="utf-8")
    return config_path


def test_cli_overrides_env_and_yaml_defaults(tmp_path: Path) -> None:
    """CLI override should have highest precedence, then env, then YAML."""
    config_path = _write_config(tmp_path)

    config = load_app_config(
        config_path,
        env={
            "STAGEKIT_STORAGE_ROOT": "env-root",
            "STAGEKIT_CHECKPOINT_TTL_DAYS": "3",
            "STAGEKIT_HISTORY_MAX_RESULTS": "10",
        },
        cli_overrides={"root_dir": tmp_path / "cli-root", "max_results": 5},
    )
    assert config.storage.root_dir == tmp_path / "cli-root"
    assert config.checkpoints.ttl_days == 3
    assert config.history.max_results == 5


def test_yaml_values_apply_without_overrides(tmp_path: Path) -> None:
    """YAML defaults are used when env and CLI are silent."""
    config = load_app_config(_write_config(tmp_path), env={})
    assert config.storage.root_dir == Path("yaml-root")
    assert config.history.categories == ["skill_check"]
    assert list(config.flows) == ["skill_check"]
    stages = config.flows["skill_check"].stages
    assert isinstance(stages[0], SelectionStage)
    assert isinstance(stages[1], MediaCaptureStage)


def test_invalid_stage_shape_is_rejected(tmp_path: Path) -> None:
    """Unknown stage kinds and inverted media limits fail validation."""
    config_path = _write_config(
        tmp_path,
        _BASE_CONFIG.replace('kind: "results"', 'kind: "celebration"'),
    )
    with pytest.raises(ValidationError):
        load_app_config(config_path, env={})

    config_path = _write_config(
        tmp_path,
        _BASE_CONFIG.replace("max_items: 1", "min_items: 2\n        max_items: 1"),
    )
    with pytest.raises(ValidationError):
        load_app_config(config_path, env={})


def test_duplicate_stage_ids_are_rejected(tmp_path: Path) -> None:
    """Stage ids must be unique within a flow."""
    config_path = _write_config(
        tmp_path,
        _BASE_CONFIG.replace('id: "results"', 'id: "video-capture"'),
    )
    with pytest.raises(ValidationError, match="duplicate stage ids"):
        load_app_config(config_path, env={})


def test_media_directories_must_differ(tmp_path: Path) -> None:
    """Checkpoint and history media namespaces cannot collide."""
    config_path = _write_config(
        tmp_path,
        _BASE_CONFIG.replace(
            "ttl_days: 7",
            'ttl_days: 7\n  media_dir_name: "shared"',
        ).replace(
            "max_results: 50",
            'max_results: 50\n  media_dir_name: "shared"',
        ),
    )
    with pytest.raises(ValidationError, match="must differ"):
        load_app_config(config_path, env={})


def test_out_of_range_env_override_is_rejected(tmp_path: Path) -> None:
    """Env overrides go through the same validation as YAML values."""
    with pytest.raises(ValidationError):
        load_app_config(_write_config(tmp_path), env={"STAGEKIT_CHECKPOINT_TTL_DAYS": "0"})


def test_missing_config_file_raises(tmp_path: Path) -> None:
    """A missing config path is reported, not silently defaulted."""
    with pytest.raises(FileNotFoundError):
        load_app_config(tmp_path / "absent.yaml", env={})


def test_store_factory_builds_flow_and_stores(tmp_path: Path) -> None:
    """The factory wires config into flows and stores under the root."""
    config = load_app_config(
        _write_config(tmp_path),
        env={},
        cli_overrides={"root_dir": tmp_path / "data"},
    )
    factory = StoreFactory(config)

    flow = factory.build_flow("skill-check")
    assert flow.id == "skill_check"
    assert [stage.id for stage in flow.stages] == ["skill-selection", "video-capture", "results"]
    with pytest.raises(ValueError, match="Unknown flow"):
        factory.build_flow("sty_check")

    with factory.create_checkpoint_store() as checkpoints:
        assert checkpoints.media.path == tmp_path / "data" / "flow_media"
    with factory.create_history_store() as history:
        assert history.categories == ["skill_check"]
        assert history.media.path == tmp_path / "data" / "results_media"
    assert factory.create_transition_store().db_path == tmp_path / "data" / "transitions.db"


def test_shipped_settings_are_valid() -> None:
    """The repository settings file validates and defines both flows."""
    repo_root = Path(__file__).resolve().parents[2]
    config = load_app_config(repo_root / DEFAULT_CONFIG_PATH, env={})
    assert set(config.flows) == {"skill_check", "sty_check"}
    assert config.history.categories == ["skill_check", "sty_check"]


def test_media_directory_cannot_use_reserved_name(tmp_path: Path) -> None:
    """Media directories may not collide with the checkpoint record directory."""
    config_path = _write_config(
        tmp_path,
        _BASE_CONFIG.replace("ttl_days: 7", 'ttl_days: 7\n  media_dir_name: "checkpoints"'),
    )
    with pytest.raises(ValidationError, match="reserved name"):
        load_app_config(config_path, env={})
