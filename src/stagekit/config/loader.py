"""Configuration loading and override resolution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from stagekit.config.models import AppConfig

DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError("Configuration file must deserialize to a mapping")
    return data


def apply_overrides(
    raw_config: dict[str, Any],
    env: Mapping[str, str],
    cli_overrides: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Apply precedence: CLI > env > YAML defaults."""
    merged = dict(raw_config)
    if env.get("STAGEKIT_STORAGE_ROOT"):
        _section(merged, "storage")["root_dir"] = env["STAGEKIT_STORAGE_ROOT"]
    if env.get("STAGEKIT_CHECKPOINT_TTL_DAYS"):
        _section(merged, "checkpoints")["ttl_days"] = env["STAGEKIT_CHECKPOINT_TTL_DAYS"]
    if env.get("STAGEKIT_HISTORY_MAX_RESULTS"):
        _section(merged, "history")["max_results"] = env["STAGEKIT_HISTORY_MAX_RESULTS"]

    if cli_overrides:
        if cli_overrides.get("root_dir"):
            _section(merged, "storage")["root_dir"] = str(cli_overrides["root_dir"])
        if cli_overrides.get("ttl_days") is not None:
            _section(merged, "checkpoints")["ttl_days"] = cli_overrides["ttl_days"]
        if cli_overrides.get("max_results") is not None:
            _section(merged, "history")["max_results"] = cli_overrides["max_results"]
    return merged


def _section(merged: dict[str, Any], name: str) -> dict[str, Any]:
    section = merged.get(name)
    if not isinstance(section, dict):
        section = {}
    else:
        section = dict(section)
    merged[name] = section
    return section


def load_app_config(
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Load and validate central application config."""
    active_env = os.environ if env is None else env
    raw = _load_yaml(config_path or DEFAULT_CONFIG_PATH)
    merged = apply_overrides(raw, active_env, cli_overrides)
    return AppConfig.model_validate(merged)
