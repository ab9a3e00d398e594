"""Runtime environment loading helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from dotenv import find_dotenv, load_dotenv

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
DISABLE_DOTENV_ENV = "STAGEKIT_DISABLE_DOTENV"


def env_flag(name: str, env: Mapping[str, str] | None = None) -> bool:
    """Interpret an environment variable as a boolean switch."""
    active_env = os.environ if env is None else env
    return active_env.get(name, "").strip().lower() in _TRUTHY_VALUES


def load_runtime_env(*, filename: str = ".env") -> Path | None:
    """Load the nearest .env without overriding exported variables.

    Returns the path that was loaded, or None when loading was disabled or
    no file was found.
    """
    if env_flag(DISABLE_DOTENV_ENV):
        return None

    dotenv_path = find_dotenv(filename=filename, usecwd=True)
    if not dotenv_path:
        return None

    load_dotenv(dotenv_path=dotenv_path, override=False)
    return Path(dotenv_path)
