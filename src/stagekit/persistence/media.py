"""Managed media directory shared by the checkpoint and history stores."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path, PurePosixPath
from uuid import uuid4

LOGGER = logging.getLogger(__name__)


class MediaDirectory:
    """Flat directory of media files owned by a single store.

    Files are addressed either by bare file name or by a reference relative
    to the store root (``<dir_name>/<file_name>``). Absolute paths are never
    handed out, so the store root can move without breaking references.
    """

    def __init__(self, root: Path, dir_name: str) -> None:
        if not dir_name or "/" in dir_name or "\\" in dir_name or dir_name in {".", ".."}:
            raise ValueError(f"Invalid media directory name: {dir_name!r}")
        self.root = root
        self.dir_name = dir_name
        self.path = root / dir_name
        self.ensure_exists()

    def ensure_exists(self) -> bool:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.error("Failed to create media directory %s: %s", self.path, exc)
            return False
        return True

    @staticmethod
    def unique_name(prefix: str, suffix: str) -> str:
        """Build a fresh file name that never collides with an earlier one."""
        return f"{prefix}_{uuid4().hex}{suffix}"

    def reference(self, file_name: str) -> str:
        return f"{self.dir_name}/{file_name}"

    def path_for(self, file_name: str) -> Path | None:
        """Absolute path of a bare file name, or None if the name is unsafe."""
        if not file_name or file_name in {".", ".."} or "/" in file_name or "\\" in file_name:
            return None
        return self.path / file_name

    def resolve(self, reference: str) -> Path | None:
        """Absolute path for a root-relative reference inside this directory."""
        parts = PurePosixPath(reference).parts
        if len(parts) != 2 or parts[0] != self.dir_name:
            return None
        return self.path_for(parts[1])

    def write_bytes(self, file_name: str, data: bytes) -> bool:
        target = self.path_for(file_name)
        if target is None or not self.ensure_exists():
            return False
        tmp_path = target.with_name(f".{target.name}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, target)
        except OSError as exc:
            LOGGER.error("Failed to write media file %s: %s", file_name, exc)
            tmp_path.unlink(missing_ok=True)
            return False
        return True

    def copy_file(self, source: Path, file_name: str) -> bool:
        target = self.path_for(file_name)
        if target is None or not self.ensure_exists():
            return False
        try:
            shutil.copyfile(source, target)
        except OSError as exc:
            LOGGER.error("Failed to copy media %s -> %s: %s", source, file_name, exc)
            return False
        return True

    def read_bytes(self, file_name: str) -> bytes | None:
        target = self.path_for(file_name)
        if target is None or not target.is_file():
            return None
        try:
            return target.read_bytes()
        except OSError as exc:
            LOGGER.warning("Failed to read media file %s: %s", file_name, exc)
            return None

    def exists(self, file_name: str) -> bool:
        target = self.path_for(file_name)
        return target is not None and target.is_file()

    def delete(self, file_name: str) -> bool:
        target = self.path_for(file_name)
        if target is None:
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            LOGGER.warning("Failed to delete media file %s: %s", file_name, exc)
            return False
        return True

    def list_files(self) -> list[str]:
        if not self.path.is_dir():
            return []
        return sorted(entry.name for entry in self.path.iterdir() if entry.is_file())

    def purge(self) -> int:
        """Delete every file in the directory; returns the number removed."""
        removed = 0
        for file_name in self.list_files():
            if self.delete(file_name):
                removed += 1
        return removed
