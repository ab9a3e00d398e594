"""Managed media directory tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from stagekit.persistence.media import MediaDirectory


def test_unique_names_never_repeat() -> None:
    """Each generated name is fresh even for identical prefixes."""
    names = {MediaDirectory.unique_name("skill_check_front", ".jpg") for _ in range(50)}
    assert len(names) == 50
    assert all(name.startswith("skill_check_front_") and name.endswith(".jpg") for name in names)


def test_write_read_delete_round_trip(tmp_path: Path) -> None:
    """Files are written, read back and removed by bare name."""
    media = MediaDirectory(tmp_path, "flow_media")
    assert media.write_bytes("a.jpg", b"jpeg-bytes")
    assert media.exists("a.jpg")
    assert media.read_bytes("a.jpg") == b"jpeg-bytes"
    assert media.reference("a.jpg") == "flow_media/a.jpg"
    assert media.resolve("flow_media/a.jpg") == tmp_path / "flow_media" / "a.jpg"
    assert media.delete("a.jpg") is True
    assert media.delete("a.jpg") is False
    assert media.read_bytes("a.jpg") is None


def test_references_cannot_escape_directory(tmp_path: Path) -> None:
    """Traversal and foreign references resolve to None."""
    media = MediaDirectory(tmp_path, "flow_media")
    assert media.resolve("../secret.txt") is None
    assert media.resolve("flow_media/../secret.txt") is None
    assert media.resolve("other_media/a.jpg") is None
    assert media.resolve("/etc/passwd") is None
    assert media.path_for("..") is None
    assert media.write_bytes("../escape.jpg", b"x") is False


def test_copy_file_and_purge(tmp_path: Path) -> None:
    """Source files are copied in and purge() empties the directory."""
    source = tmp_path / "capture.mp4"
    source.write_bytes(b"video")
    media = MediaDirectory(tmp_path, "results_media")
    assert media.copy_file(source, "clip.mp4")
    assert media.copy_file(tmp_path / "missing.mp4", "other.mp4") is False
    media.write_bytes("thumb.jpg", b"thumb")

    assert media.list_files() == ["clip.mp4", "thumb.jpg"]
    assert media.purge() == 2
    assert media.list_files() == []
    assert source.exists()


def test_invalid_directory_name_is_rejected(tmp_path: Path) -> None:
    """Directory names must be a single path component."""
    with pytest.raises(ValueError):
        MediaDirectory(tmp_path, "../media")
