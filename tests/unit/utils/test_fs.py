"""Unit tests for filesystem helpers."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from editgate.utils.fs import (
    atomic_write,
    directory_size,
    is_within,
    read_text_if_exists,
    resolve_in_workspace,
    safe_delete,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_atomic_write_text_preserves_newlines_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "out.txt"

    atomic_write(target, "a\r\nb\n")

    assert target.read_bytes() == b"a\r\nb\n"
    assert read_text_if_exists(target) == "a\r\nb\n"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["out.txt"]


def test_atomic_write_bytes_and_parent_creation(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "deeper" / "blob.bin"

    with pytest.raises(FileNotFoundError):
        atomic_write(target, b"\x00\x01")
    atomic_write(target, b"\x00\x01", create_parents=True)

    assert target.read_bytes() == b"\x00\x01"


def test_atomic_write_replaces_existing_content(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("old", encoding="utf-8")

    atomic_write(target, "new")

    assert target.read_text(encoding="utf-8") == "new"


def test_read_text_if_exists_returns_none_for_missing_or_directories(tmp_path: Path) -> None:
    assert read_text_if_exists(tmp_path / "missing.txt") is None
    assert read_text_if_exists(tmp_path) is None


def test_resolve_in_workspace_maps_relative_paths(tmp_path: Path) -> None:
    resolved = resolve_in_workspace(tmp_path, "src\\app.ts")

    assert resolved == tmp_path.resolve() / "src" / "app.ts"
    assert resolve_in_workspace(tmp_path, str(tmp_path / "a.ts")) == tmp_path.resolve() / "a.ts"


@pytest.mark.parametrize("candidate", ["../outside.ts", "src/../../outside.ts", "/etc/passwd"])
def test_resolve_in_workspace_rejects_escapes(tmp_path: Path, candidate: str) -> None:
    with pytest.raises(ValueError, match="escapes workspace"):
        resolve_in_workspace(tmp_path / "ws", candidate)


def test_is_within(tmp_path: Path) -> None:
    child = tmp_path / "child.txt"
    child.write_text("x", encoding="utf-8")

    assert is_within(child, tmp_path)
    assert not is_within(tmp_path, child)
    assert not is_within(tmp_path / "missing", tmp_path)


def test_safe_delete_files_directories_and_symlinks(tmp_path: Path) -> None:
    workspace = tmp_path / "ws"
    outside = tmp_path / "outside.txt"
    workspace.mkdir()
    outside.write_text("keep", encoding="utf-8")
    file_path = workspace / "a.txt"
    file_path.write_text("x", encoding="utf-8")
    folder = workspace / "folder"
    (folder / "inner").mkdir(parents=True)
    link = workspace / "link"
    os.symlink(outside, link)

    safe_delete(file_path, workspace)
    safe_delete(folder, workspace)
    safe_delete(link, workspace)

    assert not file_path.exists()
    assert not folder.exists()
    assert not link.is_symlink()
    assert outside.read_text(encoding="utf-8") == "keep"
    with pytest.raises(ValueError, match="outside workspace"):
        safe_delete(outside, workspace)


def test_directory_size(tmp_path: Path) -> None:
    (tmp_path / "a.bin").write_bytes(b"x" * 10)
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.bin").write_bytes(b"y" * 5)

    assert directory_size(tmp_path) == 15
    assert directory_size(tmp_path / "missing") == 0
