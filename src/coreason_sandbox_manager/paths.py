# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

"""Confinement of caller-supplied paths to a sandbox root."""

from pathlib import Path

from coreason_sandbox_manager.exceptions import PathEscapesRootError, PathRequiredError

ROOT = "."


def _segments(path: str | None) -> list[str]:
    if not path:
        raise PathRequiredError()

    normalized = path.replace("\\", "/").lstrip("/")
    segments = []
    for segment in normalized.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            # Rejected outright, even when later segments would re-enter the root.
            raise PathEscapesRootError()
        segments.append(segment)
    return segments


def ensure_relative_path(path: str | None) -> str:
    """Normalize a path to the sandbox-relative form without touching the filesystem.

    A leading slash is treated as root-relative. Empty and ``.`` segments are
    dropped; an empty result means the sandbox root (``"."``).

    Raises:
        PathRequiredError: If ``path`` is empty or ``None``.
        PathEscapesRootError: If any segment is ``..``.
    """
    segments = _segments(path)
    return "/".join(segments) if segments else ROOT


def resolve_sandbox_path(root: Path, path: str | None) -> Path:
    """Resolve ``path`` against ``root`` and verify it stays inside.

    The canonical form (symlinks followed) must be a descendant of the canonical
    root; the returned path is the lexical one so links can be operated on
    directly.

    Raises:
        PathRequiredError: If ``path`` is empty or ``None``.
        PathEscapesRootError: If the path, or a symlink along it, leaves the root.
    """
    segments = _segments(path)
    target = root.joinpath(*segments)

    canonical_root = root.resolve()
    canonical = target.resolve()
    if canonical != canonical_root and canonical_root not in canonical.parents:
        raise PathEscapesRootError()

    return target


def relative_sandbox_path(root: Path, absolute: Path) -> str:
    """Map an absolute path under ``root`` back to its ``/``-separated relative form."""
    relative = absolute.relative_to(root)
    return relative.as_posix() if relative.parts else ROOT
