# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from pathlib import Path


class PathOutsideRepositoryError(ValueError):
    pass


def resolve_in_repo(repo_root: Path, relative_path: str | None) -> Path:
    """
    Resolve a model-supplied path against the repository root.

    Absolute paths are accepted only when they point inside the repository.
    Raises PathOutsideRepositoryError for anything that would escape it.
    """
    root = repo_root.resolve()
    raw = (relative_path or ".").strip() or "."
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()
    if resolved != root and root not in resolved.parents:
        raise PathOutsideRepositoryError(
            f"Path '{relative_path}' resolves outside the repository root"
        )
    return resolved


def to_repo_relative(repo_root: Path, path: Path) -> str:
    """Posix-style path relative to the repository root ('.' for the root itself)."""
    try:
        rel = path.resolve().relative_to(repo_root.resolve())
    except ValueError:
        return path.as_posix()
    return rel.as_posix() or "."
