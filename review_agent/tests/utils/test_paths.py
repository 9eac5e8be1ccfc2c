# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import pytest

from review_agent.src.utils.paths import PathOutsideRepositoryError, resolve_in_repo, to_repo_relative


def test_relative_paths(tmp_path):
    assert resolve_in_repo(tmp_path, "src/a.py") == (tmp_path / "src" / "a.py").resolve()
    assert resolve_in_repo(tmp_path, None) == tmp_path.resolve()
    assert resolve_in_repo(tmp_path, "  ") == tmp_path.resolve()


def test_absolute_path_inside_repo(tmp_path):
    inside = tmp_path / "pkg"
    assert resolve_in_repo(tmp_path, str(inside)) == inside.resolve()


@pytest.mark.parametrize("path", ["..", "../other", "/etc/passwd", "src/../../x"])
def test_escapes_are_refused(tmp_path, path):
    with pytest.raises(PathOutsideRepositoryError):
        resolve_in_repo(tmp_path, path)


def test_to_repo_relative(tmp_path):
    assert to_repo_relative(tmp_path, tmp_path / "a" / "b.py") == "a/b.py"
    assert to_repo_relative(tmp_path, tmp_path) == "."
