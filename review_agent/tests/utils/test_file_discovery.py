# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import pytest

from review_agent.src.utils.file_discovery import (
    GlobMatcher,
    find_files,
    glob_to_regex,
    is_probably_binary,
    walk_files,
)


class TestGlob:
    @pytest.mark.parametrize(
        "pattern, path, expected",
        [
            ("*.py", "main.py", True),
            ("*.py", "src/main.py", True),
            ("src/*.py", "src/main.py", True),
            ("src/*.py", "src/sub/main.py", False),
            ("src/**/*.py", "src/main.py", True),
            ("src/**/*.py", "src/a/b/main.py", True),
            ("**/test_*.py", "tests/test_x.py", True),
            ("*.{ts,tsx}", "web/App.tsx", True),
            ("*.{ts,tsx}", "web/App.js", False),
            ("file?.txt", "file1.txt", True),
            ("file?.txt", "file10.txt", False),
            ("[ab].md", "a.md", True),
            ("[!ab].md", "a.md", False),
        ],
    )
    def test_matching(self, pattern, path, expected):
        assert GlobMatcher(pattern).matches(path) is expected

    def test_star_does_not_cross_directories(self):
        assert not glob_to_regex("src/*").match("src/a/b.py")

    def test_unbalanced_braces(self):
        with pytest.raises(ValueError, match="Unbalanced braces"):
            glob_to_regex("*.{py,ts")


@pytest.mark.asyncio
class TestWalkFiles:
    async def test_sorted_and_ignores_noise(self, tmp_path):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "z.py").write_text("")
        (tmp_path / "a.py").write_text("")
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "HEAD").write_text("ref")
        paths = [p.relative_to(tmp_path).as_posix() async for p in walk_files(tmp_path)]
        assert paths == ["a.py", "b/z.py"]

    async def test_non_recursive(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "x.py").write_text("")
        (tmp_path / "top.py").write_text("")
        paths = [p.name async for p in walk_files(tmp_path, recursive=False)]
        assert paths == ["top.py"]

    async def test_find_files_relative_to_root(self, tmp_path):
        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "mod.py").write_text("")
        (tmp_path / "pkg" / "data.json").write_text("{}")
        assert await find_files(tmp_path, tmp_path / "pkg", "*.py") == ["pkg/mod.py"]
        assert await find_files(tmp_path, tmp_path) == ["pkg/data.json", "pkg/mod.py"]


def test_binary_detection(tmp_path):
    text = tmp_path / "a.txt"
    text.write_text("hello")
    blob = tmp_path / "a.bin"
    blob.write_bytes(b"ab\x00cd")
    assert not is_probably_binary(text)
    assert is_probably_binary(blob)
    assert is_probably_binary(tmp_path / "missing")
