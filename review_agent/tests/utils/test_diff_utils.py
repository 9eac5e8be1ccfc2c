# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from review_agent.src.utils.diff_utils import parse_diff

MODIFIED = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -3,4 +3,5 @@ import os
 def main():
-    run()
+    setup()
+    run()
 
@@ -20 +21 @@ def helper():
-    return 1
+    return 2
"""

NEW_AND_DELETED = """diff --git a/docs/new.md b/docs/new.md
new file mode 100644
--- /dev/null
+++ b/docs/new.md
@@ -0,0 +1,2 @@
+# Title
+Body
diff --git a/old.txt b/old.txt
deleted file mode 100644
--- a/old.txt
+++ /dev/null
@@ -1 +0,0 @@
-gone
"""


class TestParseDiff:
    def test_hunks(self):
        files = parse_diff(MODIFIED)
        assert len(files) == 1
        diff_file = files[0]
        assert diff_file.file_path == "src/app.py"
        assert len(diff_file.hunks) == 2

        first, second = diff_file.hunks
        assert (first.old_start, first.old_lines, first.new_start, first.new_lines) == (3, 4, 3, 5)
        assert first.added_lines == ["    setup()", "    run()"]
        assert first.removed_lines == ["    run()"]
        assert first.hunk_id == "src/app.py:3"

        # Omitted counts default to one line
        assert (second.old_lines, second.new_lines) == (1, 1)
        assert not diff_file.is_new_file
        assert not diff_file.is_deleted_file

    def test_new_and_deleted_files(self):
        new, deleted = parse_diff(NEW_AND_DELETED)
        assert new.is_new_file
        assert new.hunks[0].added_lines == ["# Title", "Body"]
        assert deleted.is_deleted_file
        assert deleted.old_path == "old.txt"

    def test_preamble_and_garbage_are_ignored(self):
        text = "From: someone\nSubject: patch\n\n" + MODIFIED
        assert len(parse_diff(text)) == 1

    def test_empty(self):
        assert parse_diff("") == []
