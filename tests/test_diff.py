"""Tests for diff line mapping and comment placement."""

import pytest


class TestBuildLineMap:
    """Tests for parsing a patch into a line map."""

    def test_single_addition(self):
        """An added line between context lines is the only commentable line."""
        from interactive_reviewer.diff import build_line_map

        line_map = build_line_map("@@ -1,2 +1,3 @@\n line1\n+line2\n line3")

        assert line_map.commentable_lines == {2}
        assert line_map.file_line_to_comment_line == {2: 2}
        assert set(line_map.context_lines) == {1, 3}
        assert line_map.context_lines[3].old_line == 2

    def test_only_added_lines_are_commentable(self, two_hunk_patch):
        """Added lines only; deleted and context lines never enter the set."""
        from interactive_reviewer.diff import LineKind, build_line_map

        line_map = build_line_map(two_hunk_patch)

        assert line_map.commentable_lines == {3, 20, 21}
        for hunk in line_map.hunks:
            for line in hunk.lines:
                if line.kind is LineKind.ADDED:
                    assert line.new_line in line_map.commentable_lines
                elif line.new_line is not None:
                    assert line.new_line not in line_map.commentable_lines

    def test_tracks_hunks_and_deleted_lines(self, two_hunk_patch):
        """Deleted lines advance only the old-file counter."""
        from interactive_reviewer.diff import LineKind, build_line_map

        line_map = build_line_map(two_hunk_patch)

        assert len(line_map.hunks) == 2
        second = line_map.hunks[1]
        assert (second.old_start, second.new_start) == (18, 19)
        deleted = [line for line in second.lines if line.kind is LineKind.DELETED]
        assert len(deleted) == 1
        assert deleted[0].old_line == 19
        assert deleted[0].new_line is None
        assert line_map.context_lines[22].old_line == 20

    def test_ignores_file_headers(self):
        """Lines before the first hunk header are not counted."""
        from interactive_reviewer.diff import build_line_map

        patch = (
            "diff --git a/x.py b/x.py\n"
            "index 1234567..abcdefg 100644\n"
            "--- a/x.py\n"
            "+++ b/x.py\n"
            "@@ -5,2 +5,3 @@\n"
            " a\n"
            "+b\n"
            " c\n"
        )
        line_map = build_line_map(patch)

        assert line_map.commentable_lines == {6}

    def test_header_without_counts(self):
        """A header may omit the line counts, which default to one."""
        from interactive_reviewer.diff import build_line_map

        line_map = build_line_map("@@ -0,0 +1 @@\n+only line")

        assert line_map.commentable_lines == {1}
        assert line_map.hunks[0].new_count == 1

    def test_no_newline_marker_is_skipped(self):
        """The no-newline marker does not consume a line number."""
        from interactive_reviewer.diff import build_line_map

        patch = (
            "@@ -1,2 +1,2 @@\n"
            " first\n"
            "-old last\n"
            "\\ No newline at end of file\n"
            "+new last\n"
            "\\ No newline at end of file"
        )
        line_map = build_line_map(patch)

        assert line_map.commentable_lines == {2}

    @pytest.mark.parametrize("separator", ["\x0c", "\u2028", "\r", "\x1c", "\x85"])
    def test_only_newline_separates_lines(self, separator):
        """Other line-break characters inside a line do not split it."""
        from interactive_reviewer.diff import build_line_map

        line_map = build_line_map(f"@@ -1,1 +1,3 @@\n a\n+x = 'p{separator}q'\n+y = 2")

        assert line_map.commentable_lines == {2, 3}
        assert line_map.added_content(2) == f"x = 'p{separator}q'"

    def test_crlf_patch_and_trailing_newline(self):
        """CRLF endings and a final newline do not add lines."""
        from interactive_reviewer.diff import build_line_map

        line_map = build_line_map("@@ -1,1 +1,2 @@\r\n a\r\n+b\r\n")

        assert line_map.commentable_lines == {2}
        assert set(line_map.context_lines) == {1}
        assert line_map.added_content(2) == "b"

    def test_malformed_header_gives_empty_map(self):
        """A broken hunk header makes the whole map empty instead of raising."""
        from interactive_reviewer.diff import build_line_map

        line_map = build_line_map("@@ -1,2 +1,3 @@\n a\n+b\n@@ garbage @@\n+c")

        assert line_map.is_empty
        assert line_map.hunks == []

    @pytest.mark.parametrize("patch", [None, ""])
    def test_missing_patch_gives_empty_map(self, patch):
        """Binary or oversized files come without a patch."""
        from interactive_reviewer.diff import build_line_map

        assert build_line_map(patch).is_empty

    def test_added_content(self, login_patch):
        """Added line text can be looked up by new line number."""
        from interactive_reviewer.diff import build_line_map

        line_map = build_line_map(login_patch)

        assert line_map.added_content(12) == "def get_user(username: str) -> dict:"
        assert line_map.added_content(9) is None


class TestResolve:
    """Tests for resolving a target line to a commentable line."""

    def test_commentable_line_resolves_to_itself(self, login_patch):
        """Every commentable line maps to itself."""
        from interactive_reviewer.diff import build_line_map, resolve

        line_map = build_line_map(login_patch)

        for line in line_map.commentable_lines:
            assert resolve(line_map, line) == line

    def test_nearest_line_within_radius(self):
        """A non-commentable target moves to the nearest commentable line."""
        from interactive_reviewer.diff import build_line_map, resolve

        line_map = build_line_map("@@ -1,2 +1,3 @@\n line1\n+line2\n line3")

        assert resolve(line_map, 5, radius=10) == 2
        assert resolve(line_map, 1) == 2

    def test_outside_radius_is_none(self):
        """Nothing within the radius means the comment cannot be placed."""
        from interactive_reviewer.diff import build_line_map, resolve

        line_map = build_line_map("@@ -1,2 +1,3 @@\n line1\n+line2\n line3")

        assert resolve(line_map, 5, radius=2) is None
        assert resolve(line_map, 13, radius=10) is None

    def test_result_stays_within_radius(self, two_hunk_patch):
        """A resolved line is never further than the radius from the target."""
        from interactive_reviewer.diff import build_line_map, resolve

        line_map = build_line_map(two_hunk_patch)

        for radius in (0, 1, 3, 10):
            for target in range(1, 40):
                resolved = resolve(line_map, target, radius=radius)
                if resolved is not None:
                    assert abs(resolved - target) <= radius
                    assert resolved in line_map.commentable_lines

    def test_tie_break(self):
        """Equal distances prefer the later line unless told otherwise."""
        from interactive_reviewer.diff import TieBreak, build_line_map, resolve

        line_map = build_line_map("@@ -1,3 +1,5 @@\n a\n+b\n c\n+d\n e")

        assert line_map.commentable_lines == {2, 4}
        assert resolve(line_map, 3) == 4
        assert resolve(line_map, 3, tie_break=TieBreak.BEFORE) == 2

    def test_is_commentable(self, login_patch):
        """Membership check against the commentable set."""
        from interactive_reviewer.diff import build_line_map, is_commentable

        line_map = build_line_map(login_patch)

        assert is_commentable(line_map, 14)
        assert not is_commentable(line_map, 10)

    def test_resolve_in_patch_empty(self):
        """An unusable patch never resolves."""
        from interactive_reviewer.diff import resolve_in_patch

        assert resolve_in_patch(None, 1) is None
        assert resolve_in_patch("@@ nonsense", 1) is None

    def test_resolve_in_patch(self, login_patch):
        """Resolution straight from patch text."""
        from interactive_reviewer.diff import resolve_in_patch

        assert resolve_in_patch(login_patch, 14) == 14
        assert resolve_in_patch(login_patch, 18) == 16
        assert resolve_in_patch(login_patch, 40) is None
