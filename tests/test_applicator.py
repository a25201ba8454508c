"""Tests for the fix application strategies."""

import pytest

from interactive_reviewer.models.findings import Finding, FixSuggestion


def _finding(line: int, issue: str = "Use const", file: str = "a.js") -> Finding:
    return Finding(file=file, line=line, issue=issue)


class TestFixApplicator:
    """Tests for the strategy cascade."""

    def test_exact_match_keeps_indentation(self):
        """The verbatim occurrence is replaced in place."""
        from interactive_reviewer.fixes import FixApplicator

        content = "function f() {\n  var x = 1;\n  return x;\n}\n"
        suggestion = FixSuggestion(current_code="var x = 1;", suggested_fix="const x = 1;")

        applied = FixApplicator().apply(content, _finding(2), suggestion)

        assert applied is not None
        assert applied.strategy == "exact"
        assert "  const x = 1;\n" in applied.content
        assert "var x" not in applied.content

    def test_exact_replaces_first_occurrence_only(self):
        """Later duplicates are left alone."""
        from interactive_reviewer.fixes import FixApplicator

        content = "a = 1\nb = a\na = 1\n"
        suggestion = FixSuggestion(current_code="a = 1", suggested_fix="a = 2")

        applied = FixApplicator().apply(content, _finding(1, file="x.py"), suggestion)

        assert applied.content == "a = 2\nb = a\na = 1\n"

    def test_block_match_ignores_indentation(self):
        """A multi-line block indented differently is matched and re-indented."""
        from interactive_reviewer.fixes import FixApplicator

        content = "def f(items):\n    for i in items:\n        print(i)\n    return None\n"
        suggestion = FixSuggestion(
            current_code="for i in items:\n    print(i)",
            suggested_fix="for item in items:\n    log(item)",
        )

        applied = FixApplicator().apply(content, _finding(2, file="f.py"), suggestion)

        assert applied.strategy == "block"
        assert applied.content == (
            "def f(items):\n    for item in items:\n        log(item)\n    return None\n"
        )

    def test_line_index_when_line_resembles_current_code(self):
        """The finding's line is replaced when it looks like the current code."""
        from interactive_reviewer.fixes import FixApplicator

        content = "x = 1\n    total = price*qty\ny = 2\n"
        suggestion = FixSuggestion(
            current_code="total = price * qty", suggested_fix="total = price * quantity"
        )

        applied = FixApplicator().apply(content, _finding(2, file="c.py"), suggestion)

        assert applied.strategy == "line_index"
        assert applied.content == "x = 1\n    total = price * quantity\ny = 2\n"

    def test_line_index_without_current_code(self):
        """No current code means the finding's line is trusted."""
        from interactive_reviewer.fixes import FixApplicator

        content = "a\nb\nc"
        suggestion = FixSuggestion(current_code="", suggested_fix="B")

        applied = FixApplicator().apply(content, _finding(2, file="t.py"), suggestion)

        assert applied.strategy == "line_index"
        assert applied.content == "a\nB\nc"

    def test_heuristic_sql_pattern_near_line(self):
        """A SQL-building line near the finding is replaced."""
        from interactive_reviewer.fixes import FixApplicator

        content = (
            "function find(id) {\n"
            "  log(id);\n"
            '  const q = "SELECT * FROM users WHERE id = " + id;\n'
            "  return db.query(q);\n"
            "}\n"
        )
        suggestion = FixSuggestion(
            current_code="query = build(id)",
            suggested_fix='const q = "SELECT * FROM users WHERE id = ?";',
        )
        finding = _finding(2, issue="Possible SQL injection")

        applied = FixApplicator().apply(content, finding, suggestion)

        assert applied.strategy == "heuristic"
        assert '  const q = "SELECT * FROM users WHERE id = ?";\n' in applied.content
        assert "+ id" not in applied.content

    def test_annotated_fallback(self):
        """When nothing matches, the fix is inserted as comments after the line."""
        from interactive_reviewer.fixes import FixApplicator

        content = "def f():\n    return compute()\n"
        suggestion = FixSuggestion(
            current_code="something else entirely", suggested_fix="return cached()"
        )
        finding = _finding(2, issue="Expensive call", file="app.py")

        applied = FixApplicator().apply(content, finding, suggestion)

        assert applied.strategy == "annotated"
        assert applied.content == (
            "def f():\n"
            "    return compute()\n"
            "    # AI-suggested fix for: Expensive call\n"
            "    # return cached()\n"
        )

    def test_none_when_no_strategy_applies(self):
        """A line outside the file defeats every strategy."""
        from interactive_reviewer.fixes import FixApplicator

        content = "a\nb\n"
        suggestion = FixSuggestion(current_code="zzz", suggested_fix="yyy")

        assert FixApplicator().apply(content, _finding(50, issue="x"), suggestion) is None

    def test_empty_fix_is_not_applied(self):
        """An empty suggestion is a failure, not a deletion."""
        from interactive_reviewer.fixes import FixApplicator

        suggestion = FixSuggestion(current_code="a", suggested_fix="   ")

        assert FixApplicator().apply("a\nb\n", _finding(1), suggestion) is None

    def test_unchanged_result_is_failure(self):
        """A strategy that produces identical content does not count."""
        from interactive_reviewer.fixes import FixApplicator

        content = "keep = 1\n"
        suggestion = FixSuggestion(current_code="keep = 1", suggested_fix="keep = 1")
        strategies = (("exact", FixApplicator().strategies[0][1]),)

        applied = FixApplicator(strategies=strategies).apply(
            content, _finding(1, file="k.py"), suggestion
        )

        assert applied is None

    def test_failure_leaves_input_untouched(self):
        """Content passed in is never modified when applying fails."""
        from interactive_reviewer.fixes import FixApplicator

        content = "line one\nline two\n"
        original = str(content)
        suggestion = FixSuggestion(current_code="missing", suggested_fix="new")

        result = FixApplicator().apply(content, _finding(99), suggestion)

        assert result is None
        assert content == original


class TestCommentPrefix:
    """Tests for picking a comment token per file type."""

    @pytest.mark.parametrize(
        "path,prefix",
        [
            ("app.py", "#"),
            ("deploy.yaml", "#"),
            ("schema.sql", "--"),
            ("index.ts", "//"),
            ("Main.java", "//"),
            ("Makefile", "//"),
        ],
    )
    def test_prefix(self, path, prefix):
        """Comment prefix follows the extension."""
        from interactive_reviewer.fixes.applicator import comment_prefix

        assert comment_prefix(path) == prefix
