"""Tests for comment and check run formatting."""

from interactive_reviewer.models.findings import Category, Finding, FixSuggestion, Severity


class TestInlineComment:
    """Tests for format_inline_comment."""

    def test_basic_comment(self):
        """Severity, category and issue are shown."""
        from interactive_reviewer.github.formatter import format_inline_comment

        finding = Finding(
            file="app.py",
            line=3,
            issue="Possible None dereference",
            severity=Severity.MAJOR,
            category=Category.BUG,
            technical_debt_minutes=10,
        )

        body = format_inline_comment(finding)

        assert body.startswith("🟡 **AI Finding** (MAJOR 🐛 BUG)")
        assert "**Issue:** Possible None dereference" in body
        assert "10 minutes" in body
        assert "Suggested Fix" not in body
        assert "Reported on line" not in body

    def test_adjusted_line_and_fix(self):
        """Moved findings say where they came from; fixes are fenced."""
        from interactive_reviewer.github.formatter import format_inline_comment

        finding = Finding(file="app.py", line=18, issue="x", severity=Severity.CRITICAL)
        finding.move_to(16)
        fix = FixSuggestion(current_code="a", suggested_fix="b = 1\n", explanation="Simpler")

        body = format_inline_comment(finding, fix)

        assert "Reported on line 18" in body
        assert "```\nb = 1\n```" in body
        assert "**Explanation:** Simpler" in body


class TestCheckRunSummaries:
    """Tests for the check run summaries."""

    def test_analysis_summary(self, analysis):
        """Counts and the button hint are included."""
        from interactive_reviewer.github.formatter import format_analysis_summary

        summary = format_analysis_summary(analysis, 2)

        assert summary.startswith("Analysis completed successfully!")
        assert "**Issues Found:** 3" in summary
        assert "🔴 1 critical" in summary
        assert "2 findings can be posted" in summary
        assert "Fix the SQL injection" in summary

    def test_failed_analysis_summary(self):
        """A failed analysis has no success banner and nothing to post."""
        from interactive_reviewer.github.formatter import format_analysis_summary
        from interactive_reviewer.models.analysis import AnalysisResult

        summary = format_analysis_summary(AnalysisResult.failed_analysis("timeout"), 0)

        assert not summary.startswith("Analysis completed")
        assert "No issues found that can be posted" in summary

    def test_findings_text(self, findings):
        """Every finding is listed with its posted state."""
        from interactive_reviewer.github.formatter import format_findings_text

        findings[0].posted = True

        text = format_findings_text(findings)

        assert "`auth/login.py:14` ✅ posted" in text
        assert "`auth/login.py:40`\n" in text
        assert format_findings_text([]) is None

    def test_post_result(self):
        """Adjustments and errors are listed, errors capped at ten."""
        from interactive_reviewer.github.formatter import format_post_result
        from interactive_reviewer.orchestrator.poster import LineAdjustment, PostResult

        result = PostResult(
            success_count=2,
            errors=[f"a.py:{i} - failed" for i in range(12)],
            adjusted_lines=[LineAdjustment("a.py", 18, 16)],
        )

        summary = format_post_result(result)

        assert "**Comments posted:** 2" in summary
        assert "`a.py`: line 18 → 16" in summary
        assert "**Errors (12):**" in summary
        assert "a.py:9 - failed" in summary
        assert "a.py:10 - failed" not in summary
        assert "... and 2 more" in summary

    def test_commit_summary_and_details(self):
        """Commit outcomes are summarized and detailed per file."""
        from interactive_reviewer.fixes.committer import (
            CommitResults,
            CommittedFix,
            FailedFix,
            SkippedFix,
        )
        from interactive_reviewer.github.formatter import (
            format_commit_details,
            format_commit_summary,
        )

        finding = Finding(file="a.py", line=1, issue="x")
        results = CommitResults(
            successful=[CommittedFix("a.py", "feature/x", "c0ffee1234567", [finding], ["exact"])],
            failed=[FailedFix("b.py", "409 conflict")],
            skipped=[SkippedFix("c.py", 4, "AI returned no fix")],
        )

        summary = format_commit_summary(results)
        details = format_commit_details(results)

        assert "1 files committed successfully" in summary
        assert "1 files failed" in summary
        assert "`a.py` → `c0ffee1` (1 fixes, exact)" in details
        assert "**Error:** 409 conflict" in details
        assert "`c.py:4`: AI returned no fix" in details

    def test_all_skipped(self):
        """Only skipped fixes produce a hint and no details."""
        from interactive_reviewer.fixes.committer import CommitResults, SkippedFix
        from interactive_reviewer.github.formatter import (
            format_commit_details,
            format_commit_summary,
        )

        results = CommitResults(skipped=[SkippedFix("c.py", 4, "File not found")])

        assert "All fixes were skipped" in format_commit_summary(results)
        assert format_commit_details(results) is None

    def test_merge_assessment(self):
        """Merge readiness shows status, score and blockers."""
        from interactive_reviewer.github.formatter import format_merge_assessment
        from interactive_reviewer.models.analysis import MergeAssessment

        summary = format_merge_assessment(
            MergeAssessment(
                is_ready=False,
                status="NOT READY",
                score=40,
                blocking_issues=["SQL injection"],
                recommendation="Fix it",
            )
        )

        assert summary.startswith("❌ **Merge Ready:** No")
        assert "**Score:** 40/100" in summary
        assert "- SQL injection" in summary
