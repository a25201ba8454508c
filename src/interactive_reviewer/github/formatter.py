"""Markdown formatting for comments and check run output."""

from typing import TYPE_CHECKING

from interactive_reviewer.models.analysis import AnalysisResult, MergeAssessment
from interactive_reviewer.models.findings import Category, Finding, FixSuggestion, Severity

if TYPE_CHECKING:
    from interactive_reviewer.fixes.committer import CommitResults
    from interactive_reviewer.orchestrator.poster import PostResult

SEVERITY_EMOJI = {
    Severity.BLOCKER: "🚫",
    Severity.CRITICAL: "🔴",
    Severity.MAJOR: "🟡",
    Severity.MINOR: "🔵",
    Severity.INFO: "ℹ️",
}

CATEGORY_EMOJI = {
    Category.BUG: "🐛",
    Category.VULNERABILITY: "🔒",
    Category.SECURITY_HOTSPOT: "⚠️",
    Category.CODE_SMELL: "💨",
}

FOOTER = "---\n*🤖 Generated by Interactive Reviewer*"


def _shorten(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def format_inline_comment(finding: Finding, fix: FixSuggestion | None = None) -> str:
    """Body of one inline review comment."""
    emoji = SEVERITY_EMOJI.get(finding.severity, "ℹ️")
    category = CATEGORY_EMOJI.get(finding.category, "💨")

    body = (
        f"{emoji} **AI Finding** "
        f"({finding.severity.value} {category} {finding.category.value})\n\n"
    )
    body += f"**Issue:** {finding.issue}\n"
    body += f"**Technical Debt:** {finding.technical_debt_minutes} minutes\n"
    if finding.line_adjusted and finding.original_line is not None:
        body += (
            f"*Reported on line {finding.original_line}, "
            "moved to the nearest changed line.*\n"
        )
    if finding.suggestion:
        body += f"\n**Suggestion:**\n{finding.suggestion}\n"
    if fix is not None:
        body += f"\n**💡 Suggested Fix:**\n```\n{fix.suggested_fix.rstrip()}\n```\n"
        if fix.explanation:
            body += f"\n**Explanation:** {fix.explanation}\n"
    return body


def format_analysis_summary(analysis: AnalysisResult, postable_count: int) -> str:
    """Check run summary right after an analysis."""
    b = analysis.severity_breakdown
    summary = "Analysis completed successfully!\n\n" if not analysis.failed else ""
    summary += f"**Issues Found:** {analysis.total_issues}\n"
    summary += (
        f"**Severity:** 🚫 {b.blocker} blocker, 🔴 {b.critical} critical, "
        f"🟡 {b.major} major, 🔵 {b.minor} minor, ℹ️ {b.info} info\n"
    )
    summary += f"**Technical Debt:** {analysis.technical_debt_minutes} minutes\n"
    summary += f"**Assessment:** {analysis.review_assessment}\n\n"

    if postable_count > 0:
        summary += (
            f"**Interactive Comments Available:** {postable_count} findings can be posted "
            "as inline comments.\nUse the buttons above to post them, commit fixes, "
            "or check merge readiness.\n\n"
        )
    else:
        summary += "No issues found that can be posted as inline comments.\n\n"

    if analysis.recommendation:
        summary += f"**Recommendation:** {analysis.recommendation}\n"
    return summary


def format_findings_text(findings: list[Finding]) -> str | None:
    """Details text listing every finding, or None when there are none."""
    if not findings:
        return None
    lines = ["## Findings", ""]
    for index, finding in enumerate(findings, start=1):
        emoji = SEVERITY_EMOJI.get(finding.severity, "ℹ️")
        state = " ✅ posted" if finding.posted else ""
        lines.append(f"**{index}.** {emoji} `{finding.location}`{state}")
        lines.append(f"   {_shorten(finding.issue, 200)}")
    lines.extend(["", FOOTER])
    return "\n".join(lines)


def format_post_result(result: "PostResult") -> str:
    """Summary after posting comments."""
    summary = f"**Comments posted:** {result.success_count}\n"
    if result.adjusted_lines:
        summary += f"**Line adjustments:** {len(result.adjusted_lines)}\n"
        for adj in result.adjusted_lines:
            summary += f"- `{adj.file}`: line {adj.original_line} → {adj.adjusted_line}\n"
    if result.errors:
        summary += f"\n**Errors ({result.error_count}):**\n"
        for error in result.errors[:10]:
            summary += f"- {error}\n"
        if len(result.errors) > 10:
            summary += f"- ... and {len(result.errors) - 10} more\n"
    return summary


def format_commit_summary(results: "CommitResults") -> str:
    """Summary after committing fixes."""
    summary = "**Fix Commits Completed**\n\n"
    if results.successful:
        summary += f"✅ **{len(results.successful)} files committed successfully**\n"
    if results.failed:
        summary += f"❌ **{len(results.failed)} files failed**\n"
    if results.skipped:
        summary += f"⏭️ **{len(results.skipped)} fixes skipped**\n"
    if not results.successful and not results.failed and results.skipped:
        summary += (
            "\n*All fixes were skipped. This usually means the files couldn't be found "
            "or no fix could be applied.*"
        )
    return summary


def format_commit_details(results: "CommitResults") -> str | None:
    """Details text after committing fixes, or None when nothing was attempted."""
    if not results.successful and not results.failed:
        return None

    text = "## 🔧 Detailed Commit Results\n\n"
    if results.successful:
        text += f"### ✅ Successfully Committed ({len(results.successful)})\n\n"
        for index, committed in enumerate(results.successful, start=1):
            text += f"**{index}.** `{committed.file}` → `{committed.commit_sha[:7]}`"
            text += f" ({len(committed.findings)} fixes, {', '.join(committed.strategies)})\n"
            text += f"   └─ **Branch:** {committed.branch}\n\n"
    if results.failed:
        text += f"### ❌ Failed Commits ({len(results.failed)})\n\n"
        for index, failed in enumerate(results.failed, start=1):
            text += f"**{index}.** `{failed.file}`\n   └─ **Error:** {failed.error}\n\n"
    if results.skipped:
        text += f"### ⏭️ Skipped ({len(results.skipped)})\n\n"
        for index, skipped in enumerate(results.skipped, start=1):
            text += f"**{index}.** `{skipped.location}`: {skipped.reason}\n"
        text += "\n"
    return text + FOOTER


def format_merge_assessment(assessment: MergeAssessment) -> str:
    """Summary of a merge-readiness judgment."""
    icon = "✅" if assessment.is_ready else "❌"
    summary = f"{icon} **Merge Ready:** {'Yes' if assessment.is_ready else 'No'}\n"
    if assessment.status:
        summary += f"**Status:** {assessment.status}\n"
    if assessment.score is not None:
        summary += f"**Score:** {assessment.score}/100\n"
    if assessment.blocking_issues:
        summary += "\n**Blocking Issues:**\n"
        for issue in assessment.blocking_issues:
            summary += f"- {issue}\n"
    if assessment.recommendation:
        summary += f"\n**Recommendation:** {assessment.recommendation}\n"
    return summary
