"""Prompt templates for the AI provider."""

from interactive_reviewer.models.analysis import AnalysisResult
from interactive_reviewer.models.context import (
    ExistingComment,
    PullRequestContext,
    PullRequestFile,
)
from interactive_reviewer.models.findings import Finding

MAX_PATCH_CHARS = 8000
MAX_FILE_CHARS = 12000
MAX_CONTEXT_CHARS = 4000
MAX_COMMENTS = 20

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert code reviewer specializing in SonarQube standards. "
    "You MUST respond with valid JSON in the exact format specified. "
    "Do not include any text outside the JSON structure."
)

FIX_SYSTEM_PROMPT = (
    "You are an expert software developer. You propose minimal, correct code fixes "
    "and respond with a single JSON object only."
)

MERGE_SYSTEM_PROMPT = (
    "You are a senior engineer deciding whether a pull request is ready to merge. "
    "Respond with a single JSON object only."
)

ANALYSIS_RESPONSE_FORMAT = """{
  "automatedAnalysis": {
    "totalIssues": <number>,
    "severityBreakdown": {"blocker": 0, "critical": 0, "major": 0, "minor": 0, "info": 0},
    "categories": {"bugs": 0, "vulnerabilities": 0, "securityHotspots": 0, "codeSmells": 0},
    "technicalDebtMinutes": <number>
  },
  "reviewAssessment": "PROPERLY REVIEWED" | "NOT PROPERLY REVIEWED" | "REVIEW REQUIRED",
  "detailedFindings": [
    {
      "file": "<path as shown in the diff>",
      "line": <line number in the NEW version of the file>,
      "issue": "<what is wrong>",
      "severity": "BLOCKER" | "CRITICAL" | "MAJOR" | "MINOR" | "INFO",
      "category": "BUG" | "VULNERABILITY" | "SECURITY_HOTSPOT" | "CODE_SMELL",
      "suggestion": "<how to fix it>",
      "technicalDebtMinutes": <number>
    }
  ],
  "recommendation": "<overall recommendation>"
}"""


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "\n... [truncated for analysis]"


def _format_files(files: list[PullRequestFile]) -> str:
    sections = []
    for file in files:
        patch = _truncate(file.patch or "No patch available", MAX_PATCH_CHARS)
        section = (
            f"### {file.filename} ({file.status}, +{file.additions}/-{file.deletions})\n"
            f"```diff\n{patch}\n```"
        )
        if file.content:
            section += (
                f"\nFile content at head (for context):\n"
                f"```\n{_truncate(file.content, MAX_CONTEXT_CHARS)}\n```"
            )
        sections.append(section)
    return "\n\n".join(sections) if sections else "No files to review."


def _format_comments(comments: list[ExistingComment]) -> str:
    if not comments:
        return "No existing comments."
    lines = []
    for comment in comments[-MAX_COMMENTS:]:
        where = f" on {comment.path}:{comment.line}" if comment.path else ""
        body = comment.body.strip().replace("\n", " ")
        lines.append(f"- {comment.user}{where}: {body[:300]}")
    return "\n".join(lines)


def build_analysis_prompt(
    context: PullRequestContext,
    files: list[PullRequestFile],
    existing_comments: list[ExistingComment],
) -> str:
    """Build the user prompt for a full pull request analysis."""
    return f"""Review the following pull request using SonarQube severity and category standards.

{context.to_prompt_context()}

## Changed Files
{_format_files(files)}

## Existing Review Comments
{_format_comments(existing_comments)}

## Instructions
- Report only real, actionable issues introduced or touched by this change.
- Line numbers MUST refer to lines in the new version of the file, preferably added lines.
- Do not repeat issues already raised in the existing comments.
- Set reviewAssessment to "PROPERLY REVIEWED" only if human reviewers have already
  covered the significant issues.

Respond with ONLY valid JSON in this exact format:
{ANALYSIS_RESPONSE_FORMAT}
"""


def build_fix_prompt(finding: Finding, file_content: str) -> str:
    """Build the user prompt asking for a fix to one finding."""
    numbered = "\n".join(
        f"{i:5d}: {line}" for i, line in enumerate(file_content.split("\n"), start=1)
    )
    return f"""Provide a code fix for the issue below.

File: {finding.file}
Line: {finding.line}
Severity: {finding.severity.value}
Category: {finding.category.value}
Issue: {finding.issue}
Reviewer suggestion: {finding.suggestion or "None"}

File content (line numbers are for reference only and are not part of the code):
```
{_truncate(numbered, MAX_FILE_CHARS)}
```

Respond with ONLY a JSON object:
{{
  "current_code": "<exact code currently in the file that must change, without line numbers>",
  "suggested_fix": "<replacement code for current_code>",
  "explanation": "<one or two sentences>"
}}
"""


def build_merge_prompt(analysis: AnalysisResult | None, context: PullRequestContext) -> str:
    """Build the user prompt for a merge-readiness judgment."""
    if analysis is None:
        findings_text = "No prior analysis is available."
    else:
        b = analysis.severity_breakdown
        findings_text = (
            f"Total issues: {analysis.total_issues} "
            f"(blocker {b.blocker}, critical {b.critical}, major {b.major}, "
            f"minor {b.minor}, info {b.info})\n"
            f"Assessment: {analysis.review_assessment}\n"
        )
        for finding in analysis.detailed_findings[:MAX_COMMENTS]:
            state = "posted" if finding.posted else "not posted"
            findings_text += (
                f"- [{finding.severity.value}] {finding.location}: {finding.issue} ({state})\n"
            )

    return f"""Decide whether this pull request is ready to merge.

{context.to_prompt_context()}

## Previous AI Analysis
{findings_text}

Respond with ONLY a JSON object:
{{
  "is_ready": true | false,
  "status": "READY" | "NOT READY" | "NEEDS REVIEW",
  "score": <0-100>,
  "blocking_issues": ["<issue>", ...],
  "recommendation": "<short recommendation>"
}}
"""
