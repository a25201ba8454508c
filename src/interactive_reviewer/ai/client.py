"""Client for an OpenAI-compatible chat completions API."""

import json
import logging
import re
from typing import Any

import httpx

from interactive_reviewer.ai.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    FIX_SYSTEM_PROMPT,
    MERGE_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_fix_prompt,
    build_merge_prompt,
)
from interactive_reviewer.config import AISettings
from interactive_reviewer.errors import AIError
from interactive_reviewer.models.analysis import (
    REVIEW_REQUIRED,
    AnalysisResult,
    CategoryBreakdown,
    MergeAssessment,
    SeverityBreakdown,
)
from interactive_reviewer.models.context import (
    ExistingComment,
    PullRequestContext,
    PullRequestFile,
)
from interactive_reviewer.models.findings import Category, Finding, FixSuggestion, Severity

logger = logging.getLogger(__name__)


class AIClient:
    """Sends review, fix and merge prompts to the AI provider."""

    def __init__(self, settings: AISettings) -> None:
        """Initialize the AI client.

        Args:
            settings: Provider endpoint, model and sampling settings
        """
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {settings.api_key}",
                "Content-Type": "application/json",
            },
            timeout=settings.timeout_seconds,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "AIClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one chat completion and return the message text.

        Raises:
            AIError: On transport errors, HTTP errors or an empty response
        """
        body = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }

        try:
            response = await self._client.post("/chat/completions", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise AIError(
                f"AI provider returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise AIError(f"AI provider request failed: {e}") from e
        except ValueError as e:
            raise AIError(f"AI provider returned invalid JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIError("AI provider response has no message content") from e

        if not content or not content.strip():
            raise AIError("AI provider returned an empty response")
        return content

    def _parse_json_response(self, content: str) -> dict[str, Any]:
        """Parse JSON from response, handling markdown code blocks."""
        content = content.strip()

        if "```json" in content:
            match = re.search(r"```json\s*([\s\S]*?)```", content)
            if match:
                content = match.group(1).strip()
        elif "```" in content:
            match = re.search(r"```\s*([\s\S]*?)```", content)
            if match:
                content = match.group(1).strip()

        json_match = re.search(r"\{[\s\S]*\}", content)
        if json_match:
            content = json_match.group(0)

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            logger.debug(f"Unparseable AI response: {content[:500]}")
            raise AIError(f"AI response is not valid JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise AIError("AI response is not a JSON object")
        return parsed

    async def analyze_pull_request(
        self,
        context: PullRequestContext,
        files: list[PullRequestFile],
        existing_comments: list[ExistingComment],
    ) -> AnalysisResult:
        """Analyze a pull request diff.

        Args:
            context: Pull request metadata
            files: Changed files with their patches
            existing_comments: Comments already on the pull request

        Returns:
            Structured analysis

        Raises:
            AIError: If the provider fails or the response cannot be parsed
        """
        logger.info(f"Starting AI analysis for {context.repo_name} PR #{context.pr_number}")
        prompt = build_analysis_prompt(context, files, existing_comments)
        content = await self._complete(ANALYSIS_SYSTEM_PROMPT, prompt)
        result = self._parse_analysis(self._parse_json_response(content))
        logger.info(
            f"AI analysis completed for PR #{context.pr_number}: {result.total_issues} issues"
        )
        return result

    def _parse_analysis(self, data: dict[str, Any]) -> AnalysisResult:
        automated = data.get("automatedAnalysis") or {}
        findings = [
            self._parse_finding(raw)
            for raw in data.get("detailedFindings") or []
            if isinstance(raw, dict)
        ]

        raw_breakdown = automated.get("severityBreakdown")
        if isinstance(raw_breakdown, dict):
            severity_breakdown = SeverityBreakdown(
                blocker=_as_int(raw_breakdown.get("blocker")),
                critical=_as_int(raw_breakdown.get("critical")),
                major=_as_int(raw_breakdown.get("major")),
                minor=_as_int(raw_breakdown.get("minor")),
                info=_as_int(raw_breakdown.get("info")),
            )
        else:
            severity_breakdown = SeverityBreakdown.from_findings(findings)

        raw_categories = automated.get("categories")
        if isinstance(raw_categories, dict):
            categories = CategoryBreakdown(
                bugs=_as_int(raw_categories.get("bugs")),
                vulnerabilities=_as_int(raw_categories.get("vulnerabilities")),
                security_hotspots=_as_int(raw_categories.get("securityHotspots")),
                code_smells=_as_int(raw_categories.get("codeSmells")),
            )
        else:
            categories = CategoryBreakdown.from_findings(findings)

        total = automated.get("totalIssues")
        total_issues = total if isinstance(total, int) else len(findings)
        debt = automated.get("technicalDebtMinutes")
        technical_debt = debt if isinstance(debt, int) else total_issues * 15

        return AnalysisResult(
            total_issues=total_issues,
            severity_breakdown=severity_breakdown,
            detailed_findings=findings,
            review_assessment=str(data.get("reviewAssessment") or REVIEW_REQUIRED),
            recommendation=str(data.get("recommendation") or ""),
            categories=categories,
            technical_debt_minutes=technical_debt,
        )

    def _parse_finding(self, raw: dict[str, Any]) -> Finding:
        return Finding(
            file=str(raw.get("file") or ""),
            line=_as_int(raw.get("line")),
            issue=str(raw.get("issue") or ""),
            severity=Severity.parse(raw.get("severity")),
            category=Category.parse(raw.get("category")),
            suggestion=str(raw.get("suggestion") or ""),
            technical_debt_minutes=_as_int(raw.get("technicalDebtMinutes")),
        )

    async def generate_fix_suggestion(self, finding: Finding, file_content: str) -> FixSuggestion:
        """Ask for a concrete code fix for one finding.

        Raises:
            AIError: If the provider fails or returns no usable fix
        """
        logger.debug(f"Requesting fix suggestion for {finding.location}")
        content = await self._complete(FIX_SYSTEM_PROMPT, build_fix_prompt(finding, file_content))
        data = self._parse_json_response(content)

        suggested_fix = data.get("suggested_fix") or data.get("suggestion")
        if not isinstance(suggested_fix, str) or not suggested_fix.strip():
            raise AIError(f"AI returned no fix for {finding.location}")

        return FixSuggestion(
            current_code=str(data.get("current_code") or ""),
            suggested_fix=suggested_fix,
            explanation=str(data.get("explanation") or ""),
        )

    async def check_merge_readiness(
        self, analysis: AnalysisResult | None, context: PullRequestContext
    ) -> MergeAssessment:
        """Judge whether a pull request is ready to merge.

        Raises:
            AIError: If the provider fails or the response cannot be parsed
        """
        logger.info(f"Checking merge readiness for {context.repo_name} PR #{context.pr_number}")
        content = await self._complete(MERGE_SYSTEM_PROMPT, build_merge_prompt(analysis, context))
        data = self._parse_json_response(content)

        score = data.get("score")
        blocking = data.get("blocking_issues") or []
        return MergeAssessment(
            is_ready=bool(data.get("is_ready")),
            status=str(data.get("status") or ""),
            recommendation=str(data.get("recommendation") or ""),
            score=score if isinstance(score, int) else None,
            blocking_issues=[str(issue) for issue in blocking if issue],
        )


def _as_int(value: Any) -> int:
    """Coerce loosely typed numbers from the AI response."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
