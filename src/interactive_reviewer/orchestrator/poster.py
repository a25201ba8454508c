"""Batched posting of findings as inline review comments."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from interactive_reviewer.config import PlacementSettings
from interactive_reviewer.diff import TieBreak, resolve_in_patch
from interactive_reviewer.errors import BatchSubmissionError, CollaboratorError
from interactive_reviewer.github.client import GitHubClient, ReviewComment
from interactive_reviewer.models.findings import Finding

logger = logging.getLogger(__name__)

BodyBuilder = Callable[[Finding], Awaitable[str]]


@dataclass
class LineAdjustment:
    """A finding moved to the nearest commentable line."""

    file: str
    original_line: int
    adjusted_line: int


@dataclass
class PostResult:
    """Outcome of one posting run."""

    success_count: int = 0
    errors: list[str] = field(default_factory=list)
    adjusted_lines: list[LineAdjustment] = field(default_factory=list)
    submitted: int = 0

    @property
    def error_count(self) -> int:
        return len(self.errors)


class CommentBatchPoster:
    """Places findings on commentable diff lines and submits them as one review."""

    def __init__(
        self,
        github: GitHubClient,
        placement: PlacementSettings | None = None,
        fallback_delay_seconds: float = 0.5,
    ) -> None:
        self.github = github
        self.placement = placement or PlacementSettings()
        self.fallback_delay_seconds = fallback_delay_seconds

    @property
    def tie_break(self) -> TieBreak:
        return TieBreak.AFTER if self.placement.prefer_after else TieBreak.BEFORE

    async def post(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        head_sha: str,
        findings: list[Finding],
        patches: dict[str, str | None],
        build_body: BodyBuilder,
    ) -> PostResult:
        """Post every unposted finding as an inline comment.

        Findings are mutated in place: ``posted`` is set for submitted comments
        and ``line``/``original_line``/``line_adjusted`` when a finding is moved.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_number: Pull request number
            head_sha: Commit the comments are attached to
            findings: Findings in report order
            patches: Unified-diff patch per file path
            build_body: Async callable producing the comment body for a finding

        Returns:
            Counts, errors and line adjustments

        Raises:
            BatchSubmissionError: If the batch and every individual retry failed
        """
        result = PostResult()
        pending: list[tuple[Finding, ReviewComment]] = []

        for finding in findings:
            if finding.posted:
                result.success_count += 1
                continue

            resolved = resolve_in_patch(
                patches.get(finding.file),
                finding.line,
                radius=self.placement.search_radius,
                tie_break=self.tie_break,
            )
            if resolved is None:
                result.errors.append(
                    f"{finding.location} - line is not part of the PR changes "
                    "or cannot receive comments"
                )
                continue

            if resolved != finding.line:
                result.adjusted_lines.append(
                    LineAdjustment(finding.file, finding.line, resolved)
                )
                logger.info(f"Adjusted {finding.location} to line {resolved}")
                finding.move_to(resolved)

            try:
                body = await build_body(finding)
            except Exception as e:
                logger.warning(f"Could not build comment for {finding.location}: {e}")
                result.errors.append(f"{finding.location} - {e}")
                continue

            pending.append((finding, ReviewComment(finding.file, finding.line, body)))

        if pending:
            await self._submit(owner, repo, pull_number, head_sha, pending, result)

        logger.info(
            f"Posting finished for PR #{pull_number}: {result.success_count} posted, "
            f"{result.error_count} errors, {len(result.adjusted_lines)} adjusted"
        )
        return result

    async def _submit(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        head_sha: str,
        pending: list[tuple[Finding, ReviewComment]],
        result: PostResult,
    ) -> None:
        comments = [comment for _, comment in pending]
        try:
            await asyncio.to_thread(
                self.github.submit_review, owner, repo, pull_number, head_sha, comments
            )
        except CollaboratorError as e:
            logger.warning(f"Batch review submission failed, posting individually: {e}")
        else:
            for finding, _ in pending:
                finding.posted = True
            result.success_count += len(pending)
            result.submitted += len(pending)
            return

        fallback_errors = []
        for index, (finding, comment) in enumerate(pending):
            if index > 0:
                await asyncio.sleep(self.fallback_delay_seconds)
            try:
                await asyncio.to_thread(
                    self.github.submit_review, owner, repo, pull_number, head_sha, [comment]
                )
            except CollaboratorError as e:
                fallback_errors.append(f"{comment.path}:{comment.line} - Fallback failed: {e}")
                continue
            finding.posted = True
            result.success_count += 1
            result.submitted += 1

        result.errors.extend(fallback_errors)
        if len(fallback_errors) == len(pending):
            raise BatchSubmissionError(fallback_errors)
