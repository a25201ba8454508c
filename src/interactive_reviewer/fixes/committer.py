"""Commit applied fixes back to the pull request branch."""

import asyncio
import logging
from dataclasses import dataclass, field

from interactive_reviewer.ai.client import AIClient
from interactive_reviewer.config import FixSettings
from interactive_reviewer.errors import AIError, CollaboratorError
from interactive_reviewer.fixes.applicator import ApplicatorConfig, FixApplicator
from interactive_reviewer.github.client import GitHubClient
from interactive_reviewer.models.findings import Finding, FixSuggestion
from interactive_reviewer.models.session import ReviewSession

logger = logging.getLogger(__name__)


@dataclass
class CommittedFix:
    """One file committed with one or more applied fixes."""

    file: str
    branch: str
    commit_sha: str
    findings: list[Finding]
    strategies: list[str]


@dataclass
class FailedFix:
    """A file whose commit failed."""

    file: str
    error: str
    findings: list[Finding] = field(default_factory=list)


@dataclass
class SkippedFix:
    """A finding whose fix was not applied."""

    file: str
    line: int
    reason: str

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class CommitResults:
    """Outcome of one commit-fixes run."""

    successful: list[CommittedFix] = field(default_factory=list)
    failed: list[FailedFix] = field(default_factory=list)
    skipped: list[SkippedFix] = field(default_factory=list)

    @property
    def conclusion(self) -> str:
        if self.successful:
            return "success"
        if self.failed:
            return "failure"
        return "neutral"


class FixCommitter:
    """Generates, applies and commits fixes for a session's findings."""

    def __init__(
        self,
        github: GitHubClient,
        ai: AIClient,
        settings: FixSettings | None = None,
        applicator: FixApplicator | None = None,
    ) -> None:
        self.github = github
        self.ai = ai
        self.settings = settings or FixSettings()
        self.applicator = applicator or FixApplicator(
            ApplicatorConfig(
                heuristic_window=self.settings.heuristic_window,
                line_similarity_threshold=self.settings.line_similarity_threshold,
            )
        )

    async def commit(self, session: ReviewSession) -> CommitResults:
        """Apply and commit fixes for every valid finding of ``session``.

        One commit is made per changed file, using the blob SHA read before the
        fixes were applied.

        Args:
            session: The review session whose findings are fixed

        Returns:
            Successful, failed and skipped fixes

        Raises:
            ValueError: If the session has no finding with a file, line and issue
            CollaboratorError: If the pull request branch cannot be determined
        """
        valid = [f for f in session.postable_findings if f.file and f.line > 0 and f.issue]
        if not valid:
            raise ValueError("No valid fixes to commit")

        branch = session.head_ref
        if not branch:
            context = await asyncio.to_thread(
                self.github.get_pull_request_context,
                session.owner,
                session.repo,
                session.pull_number,
            )
            branch = context.head_branch
            session.head_ref = branch

        by_file: dict[str, list[Finding]] = {}
        for finding in valid:
            by_file.setdefault(finding.file, []).append(finding)

        logger.info(
            f"Committing fixes for {len(valid)} findings in {len(by_file)} files "
            f"to {branch} [{session.tracking_id}]"
        )

        results = CommitResults()
        for path, findings in by_file.items():
            await self._commit_file(session, branch, path, findings, results)

        logger.info(
            f"Commit run finished for PR #{session.pull_number}: "
            f"{len(results.successful)} committed, {len(results.failed)} failed, "
            f"{len(results.skipped)} skipped [{session.tracking_id}]"
        )
        return results

    async def _commit_file(
        self,
        session: ReviewSession,
        branch: str,
        path: str,
        findings: list[Finding],
        results: CommitResults,
    ) -> None:
        try:
            file = await asyncio.to_thread(
                self.github.get_file_content, session.owner, session.repo, path, branch
            )
        except CollaboratorError as e:
            results.failed.append(FailedFix(file=path, error=str(e), findings=findings))
            return

        if file is None:
            for finding in findings:
                results.skipped.append(
                    SkippedFix(path, finding.line, f"File not found on {branch}")
                )
            return

        if file.ref != branch:
            logger.info(
                f"{path} only exists on {file.ref}, not committing to {branch} "
                f"[{session.tracking_id}]"
            )
            reason = f"File not found on {branch} (only on {file.ref})"
            for finding in findings:
                results.skipped.append(SkippedFix(path, finding.line, reason))
            return

        content = file.content
        applied: list[Finding] = []
        strategies: list[str] = []
        # Bottom-up so earlier splices don't shift the lines of later findings
        for finding in sorted(findings, key=lambda f: f.line, reverse=True):
            suggestion = await self._suggestion_for(finding, content)
            if suggestion is None:
                results.skipped.append(
                    SkippedFix(path, finding.line, "Could not generate a fix suggestion")
                )
                continue

            result = self.applicator.apply(content, finding, suggestion)
            if result is None:
                results.skipped.append(
                    SkippedFix(path, finding.line, "No strategy could apply the fix")
                )
                continue

            content = result.content
            applied.append(finding)
            strategies.append(result.strategy)

        if not applied:
            return

        applied.reverse()
        strategies.reverse()
        message = self._commit_message(session, path, applied)
        try:
            commit_sha = await asyncio.to_thread(
                self.github.update_file,
                session.owner,
                session.repo,
                path,
                content,
                message,
                file.sha,
                branch,
            )
        except CollaboratorError as e:
            logger.warning(f"Commit of {path} failed: {e} [{session.tracking_id}]")
            results.failed.append(FailedFix(file=path, error=str(e), findings=applied))
            return

        results.successful.append(
            CommittedFix(
                file=path,
                branch=branch,
                commit_sha=commit_sha,
                findings=applied,
                strategies=strategies,
            )
        )

    async def _suggestion_for(self, finding: Finding, content: str) -> FixSuggestion | None:
        if finding.fix_suggestion is not None:
            return finding.fix_suggestion
        try:
            finding.fix_suggestion = await self.ai.generate_fix_suggestion(finding, content)
        except AIError as e:
            logger.warning(f"No fix suggestion for {finding.location}: {e}")
            return None
        return finding.fix_suggestion

    def _commit_message(self, session: ReviewSession, path: str, findings: list[Finding]) -> str:
        lines = [f"{self.settings.commit_message_prefix} in {path}", ""]
        for finding in findings:
            lines.append(f"- line {finding.line}: {finding.issue[:100]}")
        lines.extend(["", f"Tracking ID: {session.tracking_id}", f"PR: #{session.pull_number}"])
        return "\n".join(lines)
