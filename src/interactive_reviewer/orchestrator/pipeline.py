"""One end-to-end review of a pull request."""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field

from interactive_reviewer.ai.client import AIClient
from interactive_reviewer.errors import AIError, CollaboratorError
from interactive_reviewer.github.checks import CheckRunOutput
from interactive_reviewer.github.client import GitHubClient
from interactive_reviewer.models.analysis import AnalysisResult
from interactive_reviewer.models.context import ExistingComment, PullRequestFile
from interactive_reviewer.models.session import ReviewSession, dedup_key
from interactive_reviewer.orchestrator.actions import ActionStateMachine

logger = logging.getLogger(__name__)


def new_tracking_id() -> str:
    """Tracking id correlating the log lines and check run of one review."""
    return f"ai-review-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


@dataclass
class ReviewRequest:
    """A request to review one pull request."""

    owner: str
    repo: str
    pull_number: int
    head_sha: str | None = None
    check_run_id: int | None = None  # set when re-running an existing check run
    trigger: str = "pull_request"
    tracking_id: str = field(default_factory=new_tracking_id)

    @property
    def key(self) -> str:
        return dedup_key(self.owner, self.repo, self.pull_number)


class ReviewPipeline:
    """Fetches the diff, runs the AI analysis and hands off to the action state machine."""

    def __init__(self, github: GitHubClient, ai: AIClient, actions: ActionStateMachine) -> None:
        self.github = github
        self.ai = ai
        self.actions = actions

    async def run(self, request: ReviewRequest) -> ReviewSession | None:
        """Review a pull request.

        Failures are reported on the check run rather than raised.

        Args:
            request: What to review

        Returns:
            The created session, or None if the review failed
        """
        owner, repo, number = request.owner, request.repo, request.pull_number
        tracking_id = request.tracking_id
        check_run_id = request.check_run_id
        logger.info(f"Starting AI review for {request.key} ({request.trigger}) [{tracking_id}]")

        try:
            context = await asyncio.to_thread(
                self.github.get_pull_request_context, owner, repo, number
            )
            head_sha = request.head_sha or context.head_sha

            if check_run_id is None:
                check_run_id = await asyncio.to_thread(
                    self.github.create_check_run,
                    owner,
                    repo,
                    head_sha,
                    CheckRunOutput("AI Code Review in Progress...", "AI review in progress..."),
                    status="in_progress",
                    external_id=tracking_id,
                )
            else:
                await asyncio.to_thread(
                    self.github.update_check_run,
                    owner,
                    repo,
                    check_run_id,
                    output=CheckRunOutput("AI Code Review in Progress...", "Re-running AI review."),
                    status="in_progress",
                )

            files = await asyncio.to_thread(
                self.github.get_pull_request_files, owner, repo, number
            )
            await self._load_contents(owner, repo, head_sha, files)
            logger.info(f"Prepared {len(files)} files for analysis [{tracking_id}]")

            comments = await self._existing_comments(owner, repo, number)

            try:
                analysis = await self.ai.analyze_pull_request(context, files, comments)
            except AIError as e:
                logger.error(f"AI analysis failed for {request.key}: {e} [{tracking_id}]")
                analysis = AnalysisResult.failed_analysis(str(e))

            return await self.actions.create_session(
                owner=owner,
                repo=repo,
                pull_number=number,
                head_sha=head_sha,
                check_run_id=check_run_id,
                tracking_id=tracking_id,
                analysis=analysis,
                head_ref=context.head_branch,
            )
        except Exception as e:
            logger.exception(f"Error during AI review of {request.key}: {e} [{tracking_id}]")
            if check_run_id is not None:
                await self._report_failure(owner, repo, check_run_id, e)
            return None

    async def _load_contents(
        self, owner: str, repo: str, head_sha: str, files: list[PullRequestFile]
    ) -> None:
        for file in files:
            try:
                content = await asyncio.to_thread(
                    self.github.get_file_content, owner, repo, file.filename, head_sha
                )
            except CollaboratorError as e:
                logger.warning(f"Could not get content for {file.filename}, skipping: {e}")
                continue
            file.content = content.content if content else None

    async def _existing_comments(
        self, owner: str, repo: str, number: int
    ) -> list[ExistingComment]:
        try:
            return await asyncio.to_thread(
                self.github.get_existing_comments, owner, repo, number
            )
        except CollaboratorError as e:
            logger.warning(f"Could not fetch existing comments for PR #{number}: {e}")
            return []

    async def _report_failure(
        self, owner: str, repo: str, check_run_id: int, error: Exception
    ) -> None:
        try:
            await asyncio.to_thread(
                self.github.update_check_run,
                owner,
                repo,
                check_run_id,
                output=CheckRunOutput(
                    "AI Code Review Failed",
                    f"An error occurred during the AI code review: {error}",
                ),
                status="completed",
                conclusion="failure",
            )
        except CollaboratorError as update_error:
            logger.error(f"Error updating check run {check_run_id}: {update_error}")
