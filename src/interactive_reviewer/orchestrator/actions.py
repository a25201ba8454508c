"""Interactive check run actions and the sessions behind them."""

import asyncio
import logging
import re
import threading
import time
from dataclasses import dataclass
from enum import Enum

from interactive_reviewer.ai.client import AIClient
from interactive_reviewer.config import Config
from interactive_reviewer.errors import (
    CheckRunValidationError,
    CollaboratorError,
    InvalidTransitionError,
    SessionNotFoundError,
)
from interactive_reviewer.fixes.committer import FixCommitter
from interactive_reviewer.github import formatter
from interactive_reviewer.github.checks import MAX_ACTIONS, CheckRunAction, CheckRunOutput
from interactive_reviewer.github.client import GitHubClient
from interactive_reviewer.models.analysis import AnalysisResult
from interactive_reviewer.models.findings import Finding, FixSuggestion
from interactive_reviewer.models.session import ButtonState, ReviewSession
from interactive_reviewer.orchestrator.poster import CommentBatchPoster

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND_MESSAGE = "Check run data not found. Please re-run AI review."

# Valid transitions: from_state -> set of allowed to_states
TRANSITIONS: dict[ButtonState, set[ButtonState]] = {
    ButtonState.READY: {ButtonState.IN_PROGRESS},
    ButtonState.IN_PROGRESS: {ButtonState.COMPLETED, ButtonState.ERROR},
    ButtonState.ERROR: {ButtonState.IN_PROGRESS},
    ButtonState.COMPLETED: {ButtonState.READY},
}


class ActionKind(Enum):
    """Closed set of actions an operator can request."""

    POST_ALL = "post-all"
    POST_FINDING = "comment-finding"
    COMMIT_FIXES = "commit-fixes"
    CHECK_MERGE = "check-merge"
    UNKNOWN = "unknown"


# Actions that may run again after completing
REPEATABLE_ACTIONS = {ActionKind.CHECK_MERGE}

_FINDING_IDENTIFIER = re.compile(r"^comment-finding-(\d+)$")


@dataclass(frozen=True)
class Action:
    """An action identifier decoded once at the boundary."""

    kind: ActionKind
    finding_index: int | None = None
    raw: str = ""

    @classmethod
    def parse(cls, identifier: str) -> "Action":
        identifier = (identifier or "").strip()
        match = _FINDING_IDENTIFIER.match(identifier)
        if match:
            return cls(ActionKind.POST_FINDING, int(match.group(1)), identifier)
        for kind in (ActionKind.POST_ALL, ActionKind.COMMIT_FIXES, ActionKind.CHECK_MERGE):
            if identifier == kind.value:
                return cls(kind, raw=identifier)
        return cls(ActionKind.UNKNOWN, raw=identifier)

    @property
    def identifier(self) -> str:
        if self.kind is ActionKind.POST_FINDING:
            return f"comment-finding-{self.finding_index}"
        if self.kind is ActionKind.UNKNOWN:
            return self.raw
        return self.kind.value


class ActionOutcome(Enum):
    """Result of handling one action request."""

    COMPLETED = "completed"
    FAILED = "failed"
    SESSION_NOT_FOUND = "session_not_found"
    UNKNOWN_ACTION = "unknown_action"
    IGNORED = "ignored"
    SUPERSEDED = "superseded"


def transition(session: ReviewSession, action_id: str, to: ButtonState) -> None:
    """Move one action to a new state. Raises InvalidTransitionError if not allowed."""
    current = session.button_states.get(action_id, ButtonState.READY)
    if to not in TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(action_id, current.value, to.value)
    session.button_states[action_id] = to


def available_actions(session: ReviewSession) -> list[CheckRunAction]:
    """Buttons to offer, derived only from the session's button states."""
    actions = []
    if session.postable_findings:
        if session.button_states.get("post-all") is ButtonState.COMPLETED:
            actions.append(
                CheckRunAction("Commit Fixes", "Apply all fixes to branch", "commit-fixes")
            )
        else:
            actions.append(
                CheckRunAction(
                    "Post All Comments",
                    f"Post all {len(session.postable_findings)} findings",
                    "post-all",
                )
            )
    actions.append(
        CheckRunAction("Check Merge Ready", "Assess if PR is ready to merge", "check-merge")
    )
    return actions[:MAX_ACTIONS]


class SessionStore:
    """Review sessions keyed by check run id.

    Every read and write goes through a lock; the underlying dict is never
    handed out.
    """

    def __init__(self, ttl_seconds: float = 24 * 60 * 60) -> None:
        self.ttl_seconds = ttl_seconds
        self._sessions: dict[int, ReviewSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def put(self, session: ReviewSession) -> None:
        with self._lock:
            self._sessions[session.check_run_id] = session

    def get(self, check_run_id: int) -> ReviewSession | None:
        with self._lock:
            return self._sessions.get(check_run_id)

    def require(self, check_run_id: int) -> ReviewSession:
        """Get a session or raise SessionNotFoundError."""
        session = self.get(check_run_id)
        if session is None:
            raise SessionNotFoundError(check_run_id)
        return session

    def latest_for(self, key: str) -> ReviewSession | None:
        """Most recently created session for a dedup key."""
        with self._lock:
            matching = [s for s in self._sessions.values() if s.key == key]
        return max(matching, key=lambda s: s.created_at, default=None)

    def set_state(
        self,
        check_run_id: int,
        action_id: str,
        to: ButtonState,
        expected: ReviewSession | None = None,
    ) -> bool:
        """Transition an action of a stored session.

        Args:
            check_run_id: Check run the session belongs to
            action_id: Action identifier
            to: Target state
            expected: If given, the write only applies while this exact session is stored

        Returns:
            False if the session has been evicted or replaced, in which case nothing changes

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        with self._lock:
            session = self._sessions.get(check_run_id)
            if session is None:
                logger.debug(
                    f"Dropping {action_id} -> {to.value}, check run {check_run_id} evicted"
                )
                return False
            if expected is not None and session is not expected:
                logger.debug(
                    f"Dropping {action_id} -> {to.value}, "
                    f"check run {check_run_id} has a newer session"
                )
                return False
            transition(session, action_id, to)
            return True

    def remove(self, check_run_id: int) -> bool:
        with self._lock:
            return self._sessions.pop(check_run_id, None) is not None

    def evict_expired(self, now: float | None = None) -> int:
        """Remove sessions older than the TTL and return how many were removed."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [
                check_run_id
                for check_run_id, session in self._sessions.items()
                if session.is_expired(self.ttl_seconds, now)
            ]
            for check_run_id in expired:
                del self._sessions[check_run_id]
        if expired:
            logger.info(f"Cleaned {len(expired)} expired check run sessions")
        return len(expired)

    def snapshot(self) -> list[ReviewSession]:
        with self._lock:
            return list(self._sessions.values())

    def stats(self) -> dict[str, int]:
        sessions = self.snapshot()
        return {
            "active_check_runs": len(sessions),
            "total_findings": sum(len(s.postable_findings) for s in sessions),
            "posted_findings": sum(s.posted_count for s in sessions),
            "pending_findings": sum(s.pending_count for s in sessions),
        }


@dataclass
class ActionResult:
    """What a handler reports back for display on the check run."""

    title: str
    summary: str
    conclusion: str = "success"
    text: str | None = None


class ActionStateMachine:
    """Runs check run actions and keeps the check run display in sync.

    This is the single boundary where handler exceptions become user-visible
    failure text.
    """

    def __init__(
        self,
        github: GitHubClient,
        ai: AIClient,
        config: Config,
        store: SessionStore | None = None,
        poster: CommentBatchPoster | None = None,
        committer: FixCommitter | None = None,
    ) -> None:
        self.github = github
        self.ai = ai
        self.config = config
        self.store = store or SessionStore(config.dispatcher.session_ttl_seconds)
        self.poster = poster or CommentBatchPoster(
            github, config.placement, config.dispatcher.fallback_delay_seconds
        )
        self.committer = committer or FixCommitter(github, ai, config.fixes)

    def available_actions(self, session: ReviewSession) -> list[CheckRunAction]:
        return available_actions(session)

    async def create_session(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        head_sha: str,
        check_run_id: int,
        tracking_id: str,
        analysis: AnalysisResult,
        head_ref: str | None = None,
    ) -> ReviewSession:
        """Store a session for a finished analysis and show its actions.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_number: Pull request number
            head_sha: Commit that was analyzed
            check_run_id: Check run the actions are attached to
            tracking_id: Tracking id of the review
            analysis: The analysis result
            head_ref: Pull request head branch

        Returns:
            The stored session
        """
        session = ReviewSession(
            check_run_id=check_run_id,
            owner=owner,
            repo=repo,
            pull_number=pull_number,
            head_sha=head_sha,
            tracking_id=tracking_id,
            postable_findings=analysis.postable_findings,
            button_states={
                ActionKind.POST_ALL.value: ButtonState.READY,
                ActionKind.COMMIT_FIXES.value: ButtonState.READY,
                ActionKind.CHECK_MERGE.value: ButtonState.READY,
            },
            analysis=analysis,
            head_ref=head_ref,
        )
        self.store.put(session)

        await asyncio.to_thread(
            self.github.update_check_run,
            owner,
            repo,
            check_run_id,
            output=CheckRunOutput(
                title="AI Code Review Completed",
                summary=formatter.format_analysis_summary(
                    analysis, len(session.postable_findings)
                ),
                text=formatter.format_findings_text(analysis.detailed_findings),
            ),
            status="completed",
            conclusion=analysis.conclusion,
            actions=available_actions(session),
        )
        logger.info(
            f"Interactive check run {check_run_id} ready with "
            f"{len(session.postable_findings)} postable findings [{tracking_id}]"
        )
        return session

    async def handle_action(
        self,
        check_run_id: int,
        identifier: str,
        owner: str | None = None,
        repo: str | None = None,
    ) -> ActionOutcome:
        """Handle a requested action on a check run.

        Args:
            check_run_id: Check run the action was requested on
            identifier: Action identifier, e.g. ``post-all``
            owner: Repository owner, used to report a missing session
            repo: Repository name, used to report a missing session

        Returns:
            How the request was handled
        """
        action = Action.parse(identifier)
        session = self.store.get(check_run_id)
        if session is None:
            logger.warning(f"No session for check run {check_run_id} (action {identifier})")
            await self._report_session_not_found(owner, repo, check_run_id)
            return ActionOutcome.SESSION_NOT_FOUND

        if action.kind is ActionKind.UNKNOWN:
            logger.warning(f"Ignoring unknown action '{identifier}' on check run {check_run_id}")
            return ActionOutcome.UNKNOWN_ACTION

        action_id = action.identifier
        try:
            if (
                action.kind in REPEATABLE_ACTIONS
                and session.button_states.get(action_id) is ButtonState.COMPLETED
            ):
                self.store.set_state(check_run_id, action_id, ButtonState.READY, session)
            if not self.store.set_state(
                check_run_id, action_id, ButtonState.IN_PROGRESS, session
            ):
                await self._report_session_not_found(session.owner, session.repo, check_run_id)
                return ActionOutcome.SESSION_NOT_FOUND
        except InvalidTransitionError as e:
            logger.info(f"Ignoring {action_id} on check run {check_run_id}: {e}")
            return ActionOutcome.IGNORED

        logger.info(f"Running {action_id} on check run {check_run_id} [{session.tracking_id}]")
        await self._safe_update(
            session,
            output=CheckRunOutput(
                title="AI Code Review - Processing",
                summary=self._progress_message(session, action),
            ),
            status="in_progress",
        )

        try:
            result = await self._run(session, action)
        except Exception as e:
            logger.exception(f"Action {action_id} failed on check run {check_run_id}: {e}")
            if not self.store.set_state(check_run_id, action_id, ButtonState.ERROR, session):
                return self._superseded(action_id, check_run_id)
            await self._safe_update(
                session,
                output=CheckRunOutput(
                    title="AI Code Review - Action Failed",
                    summary=f"{self._failure_prefix(action)}: {e}",
                ),
                status="completed",
                conclusion="failure",
                actions=available_actions(session),
            )
            return ActionOutcome.FAILED

        if not self.store.set_state(check_run_id, action_id, ButtonState.COMPLETED, session):
            return self._superseded(action_id, check_run_id)
        await self._safe_update(
            session,
            output=CheckRunOutput(title=result.title, summary=result.summary, text=result.text),
            status="completed",
            conclusion=result.conclusion,
            actions=available_actions(session),
        )
        logger.info(f"Completed {action_id} on check run {check_run_id} [{session.tracking_id}]")
        return ActionOutcome.COMPLETED

    def _superseded(self, action_id: str, check_run_id: int) -> ActionOutcome:
        logger.info(
            f"Discarding result of {action_id} on check run {check_run_id}: "
            "session was evicted or replaced"
        )
        return ActionOutcome.SUPERSEDED

    async def _run(self, session: ReviewSession, action: Action) -> ActionResult:
        if action.kind is ActionKind.POST_ALL:
            return await self._post_findings(session, session.postable_findings)
        if action.kind is ActionKind.POST_FINDING:
            index = action.finding_index
            if index is None or not 0 <= index < len(session.postable_findings):
                raise ValueError(f"Finding {index} does not exist in this review")
            return await self._post_findings(session, [session.postable_findings[index]])
        if action.kind is ActionKind.COMMIT_FIXES:
            return await self._commit_fixes(session)
        if action.kind is ActionKind.CHECK_MERGE:
            return await self._check_merge(session)
        raise ValueError(f"Unsupported action {action.identifier}")

    async def _post_findings(self, session: ReviewSession, findings: list[Finding]) -> ActionResult:
        files = await asyncio.to_thread(
            self.github.get_pull_request_files, session.owner, session.repo, session.pull_number
        )
        patches = {file.filename: file.patch for file in files}

        async def build_body(finding: Finding) -> str:
            return formatter.format_inline_comment(
                finding, await self._fix_for_comment(session, finding)
            )

        result = await self.poster.post(
            session.owner,
            session.repo,
            session.pull_number,
            session.head_sha,
            findings,
            patches,
            build_body,
        )
        summary = formatter.format_post_result(result)
        if session.analysis is not None:
            summary += "\n" + formatter.format_analysis_summary(
                session.analysis, len(session.postable_findings)
            )
        return ActionResult(
            title="AI Code Review - Comments Posted",
            summary=summary,
            conclusion="success" if result.success_count else "neutral",
            text=formatter.format_findings_text(session.postable_findings),
        )

    async def _fix_for_comment(
        self, session: ReviewSession, finding: Finding
    ) -> FixSuggestion | None:
        """Fix suggestion to embed in a comment; collaborator failures just omit it."""
        if finding.fix_suggestion is not None:
            return finding.fix_suggestion
        try:
            file = await asyncio.to_thread(
                self.github.get_file_content,
                session.owner,
                session.repo,
                finding.file,
                session.head_sha,
            )
            if file is None:
                return None
            finding.fix_suggestion = await self.ai.generate_fix_suggestion(finding, file.content)
        except CollaboratorError as e:
            logger.warning(f"Posting {finding.location} without a fix suggestion: {e}")
            return None
        return finding.fix_suggestion

    async def _commit_fixes(self, session: ReviewSession) -> ActionResult:
        results = await self.committer.commit(session)
        return ActionResult(
            title="AI Code Review - Fix Commits Completed",
            summary=formatter.format_commit_summary(results)
            + "\n\n**Next Step:** Click 'Check Merge Ready' to verify merge readiness.",
            conclusion=results.conclusion,
            text=formatter.format_commit_details(results),
        )

    async def _check_merge(self, session: ReviewSession) -> ActionResult:
        context = await asyncio.to_thread(
            self.github.get_pull_request_context, session.owner, session.repo, session.pull_number
        )
        assessment = await self.ai.check_merge_readiness(session.analysis, context)
        session.merge_assessment = assessment
        return ActionResult(
            title="AI Code Review - Merge Readiness",
            summary=formatter.format_merge_assessment(assessment),
            conclusion=assessment.conclusion,
        )

    def _progress_message(self, session: ReviewSession, action: Action) -> str:
        if action.kind is ActionKind.POST_ALL:
            return f"Posting all {session.pending_count} findings as inline comments..."
        if action.kind is ActionKind.COMMIT_FIXES:
            return "Committing fix suggestions to branch..."
        if action.kind is ActionKind.CHECK_MERGE:
            return f"Checking merge readiness for PR #{session.pull_number}..."
        index = action.finding_index
        if index is not None and 0 <= index < len(session.postable_findings):
            return f"Posting comment for {session.postable_findings[index].location}..."
        return f"Posting comment for finding {index}..."

    def _failure_prefix(self, action: Action) -> str:
        return {
            ActionKind.POST_ALL: "Failed to post comments",
            ActionKind.POST_FINDING: "Failed to post comment",
            ActionKind.COMMIT_FIXES: "Failed to commit fixes",
            ActionKind.CHECK_MERGE: "Failed to check merge readiness",
        }.get(action.kind, "Action failed")

    async def _safe_update(self, session: ReviewSession, **kwargs) -> None:
        """Update the session's check run, logging instead of raising."""
        try:
            await asyncio.to_thread(
                self.github.update_check_run,
                session.owner,
                session.repo,
                session.check_run_id,
                **kwargs,
            )
        except (CollaboratorError, CheckRunValidationError) as e:
            logger.error(f"Error updating check run {session.check_run_id}: {e}")

    async def _report_session_not_found(
        self, owner: str | None, repo: str | None, check_run_id: int
    ) -> None:
        if not owner or not repo:
            return
        try:
            await asyncio.to_thread(
                self.github.update_check_run,
                owner,
                repo,
                check_run_id,
                output=CheckRunOutput(
                    title="AI Code Review - Session Expired",
                    summary=SESSION_NOT_FOUND_MESSAGE,
                ),
                status="completed",
                conclusion="failure",
            )
        except CollaboratorError as e:
            logger.error(f"Error updating check run {check_run_id}: {e}")
