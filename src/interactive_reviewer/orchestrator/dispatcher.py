"""Webhook event routing with per-PR single flight and admission control."""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any

from interactive_reviewer.config import Config
from interactive_reviewer.errors import CollaboratorError
from interactive_reviewer.models.session import ProcessingEntry, dedup_key
from interactive_reviewer.orchestrator.actions import (
    SESSION_NOT_FOUND_MESSAGE,
    ActionStateMachine,
)
from interactive_reviewer.orchestrator.pipeline import ReviewPipeline, ReviewRequest

logger = logging.getLogger(__name__)

REVIEW_COMMAND = "/ai-review"
COMMENT_COMMAND = "/ai-comment"


class DispatchOutcome(Enum):
    """What happened to an inbound event."""

    STARTED = "started"
    QUEUED = "queued"
    ALREADY_PROCESSING = "already_processing"
    ACTION_HANDLED = "action_handled"
    IGNORED = "ignored"
    INVALID = "invalid"
    ERROR = "error"


@dataclass
class DispatchResult:
    """Outcome of dispatching one event."""

    outcome: DispatchOutcome
    key: str | None = None
    tracking_id: str | None = None
    detail: str = ""


class ProcessingRegistry:
    """In-flight reviews keyed by ``owner/repo#pull_number``, plus the active count.

    Admission is a single check-and-record under the lock, so two requests
    for the same key can never both be admitted.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ProcessingEntry] = {}
        self._active = 0
        self._lock = threading.Lock()

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_processing(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def admit(self, key: str, tracking_id: str, ceiling: int) -> DispatchOutcome:
        """Record ``key`` as in flight if it is new and there is capacity."""
        with self._lock:
            if key in self._entries:
                return DispatchOutcome.ALREADY_PROCESSING
            if self._active >= ceiling:
                return DispatchOutcome.QUEUED
            self._entries[key] = ProcessingEntry(key=key, tracking_id=tracking_id)
            self._active += 1
            return DispatchOutcome.STARTED

    def release(self, key: str, tracking_id: str) -> None:
        """Finish a review. A newer entry for the same key is left alone."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.tracking_id == tracking_id:
                del self._entries[key]
            self._active = max(0, self._active - 1)

    def evict_stale(self, max_age_seconds: float, now: float | None = None) -> list[str]:
        """Drop entries older than ``max_age_seconds`` and return their keys.

        The active count is not touched; the running handler still decrements
        it when it finishes.
        """
        now = time.time() if now is None else now
        with self._lock:
            stale = [
                key
                for key, entry in self._entries.items()
                if entry.is_stale(max_age_seconds, now)
            ]
            for key in stale:
                entry = self._entries.pop(key)
                logger.info(f"Cleaned stale processing entry: {key} [{entry.tracking_id}]")
        return stale

    def snapshot(self) -> list[ProcessingEntry]:
        with self._lock:
            return list(self._entries.values())


class ReviewDispatcher:
    """Routes webhook events to reviews and check run actions."""

    def __init__(
        self,
        config: Config,
        pipeline: ReviewPipeline,
        actions: ActionStateMachine,
        registry: ProcessingRegistry | None = None,
    ) -> None:
        self.config = config
        self.pipeline = pipeline
        self.actions = actions
        self.registry = registry or ProcessingRegistry()
        self._pending: OrderedDict[str, ReviewRequest] = OrderedDict()
        self._pending_lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def max_concurrent_reviews(self) -> int:
        return self.config.dispatcher.max_concurrent_reviews

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    async def handle_event(self, event_type: str, payload: dict[str, Any]) -> DispatchResult:
        """Route one webhook event.

        Args:
            event_type: Value of the ``X-GitHub-Event`` header
            payload: Parsed webhook body

        Returns:
            What was done with the event
        """
        action = payload.get("action")
        repository = (payload.get("repository") or {}).get("full_name")
        logger.info(f"Processing webhook event: {event_type} ({action}) for {repository}")

        try:
            if event_type == "pull_request":
                return await self._handle_pull_request(payload)
            if event_type == "check_run":
                return await self._handle_check_run(payload)
            if event_type == "issue_comment":
                return await self._handle_issue_comment(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Invalid {event_type} payload: {e}")
            return DispatchResult(DispatchOutcome.INVALID, detail=str(e))
        except CollaboratorError as e:
            logger.error(f"Error handling {event_type} event: {e}")
            return DispatchResult(DispatchOutcome.ERROR, detail=str(e))

        if event_type == "ping":
            logger.info("Webhook ping received - GitHub App is connected")
            return DispatchResult(DispatchOutcome.IGNORED, detail="pong")

        logger.debug(f"Ignoring event type: {event_type}")
        return DispatchResult(DispatchOutcome.IGNORED, detail=f"unhandled event {event_type}")

    async def _handle_pull_request(self, payload: dict[str, Any]) -> DispatchResult:
        action = payload.get("action")
        if action not in self.config.review.trigger_actions:
            logger.debug(f"Ignoring PR action: {action}")
            return DispatchResult(DispatchOutcome.IGNORED, detail=f"action {action}")

        pr = payload["pull_request"]
        repo = payload["repository"]
        head_sha = pr["head"]["sha"]
        if not head_sha:
            raise ValueError("Invalid pull request payload: missing head.sha")

        targets = self.config.review.target_branches
        base_ref = (pr.get("base") or {}).get("ref")
        if targets and base_ref not in targets:
            logger.info(f"Ignoring PR #{pr['number']} targeting {base_ref}")
            return DispatchResult(DispatchOutcome.IGNORED, detail=f"base branch {base_ref}")

        return await self.dispatch_review(
            ReviewRequest(
                owner=repo["owner"]["login"],
                repo=repo["name"],
                pull_number=int(pr["number"]),
                head_sha=head_sha,
                trigger=f"pull_request.{action}",
            )
        )

    async def _handle_check_run(self, payload: dict[str, Any]) -> DispatchResult:
        action = payload.get("action")
        check_run = payload["check_run"]
        repo = payload["repository"]
        owner, name = repo["owner"]["login"], repo["name"]

        if action == "requested_action":
            identifier = payload["requested_action"]["identifier"]
            outcome = await self.actions.handle_action(
                int(check_run["id"]), identifier, owner=owner, repo=name
            )
            return DispatchResult(DispatchOutcome.ACTION_HANDLED, detail=outcome.value)

        if action == "rerequested":
            prs = check_run.get("pull_requests") or []
            if not prs:
                logger.warning(f"Check run {check_run['id']} rerequested without an associated PR")
                return DispatchResult(DispatchOutcome.IGNORED, detail="no pull request")
            request = ReviewRequest(
                owner=owner,
                repo=name,
                pull_number=int(prs[0]["number"]),
                head_sha=check_run.get("head_sha"),
                check_run_id=int(check_run["id"]),
                trigger="check_run.rerequested",
            )
            if check_run.get("external_id"):
                request.tracking_id = check_run["external_id"]
            return await self.dispatch_review(request)

        return DispatchResult(DispatchOutcome.IGNORED, detail=f"check_run {action}")

    async def _handle_issue_comment(self, payload: dict[str, Any]) -> DispatchResult:
        issue = payload["issue"]
        if payload.get("action") != "created" or not issue.get("pull_request"):
            return DispatchResult(DispatchOutcome.IGNORED, detail="not a new PR comment")

        body = (payload["comment"].get("body") or "").strip()
        repo = payload["repository"]
        owner, name = repo["owner"]["login"], repo["name"]
        pull_number = int(issue["number"])

        if body.startswith(REVIEW_COMMAND):
            logger.info(f"Manual review command received for PR #{pull_number}")
            return await self.dispatch_review(
                ReviewRequest(owner=owner, repo=name, pull_number=pull_number, trigger="command")
            )

        if body.startswith(COMMENT_COMMAND):
            parts = body.split()
            if len(parts) < 2:
                return DispatchResult(DispatchOutcome.INVALID, detail="missing action identifier")
            session = self.actions.store.latest_for(dedup_key(owner, name, pull_number))
            if session is None:
                logger.warning(f"{COMMENT_COMMAND} for PR #{pull_number} without a review session")
                return DispatchResult(DispatchOutcome.IGNORED, detail=SESSION_NOT_FOUND_MESSAGE)
            outcome = await self.actions.handle_action(
                session.check_run_id, parts[1], owner=owner, repo=name
            )
            return DispatchResult(DispatchOutcome.ACTION_HANDLED, detail=outcome.value)

        return DispatchResult(DispatchOutcome.IGNORED, detail="no command")

    async def dispatch_review(self, request: ReviewRequest) -> DispatchResult:
        """Run a review unless it is already in flight or capacity is exhausted.

        Admission happens before the first suspension point, so concurrent
        requests for one pull request cannot both start.
        """
        key = request.key
        outcome = self.registry.admit(key, request.tracking_id, self.max_concurrent_reviews)

        if outcome is DispatchOutcome.ALREADY_PROCESSING:
            logger.warning(f"{key} is already being processed, ignoring [{request.tracking_id}]")
            return DispatchResult(outcome, key, request.tracking_id, "Review already in progress")

        if outcome is DispatchOutcome.QUEUED:
            with self._pending_lock:
                self._pending[key] = request
            logger.info(
                f"Concurrency limit {self.max_concurrent_reviews} reached, "
                f"queued {key} [{request.tracking_id}]"
            )
            return DispatchResult(outcome, key, request.tracking_id, "Review queued")

        logger.info(f"Enqueued review for {key} [{request.tracking_id}]")
        try:
            await self.pipeline.run(request)
        finally:
            self.registry.release(key, request.tracking_id)
            logger.info(f"Dequeued review for {key} [{request.tracking_id}]")
            self._drain_pending()
        return DispatchResult(DispatchOutcome.STARTED, key, request.tracking_id)

    def _drain_pending(self) -> None:
        """Start queued reviews, one per free slot.

        Started tasks go through admission again, so a request that loses a
        race for a slot is simply queued again.
        """
        free = self.max_concurrent_reviews - self.registry.active_count
        with self._pending_lock:
            ready = [
                self._pending.popitem(last=False)[1]
                for _ in range(min(free, len(self._pending)))
            ]
        for request in ready:
            logger.info(f"Starting queued review for {request.key} [{request.tracking_id}]")
            task = asyncio.create_task(self.dispatch_review(request))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def sweep(self) -> dict[str, int]:
        """Evict stale in-flight entries and expired sessions."""
        stale = self.registry.evict_stale(self.config.dispatcher.stale_after_seconds)
        expired = self.actions.store.evict_expired()
        if stale:
            logger.info(f"Cleaned {len(stale)} stale processing entries")
        return {"stale_entries": len(stale), "expired_sessions": expired}

    def status(self) -> dict[str, Any]:
        now = time.time()
        return {
            "active_reviews": self.registry.active_count,
            "max_concurrent_reviews": self.max_concurrent_reviews,
            "pending_reviews": self.pending_count,
            "in_flight": [
                {
                    "key": entry.key,
                    "tracking_id": entry.tracking_id,
                    "age_seconds": round(now - entry.start_time, 1),
                }
                for entry in self.registry.snapshot()
            ],
        }

    async def shutdown(self, timeout_seconds: float | None = None) -> bool:
        """Wait for active reviews to finish.

        Returns:
            True if everything finished within the timeout
        """
        timeout = (
            self.config.dispatcher.shutdown_timeout_seconds
            if timeout_seconds is None
            else timeout_seconds
        )
        logger.info("Shutting down gracefully...")
        deadline = time.monotonic() + timeout
        while self.registry.active_count > 0 and time.monotonic() < deadline:
            logger.info(f"Waiting for {self.registry.active_count} active reviews to complete...")
            await asyncio.sleep(min(1.0, max(0.0, deadline - time.monotonic())))

        if self.registry.active_count > 0:
            logger.warning(
                f"Force shutdown with {self.registry.active_count} reviews still active. "
                "Some tasks may be incomplete."
            )
            return False
        logger.info("All active reviews completed.")
        return True
