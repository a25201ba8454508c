"""GitHub webhook server for interactive PR reviews."""

import asyncio
import contextlib
import hashlib
import hmac
import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, HTTPException, Request

from interactive_reviewer import __version__
from interactive_reviewer.models.session import ReviewSession

if TYPE_CHECKING:
    from interactive_reviewer.orchestrator.dispatcher import ReviewDispatcher

logger = logging.getLogger(__name__)


def _session_summary(session: ReviewSession) -> dict[str, Any]:
    return {
        "check_run_id": session.check_run_id,
        "repository": session.repo_name,
        "pull_number": session.pull_number,
        "head_sha": session.head_sha,
        "tracking_id": session.tracking_id,
        "created_at": session.created_at,
        "findings": len(session.postable_findings),
        "posted": session.posted_count,
        "pending": session.pending_count,
        "button_states": {k: v.value for k, v in session.button_states.items()},
    }


def _session_detail(session: ReviewSession) -> dict[str, Any]:
    detail = _session_summary(session)
    detail["findings"] = [
        {
            "index": index,
            "file": f.file,
            "line": f.line,
            "original_line": f.original_line,
            "line_adjusted": f.line_adjusted,
            "severity": f.severity.value,
            "category": f.category.value,
            "issue": f.issue,
            "posted": f.posted,
        }
        for index, f in enumerate(session.postable_findings)
    ]
    if session.analysis is not None:
        detail["review_assessment"] = session.analysis.review_assessment
        detail["conclusion"] = session.analysis.conclusion
    if session.merge_assessment is not None:
        detail["merge_ready"] = session.merge_assessment.is_ready
    return detail


async def _sweep_periodically(dispatcher: "ReviewDispatcher", interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            dispatcher.sweep()
        except Exception as e:
            logger.exception(f"Periodic sweep failed: {e}")


def create_webhook_app(
    dispatcher: "ReviewDispatcher",
    webhook_secret: str | None = None,
    run_sweeper: bool = True,
) -> FastAPI:
    """Create the FastAPI webhook application.

    Args:
        dispatcher: Routes events to reviews and check run actions
        webhook_secret: GitHub webhook secret for signature verification.
                       Signatures are not checked when empty.
        run_sweeper: Whether to run the periodic stale-state sweep

    Returns:
        FastAPI application
    """
    background: set[asyncio.Task] = set()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = None
        if run_sweeper:
            interval = dispatcher.config.dispatcher.sweep_interval_seconds
            sweeper = asyncio.create_task(_sweep_periodically(dispatcher, interval))
        yield
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        await dispatcher.shutdown()

    app = FastAPI(
        title="Interactive Reviewer Webhook",
        description="Webhook server for interactive AI code reviews",
        version=__version__,
        lifespan=lifespan,
    )

    async def process_event(event_type: str, payload: dict[str, Any]) -> None:
        try:
            result = await dispatcher.handle_event(event_type, payload)
            logger.debug(f"Event {event_type} dispatched: {result.outcome.value} {result.detail}")
        except Exception as e:
            logger.exception(f"Error handling webhook event {event_type}: {e}")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "interactive-reviewer",
            "version": __version__,
            "check_runs": dispatcher.actions.store.stats(),
        }

    @app.post("/webhook")
    async def github_webhook(request: Request):
        """Handle GitHub webhook events."""
        body = await request.body()

        if webhook_secret:
            signature = request.headers.get("X-Hub-Signature-256", "")
            if not verify_signature(body, signature, webhook_secret):
                raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid JSON: expected an object")

        event_type = request.headers.get("X-GitHub-Event", "")
        delivery = request.headers.get("X-GitHub-Delivery", "")
        logger.debug(f"Received {event_type} delivery {delivery}")

        if event_type == "ping":
            logger.info("Received ping from GitHub")
            return {"status": "pong"}

        # Process async to respond quickly
        task = asyncio.create_task(process_event(event_type, payload))
        background.add(task)
        task.add_done_callback(background.discard)
        return {"status": "ok"}

    @app.get("/status")
    async def status():
        """Dispatcher status."""
        return dispatcher.status()

    @app.get("/api/check-runs")
    async def list_check_runs():
        """Active interactive check runs."""
        store = dispatcher.actions.store
        return {
            "stats": store.stats(),
            "check_runs": [_session_summary(s) for s in store.snapshot()],
        }

    @app.get("/api/check-runs/{check_run_id}")
    async def get_check_run(check_run_id: int):
        """One interactive check run with its findings."""
        session = dispatcher.actions.store.get(check_run_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Check run not found")
        return _session_detail(session)

    @app.post("/api/check-runs/cleanup")
    async def cleanup_check_runs():
        """Evict expired sessions and stale in-flight reviews."""
        return {"status": "ok", **dispatcher.sweep()}

    @app.get("/")
    async def root():
        """Root endpoint with service info."""
        return {
            "service": "Interactive Reviewer",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "webhook": "/webhook",
                "status": "/status",
                "check_runs": "/api/check-runs",
            },
        }

    return app


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify GitHub webhook signature.

    Args:
        payload: Raw request body
        signature: X-Hub-Signature-256 header value
        secret: Webhook secret

    Returns:
        True if signature is valid
    """
    if not signature.startswith("sha256="):
        return False

    expected = (
        "sha256="
        + hmac.new(
            secret.encode(),
            payload,
            hashlib.sha256,
        ).hexdigest()
    )

    return hmac.compare_digest(expected, signature)
