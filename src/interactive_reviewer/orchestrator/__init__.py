"""Orchestrator components for Interactive Reviewer."""

from interactive_reviewer.orchestrator.actions import (
    Action,
    ActionKind,
    ActionOutcome,
    ActionStateMachine,
    SessionStore,
    available_actions,
)
from interactive_reviewer.orchestrator.dispatcher import (
    DispatchOutcome,
    DispatchResult,
    ProcessingRegistry,
    ReviewDispatcher,
)
from interactive_reviewer.orchestrator.pipeline import ReviewPipeline, ReviewRequest
from interactive_reviewer.orchestrator.poster import CommentBatchPoster, LineAdjustment, PostResult

__all__ = [
    "Action",
    "ActionKind",
    "ActionOutcome",
    "ActionStateMachine",
    "CommentBatchPoster",
    "DispatchOutcome",
    "DispatchResult",
    "LineAdjustment",
    "PostResult",
    "ProcessingRegistry",
    "ReviewDispatcher",
    "ReviewPipeline",
    "ReviewRequest",
    "SessionStore",
    "available_actions",
]
