"""Data models for Interactive Reviewer."""

from interactive_reviewer.models.analysis import (
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
from interactive_reviewer.models.session import (
    ButtonState,
    ProcessingEntry,
    ReviewSession,
    dedup_key,
)

__all__ = [
    "AnalysisResult",
    "ButtonState",
    "Category",
    "CategoryBreakdown",
    "ExistingComment",
    "Finding",
    "FixSuggestion",
    "MergeAssessment",
    "ProcessingEntry",
    "PullRequestContext",
    "PullRequestFile",
    "ReviewSession",
    "Severity",
    "SeverityBreakdown",
    "dedup_key",
]
