"""Review session and in-flight processing models."""

import time
from dataclasses import dataclass, field
from enum import Enum

from interactive_reviewer.models.analysis import AnalysisResult, MergeAssessment
from interactive_reviewer.models.findings import Finding


class ButtonState(Enum):
    """Lifecycle state of one check run action."""

    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


def dedup_key(owner: str, repo: str, pull_number: int) -> str:
    """Single-flight key for a pull request."""
    return f"{owner}/{repo}#{pull_number}"


@dataclass
class ReviewSession:
    """State for one check run's interactive lifecycle."""

    check_run_id: int
    owner: str
    repo: str
    pull_number: int
    head_sha: str
    tracking_id: str
    postable_findings: list[Finding]
    button_states: dict[str, ButtonState]
    analysis: AnalysisResult | None = None
    head_ref: str | None = None
    merge_assessment: MergeAssessment | None = None
    created_at: float = field(default_factory=time.time)

    @property
    def key(self) -> str:
        return dedup_key(self.owner, self.repo, self.pull_number)

    @property
    def repo_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def posted_count(self) -> int:
        return sum(1 for f in self.postable_findings if f.posted)

    @property
    def pending_count(self) -> int:
        return len(self.postable_findings) - self.posted_count

    def is_expired(self, ttl_seconds: float, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now - self.created_at > ttl_seconds


@dataclass
class ProcessingEntry:
    """One in-flight review, keyed by ``owner/repo#pull_number``."""

    key: str
    tracking_id: str
    start_time: float = field(default_factory=time.time)

    def is_stale(self, max_age_seconds: float, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now - self.start_time > max_age_seconds
