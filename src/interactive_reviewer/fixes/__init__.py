"""Fix application and committing."""

from interactive_reviewer.fixes.applicator import (
    STRATEGIES,
    ApplicatorConfig,
    AppliedFix,
    FixApplicator,
)
from interactive_reviewer.fixes.committer import (
    CommitResults,
    CommittedFix,
    FailedFix,
    FixCommitter,
    SkippedFix,
)

__all__ = [
    "ApplicatorConfig",
    "AppliedFix",
    "CommitResults",
    "CommittedFix",
    "FailedFix",
    "FixApplicator",
    "FixCommitter",
    "STRATEGIES",
    "SkippedFix",
]
