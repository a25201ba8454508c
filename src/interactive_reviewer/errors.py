"""Exception hierarchy for Interactive Reviewer.

"Could not place a comment" and "could not apply a fix" are ordinary return
values (``None``) and have no exception here.
"""


class ReviewerError(Exception):
    """Base class for all reviewer errors."""

    pass


class CollaboratorError(ReviewerError):
    """A call to GitHub or the AI provider failed (network, auth, rate limit)."""

    pass


class GitHubAPIError(CollaboratorError):
    """The GitHub API rejected a request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FileConflictError(GitHubAPIError):
    """A file update used a stale blob SHA."""

    def __init__(self, path: str, branch: str) -> None:
        super().__init__(f"{path} changed on {branch} since it was read", status=409)
        self.path = path
        self.branch = branch


class AIError(CollaboratorError):
    """The AI provider failed or returned an unusable response."""

    pass


class CheckRunValidationError(ValueError):
    """Check run actions violate GitHub's limits."""

    pass


class BatchSubmissionError(ReviewerError):
    """A batched review and every individual fallback submission failed."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"All {len(errors)} comment submissions failed: {'; '.join(errors[:3])}")
        self.errors = errors


class SessionNotFoundError(ReviewerError):
    """An action arrived for a check run with no stored session."""

    def __init__(self, check_run_id: int) -> None:
        super().__init__(f"No session for check run {check_run_id}")
        self.check_run_id = check_run_id


class InvalidTransitionError(ReviewerError):
    """A button state change is not allowed by the transition table."""

    def __init__(self, action_id: str, from_state: str, to_state: str) -> None:
        self.action_id = action_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition for {action_id}: {from_state} -> {to_state}")
