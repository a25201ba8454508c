"""GitHub API client for PR operations."""

import contextlib
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from fnmatch import fnmatch
from typing import Any

import requests
from github import Github
from github.GithubException import GithubException
from github.PullRequest import PullRequest
from github.Repository import Repository

from interactive_reviewer.config import ReviewSettings
from interactive_reviewer.errors import FileConflictError, GitHubAPIError
from interactive_reviewer.github.auth import GitHubAppAuth
from interactive_reviewer.github.checks import (
    CHECK_RUN_NAME,
    CheckRunAction,
    CheckRunOutput,
    validate_actions,
)
from interactive_reviewer.models.context import (
    ExistingComment,
    PullRequestContext,
    PullRequestFile,
)

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = {"added", "modified"}


@dataclass
class ReviewComment:
    """One inline comment of a batched review."""

    path: str
    line: int
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "line": self.line, "side": "RIGHT", "body": self.body}


@dataclass
class FileContent:
    """A file's decoded content and blob SHA at some ref."""

    path: str
    content: str
    sha: str
    ref: str


def _error_message(e: GithubException) -> str:
    if isinstance(e.data, dict) and e.data.get("message"):
        return str(e.data["message"])
    return str(e)


@contextlib.contextmanager
def _github_errors(action: str) -> Iterator[None]:
    """Translate PyGithub and transport exceptions into GitHubAPIError."""
    try:
        yield
    except GithubException as e:
        raise GitHubAPIError(f"{action} failed: {_error_message(e)}", status=e.status) from e
    except requests.RequestException as e:
        raise GitHubAPIError(f"{action} failed: {e}") from e


class GitHubClient:
    """Client for GitHub API operations.

    All methods block; async callers run them with ``asyncio.to_thread``.
    """

    def __init__(
        self,
        token: str = "",
        base_url: str | None = None,
        app_auth: GitHubAppAuth | None = None,
        review: ReviewSettings | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token (unused when ``app_auth`` is given)
            base_url: Optional base URL for GitHub Enterprise
            app_auth: GitHub App authentication issuing installation tokens
            review: File filtering and branch fallback settings
        """
        if not token and app_auth is None:
            raise ValueError("GitHubClient needs a token or GitHub App authentication")
        self._base_url = base_url
        self._app_auth = app_auth
        self.review = review or ReviewSettings()
        self._gh = self._make_github(token) if token and app_auth is None else None
        self._app_clients: dict[str, tuple[str, Github]] = {}
        self._lock = threading.Lock()

    def _make_github(self, token: str) -> Github:
        if self._base_url:
            return Github(token, base_url=self._base_url)
        return Github(token)

    def _github(self, owner: str) -> Github:
        if self._app_auth is None:
            return self._gh
        token = self._app_auth.token_for(owner)
        with self._lock:
            cached = self._app_clients.get(owner)
            if cached is None or cached[0] != token:
                cached = (token, self._make_github(token))
                self._app_clients[owner] = cached
            return cached[1]

    def get_repo(self, owner: str, repo: str) -> Repository:
        """Get a repository by owner and name."""
        with _github_errors(f"Fetching repository {owner}/{repo}"):
            return self._github(owner).get_repo(f"{owner}/{repo}")

    def get_pull_request(self, owner: str, repo: str, pull_number: int) -> PullRequest:
        """Get a pull request."""
        repository = self.get_repo(owner, repo)
        with _github_errors(f"Fetching PR #{pull_number}"):
            return repository.get_pull(pull_number)

    def get_pull_request_context(
        self, owner: str, repo: str, pull_number: int
    ) -> PullRequestContext:
        """Build the review context for a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_number: Pull request number

        Returns:
            PullRequestContext with title, branches, author and reviewers
        """
        pr = self.get_pull_request(owner, repo, pull_number)
        reviewers: list[str] = []
        try:
            for review in pr.get_reviews():
                if review.user is not None and review.user.login not in reviewers:
                    reviewers.append(review.user.login)
        except GithubException as e:
            logger.warning(f"Could not fetch reviewers for PR #{pull_number}: {e}")

        return PullRequestContext(
            owner=owner,
            repo=repo,
            pr_number=pr.number,
            pr_title=pr.title,
            pr_description=pr.body or "",
            base_branch=pr.base.ref,
            head_branch=pr.head.ref,
            head_sha=pr.head.sha,
            author=pr.user.login if pr.user else "unknown",
            additions=pr.additions,
            deletions=pr.deletions,
            url=pr.html_url,
            reviewers=reviewers,
        )

    def get_pull_request_files(
        self, owner: str, repo: str, pull_number: int
    ) -> list[PullRequestFile]:
        """Get the reviewable changed files with their patches.

        Only added or modified files are returned, minus excluded patterns and
        oversized changes, capped at ``review.max_files``.
        """
        pr = self.get_pull_request(owner, repo, pull_number)
        with _github_errors(f"Listing files of PR #{pull_number}"):
            files = [
                PullRequestFile(
                    filename=f.filename,
                    status=f.status,
                    patch=f.patch,
                    additions=f.additions,
                    deletions=f.deletions,
                    changes=f.changes,
                )
                for f in pr.get_files()
            ]
        return self.filter_files(files)

    def filter_files(self, files: list[PullRequestFile]) -> list[PullRequestFile]:
        """Apply exclusion patterns, size limit, status filter and file cap."""
        kept = []
        for file in files:
            if file.status not in REVIEWABLE_STATUSES:
                continue
            if file.changes > self.review.max_file_changes:
                logger.debug(f"Skipping {file.filename}: {file.changes} changes")
                continue
            basename = file.filename.rsplit("/", 1)[-1]
            if any(
                fnmatch(file.filename, pattern) or fnmatch(basename, pattern)
                for pattern in self.review.exclude_patterns
            ):
                logger.debug(f"Skipping excluded file {file.filename}")
                continue
            kept.append(file)
        return kept[: self.review.max_files]

    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> FileContent | None:
        """Read a file at ``ref``, falling back across the configured branches.

        Returns:
            The decoded content and blob SHA, or None if the file is found nowhere
        """
        repository = self.get_repo(owner, repo)
        refs = [ref] + [b for b in self.review.fallback_branches if b != ref]
        for candidate in refs:
            try:
                content = repository.get_contents(path, ref=candidate)
            except GithubException as e:
                if e.status == 404:
                    logger.debug(f"{path} not found on {candidate}")
                    continue
                raise GitHubAPIError(
                    f"Reading {path}@{candidate} failed: {_error_message(e)}", status=e.status
                ) from e
            if isinstance(content, list):
                logger.warning(f"{path} is a directory, not a file")
                return None
            if candidate != ref:
                logger.info(f"Read {path} from fallback branch {candidate}")
            return FileContent(
                path=path,
                content=content.decoded_content.decode("utf-8"),
                sha=content.sha,
                ref=candidate,
            )
        return None

    def get_existing_comments(
        self, owner: str, repo: str, pull_number: int
    ) -> list[ExistingComment]:
        """Get review and issue comments, oldest first."""
        pr = self.get_pull_request(owner, repo, pull_number)
        comments: list[ExistingComment] = []
        with _github_errors(f"Fetching comments of PR #{pull_number}"):
            for comment in pr.get_review_comments():
                comments.append(
                    ExistingComment(
                        id=comment.id,
                        body=comment.body,
                        user=comment.user.login if comment.user else "unknown",
                        created_at=comment.created_at.isoformat(),
                        kind="review",
                        path=comment.path,
                        line=comment.line,
                    )
                )
            for comment in pr.get_issue_comments():
                comments.append(
                    ExistingComment(
                        id=comment.id,
                        body=comment.body,
                        user=comment.user.login if comment.user else "unknown",
                        created_at=comment.created_at.isoformat(),
                        kind="issue",
                    )
                )
        return sorted(comments, key=lambda c: c.created_at)

    def create_check_run(
        self,
        owner: str,
        repo: str,
        head_sha: str,
        output: CheckRunOutput,
        status: str = "in_progress",
        conclusion: str | None = None,
        actions: list[CheckRunAction] | None = None,
        external_id: str | None = None,
    ) -> int:
        """Create a check run and return its id.

        Raises:
            CheckRunValidationError: If the actions violate GitHub's limits
            GitHubAPIError: If the request fails
        """
        kwargs: dict[str, Any] = {
            "name": CHECK_RUN_NAME,
            "head_sha": head_sha,
            "status": status,
            "output": output.to_dict(),
        }
        if conclusion:
            kwargs["conclusion"] = conclusion
        if actions is not None:
            kwargs["actions"] = validate_actions(actions)
        if external_id:
            kwargs["external_id"] = external_id

        repository = self.get_repo(owner, repo)
        with _github_errors("Creating check run"):
            check_run = repository.create_check_run(**kwargs)
        logger.info(f"Created check run {check_run.id} on {owner}/{repo}@{head_sha[:7]}")
        return check_run.id

    def update_check_run(
        self,
        owner: str,
        repo: str,
        check_run_id: int,
        output: CheckRunOutput | None = None,
        status: str | None = None,
        conclusion: str | None = None,
        actions: list[CheckRunAction] | None = None,
    ) -> None:
        """Update an existing check run.

        Raises:
            CheckRunValidationError: If the actions violate GitHub's limits
            GitHubAPIError: If the request fails
        """
        kwargs: dict[str, Any] = {}
        if output is not None:
            kwargs["output"] = output.to_dict()
        if status:
            kwargs["status"] = status
        if conclusion:
            kwargs["conclusion"] = conclusion
        if actions is not None:
            kwargs["actions"] = validate_actions(actions)

        repository = self.get_repo(owner, repo)
        with _github_errors(f"Updating check run {check_run_id}"):
            repository.get_check_run(check_run_id).edit(**kwargs)
        logger.debug(f"Updated check run {check_run_id}: {sorted(kwargs)}")

    def submit_review(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        commit_sha: str,
        comments: list[ReviewComment],
        body: str = "",
    ) -> None:
        """Submit inline comments as one COMMENT review against ``commit_sha``."""
        repository = self.get_repo(owner, repo)
        with _github_errors(f"Submitting review on PR #{pull_number}"):
            pr = repository.get_pull(pull_number)
            commit = repository.get_commit(commit_sha)
            pr.create_review(
                commit=commit,
                body=body,
                event="COMMENT",
                comments=[comment.to_dict() for comment in comments],
            )
        logger.info(f"Submitted review with {len(comments)} comments on PR #{pull_number}")

    def update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: str,
        branch: str,
    ) -> str:
        """Commit new content for a file and return the commit SHA.

        Raises:
            FileConflictError: If ``sha`` is no longer the file's blob SHA
            GitHubAPIError: If the request fails otherwise
        """
        repository = self.get_repo(owner, repo)
        try:
            result = repository.update_file(path, message, content, sha, branch=branch)
        except GithubException as e:
            if e.status == 409:
                raise FileConflictError(path, branch) from e
            raise GitHubAPIError(
                f"Updating {path} on {branch} failed: {_error_message(e)}", status=e.status
            ) from e
        commit_sha = result["commit"].sha
        logger.info(f"Committed {path} to {branch} ({commit_sha[:7]})")
        return commit_sha
