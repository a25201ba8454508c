"""Pull request context models."""

from dataclasses import dataclass, field


@dataclass
class PullRequestFile:
    """One changed file of a pull request with its unified-diff patch."""

    filename: str
    status: str
    patch: str | None = None
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    content: str | None = None


@dataclass
class ExistingComment:
    """A review or issue comment already present on the pull request."""

    id: int
    body: str
    user: str
    created_at: str
    kind: str = "issue"  # "review" or "issue"
    path: str | None = None
    line: int | None = None


@dataclass
class PullRequestContext:
    """Context provided to the AI for an informed review."""

    owner: str
    repo: str
    pr_number: int
    pr_title: str
    pr_description: str
    base_branch: str
    head_branch: str
    head_sha: str
    author: str
    additions: int = 0
    deletions: int = 0
    url: str = ""
    reviewers: list[str] = field(default_factory=list)

    @property
    def repo_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def to_prompt_context(self) -> str:
        """Format context for inclusion in AI prompts."""
        return f"""## Pull Request Context
- Repository: {self.repo_name}
- PR #{self.pr_number}: {self.pr_title}
- Author: {self.author}
- Branch: {self.head_branch} → {self.base_branch}
- Changes: +{self.additions} / -{self.deletions}
- Reviewers: {', '.join(self.reviewers) if self.reviewers else 'None yet'}

## PR Description
{self.pr_description or 'No description provided.'}
"""
