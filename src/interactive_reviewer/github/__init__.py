"""GitHub integration for Interactive Reviewer."""

from interactive_reviewer.github.auth import GitHubAppAuth, load_private_key
from interactive_reviewer.github.checks import CheckRunAction, CheckRunOutput, validate_actions
from interactive_reviewer.github.client import FileContent, GitHubClient, ReviewComment
from interactive_reviewer.github.webhook import create_webhook_app, verify_signature

__all__ = [
    "CheckRunAction",
    "CheckRunOutput",
    "FileContent",
    "GitHubAppAuth",
    "GitHubClient",
    "ReviewComment",
    "create_webhook_app",
    "load_private_key",
    "validate_actions",
    "verify_signature",
]
