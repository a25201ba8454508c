"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from interactive_reviewer.config import AISettings, Config, GitHubSettings
from interactive_reviewer.models.analysis import (
    REVIEW_REQUIRED,
    AnalysisResult,
    SeverityBreakdown,
)
from interactive_reviewer.models.context import PullRequestContext, PullRequestFile
from interactive_reviewer.models.findings import Category, Finding, Severity

# Adds lines 11-16 to auth/login.py; lines 9, 10, 17 and 18 are context
SAMPLE_LOGIN_PATCH = """\
@@ -9,4 +9,10 @@ def authenticate(username: str, password: str) -> bool:
     hashed = hash_password(password)
     return db.verify_user(username, hashed)
+
+def get_user(username: str) -> dict:
+    \"\"\"Fetch user by username.\"\"\"
+    query = f"SELECT * FROM users WHERE username = '{username}'"
+    return db.execute(query)
+

 def logout(session):
"""

# Two hunks: added lines 3, 20 and 21; old line 19 deleted
SAMPLE_TWO_HUNK_PATCH = """\
@@ -1,3 +1,4 @@
 import os
 import sys
+import json

@@ -18,3 +19,4 @@ def main():
     args = parse()
-    run(args)
+    result = run(args)
+    print(json.dumps(result))
     return 0
"""

SAMPLE_LOGIN_CONTENT = """\
import hashlib
from database import db

def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def authenticate(username: str, password: str) -> bool:
    hashed = hash_password(password)
    return db.verify_user(username, hashed)

def get_user(username: str) -> dict:
    \"\"\"Fetch user by username.\"\"\"
    query = f"SELECT * FROM users WHERE username = '{username}'"
    return db.execute(query)


def logout(session):
    session.clear()
"""


@pytest.fixture
def login_patch() -> str:
    """Patch adding a SQL-injectable query to auth/login.py."""
    return SAMPLE_LOGIN_PATCH


@pytest.fixture
def two_hunk_patch() -> str:
    """Patch with two hunks and one deleted line."""
    return SAMPLE_TWO_HUNK_PATCH


@pytest.fixture
def login_content() -> str:
    """auth/login.py at the PR head."""
    return SAMPLE_LOGIN_CONTENT


@pytest.fixture
def config() -> Config:
    """Valid configuration with fast fallbacks for tests."""
    cfg = Config(
        github=GitHubSettings(token="test-token", webhook_secret="test-secret"),
        ai=AISettings(api_key="test-key"),
    )
    cfg.dispatcher.fallback_delay_seconds = 0
    return cfg


@pytest.fixture
def pr_context() -> PullRequestContext:
    """Context of test-org/test-repo#42."""
    return PullRequestContext(
        owner="test-org",
        repo="test-repo",
        pr_number=42,
        pr_title="Add user lookup",
        pr_description="Adds get_user.",
        base_branch="main",
        head_branch="feature/users",
        head_sha="abc1234def5678",
        author="testuser",
        additions=6,
        deletions=0,
    )


@pytest.fixture
def findings() -> list[Finding]:
    """Three findings on auth/login.py; the second is outside the diff."""
    return [
        Finding(
            file="auth/login.py",
            line=14,
            issue="SQL injection via string formatting",
            severity=Severity.CRITICAL,
            category=Category.VULNERABILITY,
            suggestion="Use a parameterized query",
        ),
        Finding(
            file="auth/login.py",
            line=40,
            issue="Unused import",
            severity=Severity.MINOR,
        ),
        Finding(
            file="auth/login.py",
            line=12,
            issue="Missing return type detail",
            severity=Severity.INFO,
        ),
    ]


@pytest.fixture
def analysis(findings) -> AnalysisResult:
    """Analysis wrapping the sample findings."""
    return AnalysisResult(
        total_issues=len(findings),
        severity_breakdown=SeverityBreakdown.from_findings(findings),
        detailed_findings=findings,
        review_assessment=REVIEW_REQUIRED,
        recommendation="Fix the SQL injection before merging.",
    )


@pytest.fixture
def mock_github(pr_context, login_patch) -> MagicMock:
    """GitHubClient double with the sample PR wired in."""
    github = MagicMock()
    github.get_pull_request_context.return_value = pr_context
    github.get_pull_request_files.return_value = [
        PullRequestFile(
            filename="auth/login.py",
            status="modified",
            patch=login_patch,
            additions=6,
            changes=6,
        )
    ]
    github.get_file_content.return_value = None
    github.get_existing_comments.return_value = []
    github.create_check_run.return_value = 1001
    github.update_file.return_value = "c0ffee1234567"
    return github


@pytest.fixture
def mock_ai(analysis) -> MagicMock:
    """AIClient double."""
    ai = MagicMock()
    ai.analyze_pull_request = AsyncMock(return_value=analysis)
    ai.generate_fix_suggestion = AsyncMock()
    ai.check_merge_readiness = AsyncMock()
    return ai
