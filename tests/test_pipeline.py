"""Tests for the end-to-end review pipeline."""

import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from interactive_reviewer.errors import AIError, GitHubAPIError


def _pipeline(github, ai):
    from interactive_reviewer.orchestrator.pipeline import ReviewPipeline

    actions = MagicMock()
    actions.create_session = AsyncMock(return_value="session")
    return ReviewPipeline(github, ai, actions), actions


class TestReviewRequest:
    """Tests for ReviewRequest."""

    def test_tracking_id_format(self):
        """Tracking ids carry a millisecond timestamp and a random suffix."""
        from interactive_reviewer.orchestrator.pipeline import ReviewRequest

        request = ReviewRequest("org", "repo", 7)

        assert re.fullmatch(r"ai-review-\d{13}-[0-9a-f]{9}", request.tracking_id)
        assert request.key == "org/repo#7"
        assert ReviewRequest("org", "repo", 7).tracking_id != request.tracking_id


class TestReviewPipeline:
    """Tests for ReviewPipeline."""

    @pytest.mark.asyncio
    async def test_successful_review(self, mock_github, mock_ai, analysis, login_content):
        """A review creates the check run, analyzes and hands off the session."""
        from interactive_reviewer.github.client import FileContent
        from interactive_reviewer.orchestrator.pipeline import ReviewRequest

        mock_github.get_file_content.return_value = FileContent(
            "auth/login.py", login_content, "blobsha", "abc1234def5678"
        )
        pipeline, actions = _pipeline(mock_github, mock_ai)
        request = ReviewRequest("test-org", "test-repo", 42)

        result = await pipeline.run(request)

        assert result == "session"
        create = mock_github.create_check_run.call_args
        assert create.args[2] == "abc1234def5678"
        assert create.kwargs["external_id"] == request.tracking_id
        files = mock_ai.analyze_pull_request.call_args.args[1]
        assert files[0].content == login_content
        kwargs = actions.create_session.call_args.kwargs
        assert kwargs["check_run_id"] == 1001
        assert kwargs["analysis"] is analysis
        assert kwargs["head_ref"] == "feature/users"
        assert kwargs["tracking_id"] == request.tracking_id

    @pytest.mark.asyncio
    async def test_rerun_updates_existing_check_run(self, mock_github, mock_ai):
        """A re-run reuses the given check run instead of creating one."""
        from interactive_reviewer.orchestrator.pipeline import ReviewRequest

        pipeline, actions = _pipeline(mock_github, mock_ai)

        await pipeline.run(ReviewRequest("test-org", "test-repo", 42, check_run_id=555))

        mock_github.create_check_run.assert_not_called()
        assert mock_github.update_check_run.call_args.args[2] == 555
        assert actions.create_session.call_args.kwargs["check_run_id"] == 555

    @pytest.mark.asyncio
    async def test_ai_failure_uses_failed_analysis(self, mock_github, mock_ai):
        """An AI failure still produces a session with an explanatory finding."""
        from interactive_reviewer.models.findings import ANALYSIS_ERROR_FILE
        from interactive_reviewer.orchestrator.pipeline import ReviewRequest

        mock_ai.analyze_pull_request = AsyncMock(side_effect=AIError("rate limited"))
        pipeline, actions = _pipeline(mock_github, mock_ai)

        await pipeline.run(ReviewRequest("test-org", "test-repo", 42))

        analysis = actions.create_session.call_args.kwargs["analysis"]
        assert analysis.failed is True
        assert analysis.detailed_findings[0].file == ANALYSIS_ERROR_FILE
        assert "rate limited" in analysis.recommendation
        assert analysis.postable_findings == []

    @pytest.mark.asyncio
    async def test_comment_fetch_failure_is_tolerated(self, mock_github, mock_ai):
        """Existing comments are optional context."""
        from interactive_reviewer.orchestrator.pipeline import ReviewRequest

        mock_github.get_existing_comments.side_effect = GitHubAPIError("Not Found", status=404)
        pipeline, actions = _pipeline(mock_github, mock_ai)

        await pipeline.run(ReviewRequest("test-org", "test-repo", 42))

        assert mock_ai.analyze_pull_request.call_args.args[2] == []
        actions.create_session.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_github_failure_marks_check_run_failed(self, mock_github, mock_ai):
        """Errors after the check run exists are reported on it."""
        from interactive_reviewer.orchestrator.pipeline import ReviewRequest

        mock_github.get_pull_request_files.side_effect = GitHubAPIError("Server Error", status=500)
        pipeline, actions = _pipeline(mock_github, mock_ai)

        result = await pipeline.run(ReviewRequest("test-org", "test-repo", 42))

        assert result is None
        actions.create_session.assert_not_called()
        update = mock_github.update_check_run.call_args
        assert update.args[2] == 1001
        assert update.kwargs["conclusion"] == "failure"
        assert update.kwargs["output"].summary.startswith(
            "An error occurred during the AI code review:"
        )

    @pytest.mark.asyncio
    async def test_failure_before_check_run(self, mock_github, mock_ai):
        """Without a check run there is nothing to update."""
        from interactive_reviewer.orchestrator.pipeline import ReviewRequest

        mock_github.get_pull_request_context.side_effect = GitHubAPIError("Not Found", status=404)
        pipeline, _ = _pipeline(mock_github, mock_ai)

        assert await pipeline.run(ReviewRequest("test-org", "test-repo", 42)) is None
        mock_github.update_check_run.assert_not_called()
