"""Tests for configuration loading and validation."""

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep credentials from the developer's shell out of the tests."""
    for name in (
        "GITHUB_TOKEN",
        "GITHUB_APP_ID",
        "GITHUB_PRIVATE_KEY",
        "GITHUB_PRIVATE_KEY_PATH",
        "GITHUB_WEBHOOK_SECRET",
        "AI_API_KEY",
        "AI_BASE_URL",
        "AI_MODEL",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self, tmp_path):
        """A missing file gives the documented defaults."""
        from interactive_reviewer.config import load_config

        config = load_config(tmp_path / "missing.yaml")

        assert config.review.trigger_actions == ["opened", "reopened", "synchronize"]
        assert config.review.fallback_branches == ["main", "master", "develop"]
        assert config.placement.search_radius == 10
        assert config.placement.prefer_after is True
        assert config.dispatcher.max_concurrent_reviews == 3
        assert config.dispatcher.stale_after_seconds == 900
        assert config.dispatcher.session_ttl_seconds == 86400
        assert config.server.port == 3000

    def test_yaml_with_env_expansion(self, tmp_path, monkeypatch):
        """${VAR} values are read from the environment."""
        from interactive_reviewer.config import load_config

        monkeypatch.setenv("MY_GH_TOKEN", "ghp_secret")
        path = tmp_path / "config.yaml"
        path.write_text(
            "github:\n"
            "  token: ${MY_GH_TOKEN}\n"
            "ai:\n"
            "  api_key: sk-test\n"
            "  model: gpt-4o-mini\n"
            "review:\n"
            "  max_files: 5\n"
            "  target_branches: [main]\n"
            "placement:\n"
            "  search_radius: 4\n"
            "  prefer_after: false\n"
            "dispatcher:\n"
            "  max_concurrent_reviews: 1\n"
        )

        config = load_config(path)

        assert config.github.token == "ghp_secret"
        assert config.ai.model == "gpt-4o-mini"
        assert config.review.max_files == 5
        assert config.review.target_branches == ["main"]
        assert config.placement.search_radius == 4
        assert config.placement.prefer_after is False
        assert config.dispatcher.max_concurrent_reviews == 1

    def test_environment_fallbacks(self, tmp_path, monkeypatch):
        """Credentials come from the environment when the file has none."""
        from interactive_reviewer.config import load_config

        monkeypatch.setenv("GITHUB_APP_ID", "12345")
        monkeypatch.setenv("GITHUB_PRIVATE_KEY_PATH", "/keys/app.pem")
        monkeypatch.setenv("AI_API_KEY", "sk-env")
        monkeypatch.setenv("PORT", "8080")

        config = load_config(tmp_path / "missing.yaml")

        assert config.github.uses_app is True
        assert config.ai.api_key == "sk-env"
        assert config.server.port == 8080


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid(self, config):
        """The test configuration is valid."""
        from interactive_reviewer.config import validate_config

        assert validate_config(config) == []

    def test_missing_credentials(self, tmp_path):
        """Missing GitHub and AI credentials are both reported."""
        from interactive_reviewer.config import load_config, validate_config

        errors = validate_config(load_config(tmp_path / "missing.yaml"))

        assert any("GitHub credentials" in e for e in errors)
        assert any("AI API key" in e for e in errors)

    def test_app_id_without_key(self, config):
        """An app id alone is not enough."""
        from interactive_reviewer.config import validate_config

        config.github.app_id = "123"

        assert any("private key" in e for e in validate_config(config))

    def test_out_of_range_values(self, config):
        """Limits must be usable."""
        from interactive_reviewer.config import validate_config

        config.dispatcher.max_concurrent_reviews = 0
        config.placement.search_radius = -1
        config.fixes.line_similarity_threshold = 1.5

        errors = validate_config(config)

        assert len(errors) == 3
