"""Configuration loading and validation for Interactive Reviewer."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_EXCLUDE_PATTERNS = [
    "*.lock",
    "package-lock.json",
    "*.min.js",
    "*.min.css",
    "dist/*",
    "build/*",
    "node_modules/*",
]


@dataclass
class GitHubSettings:
    """GitHub integration configuration.

    Either ``token`` or ``app_id`` plus a private key must be set.
    """

    token: str = ""
    app_id: str | None = None
    private_key: str | None = None
    private_key_path: str | None = None
    webhook_secret: str | None = None
    base_url: str | None = None  # For GitHub Enterprise

    @property
    def uses_app(self) -> bool:
        return bool(self.app_id and (self.private_key or self.private_key_path))


@dataclass
class AISettings:
    """AI provider configuration (OpenAI-compatible chat completions)."""

    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    max_tokens: int = 4000
    temperature: float = 0.1
    timeout_seconds: int = 120


@dataclass
class ReviewSettings:
    """Which pull requests and files get reviewed."""

    trigger_actions: list[str] = field(
        default_factory=lambda: ["opened", "reopened", "synchronize"]
    )
    target_branches: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    max_files: int = 50
    max_file_changes: int = 1000
    fallback_branches: list[str] = field(default_factory=lambda: ["main", "master", "develop"])


@dataclass
class PlacementSettings:
    """Comment placement policy."""

    search_radius: int = 10
    prefer_after: bool = True


@dataclass
class FixSettings:
    """Fix application and commit settings."""

    heuristic_window: int = 5
    line_similarity_threshold: float = 0.5
    commit_message_prefix: str = "fix: AI-suggested fix"


@dataclass
class DispatcherSettings:
    """Admission control and state lifetimes."""

    max_concurrent_reviews: int = 3
    stale_after_seconds: int = 15 * 60
    session_ttl_seconds: int = 24 * 60 * 60
    sweep_interval_seconds: int = 60 * 60
    fallback_delay_seconds: float = 0.5
    shutdown_timeout_seconds: int = 30


@dataclass
class ServerSettings:
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class Config:
    """Complete application configuration."""

    github: GitHubSettings
    ai: AISettings
    review: ReviewSettings = field(default_factory=ReviewSettings)
    placement: PlacementSettings = field(default_factory=PlacementSettings)
    fixes: FixSettings = field(default_factory=FixSettings)
    dispatcher: DispatcherSettings = field(default_factory=DispatcherSettings)
    server: ServerSettings = field(default_factory=ServerSettings)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file (default: config.yaml)

    Returns:
        Loaded configuration
    """
    if config_path is None:
        config_path = Path("config.yaml")
        if not config_path.exists():
            config_path = Path("config.example.yaml")

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}

    raw_config = _expand_env_vars(raw_config)

    return _parse_config(raw_config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in config."""
    if isinstance(obj, str):
        if obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            return os.environ.get(env_var, "")
        return obj
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _parse_config(raw: dict[str, Any]) -> Config:
    """Parse raw config dict into Config object."""
    github_raw = raw.get("github") or {}
    github = GitHubSettings(
        token=github_raw.get("token") or os.environ.get("GITHUB_TOKEN", ""),
        app_id=github_raw.get("app_id") or os.environ.get("GITHUB_APP_ID"),
        private_key=github_raw.get("private_key") or os.environ.get("GITHUB_PRIVATE_KEY"),
        private_key_path=github_raw.get("private_key_path")
        or os.environ.get("GITHUB_PRIVATE_KEY_PATH"),
        webhook_secret=github_raw.get("webhook_secret") or os.environ.get("GITHUB_WEBHOOK_SECRET"),
        base_url=github_raw.get("base_url"),
    )

    ai_raw = raw.get("ai") or {}
    ai = AISettings(
        api_key=ai_raw.get("api_key") or os.environ.get("AI_API_KEY", ""),
        base_url=ai_raw.get("base_url")
        or os.environ.get("AI_BASE_URL", "https://api.openai.com/v1"),
        model=ai_raw.get("model") or os.environ.get("AI_MODEL", "gpt-4o"),
        max_tokens=ai_raw.get("max_tokens", 4000),
        temperature=ai_raw.get("temperature", 0.1),
        timeout_seconds=ai_raw.get("timeout_seconds", 120),
    )

    review_raw = raw.get("review") or {}
    defaults = ReviewSettings()
    review = ReviewSettings(
        trigger_actions=review_raw.get("trigger_actions", defaults.trigger_actions),
        target_branches=review_raw.get("target_branches", defaults.target_branches),
        exclude_patterns=review_raw.get("exclude_patterns", defaults.exclude_patterns),
        max_files=review_raw.get("max_files", defaults.max_files),
        max_file_changes=review_raw.get("max_file_changes", defaults.max_file_changes),
        fallback_branches=review_raw.get("fallback_branches", defaults.fallback_branches),
    )

    placement_raw = raw.get("placement") or {}
    placement = PlacementSettings(
        search_radius=placement_raw.get("search_radius", 10),
        prefer_after=placement_raw.get("prefer_after", True),
    )

    fixes_raw = raw.get("fixes") or {}
    fixes = FixSettings(
        heuristic_window=fixes_raw.get("heuristic_window", 5),
        line_similarity_threshold=fixes_raw.get("line_similarity_threshold", 0.5),
        commit_message_prefix=fixes_raw.get("commit_message_prefix", "fix: AI-suggested fix"),
    )

    dispatcher_raw = raw.get("dispatcher") or {}
    dispatcher = DispatcherSettings(
        max_concurrent_reviews=dispatcher_raw.get("max_concurrent_reviews", 3),
        stale_after_seconds=dispatcher_raw.get("stale_after_seconds", 15 * 60),
        session_ttl_seconds=dispatcher_raw.get("session_ttl_seconds", 24 * 60 * 60),
        sweep_interval_seconds=dispatcher_raw.get("sweep_interval_seconds", 60 * 60),
        fallback_delay_seconds=dispatcher_raw.get("fallback_delay_seconds", 0.5),
        shutdown_timeout_seconds=dispatcher_raw.get("shutdown_timeout_seconds", 30),
    )

    server_raw = raw.get("server") or {}
    server = ServerSettings(
        host=server_raw.get("host", "0.0.0.0"),
        port=int(server_raw.get("port") or os.environ.get("PORT", 3000)),
    )

    return Config(
        github=github,
        ai=ai,
        review=review,
        placement=placement,
        fixes=fixes,
        dispatcher=dispatcher,
        server=server,
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of errors.

    Args:
        config: Configuration to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if not config.github.token and not config.github.uses_app:
        errors.append(
            "Missing GitHub credentials (set GITHUB_TOKEN, or GITHUB_APP_ID with a private key)"
        )

    if config.github.app_id and not config.github.uses_app:
        errors.append("GitHub App ID is set but no private key or private_key_path was given")

    if not config.ai.api_key:
        errors.append("Missing AI API key (set AI_API_KEY or ai.api_key)")

    if config.dispatcher.max_concurrent_reviews < 1:
        errors.append("dispatcher.max_concurrent_reviews must be at least 1")

    if config.placement.search_radius < 0:
        errors.append("placement.search_radius must not be negative")

    if config.review.max_files < 1:
        errors.append("review.max_files must be at least 1")

    if not 0.0 <= config.fixes.line_similarity_threshold <= 1.0:
        errors.append("fixes.line_similarity_threshold must be between 0 and 1")

    return errors
