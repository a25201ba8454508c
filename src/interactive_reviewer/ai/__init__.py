"""AI provider integration."""

from interactive_reviewer.ai.client import AIClient

__all__ = ["AIClient"]
