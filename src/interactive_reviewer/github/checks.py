"""Check run payloads and GitHub's limits on them."""

from dataclasses import dataclass
from typing import Any

from interactive_reviewer.errors import CheckRunValidationError

CHECK_RUN_NAME = "AI Code Review"

MAX_ACTIONS = 3
MAX_LABEL_LENGTH = 20
MAX_DESCRIPTION_LENGTH = 40
MAX_IDENTIFIER_LENGTH = 20
MAX_OUTPUT_LENGTH = 65535


@dataclass(frozen=True)
class CheckRunAction:
    """A button shown on a check run."""

    label: str
    description: str
    identifier: str

    def to_dict(self) -> dict[str, str]:
        return {
            "label": self.label,
            "description": self.description,
            "identifier": self.identifier,
        }


@dataclass
class CheckRunOutput:
    """Title, summary and optional details text of a check run."""

    title: str
    summary: str
    text: str | None = None

    def to_dict(self) -> dict[str, str]:
        output = {
            "title": self.title,
            "summary": _truncate(self.summary),
        }
        if self.text:
            output["text"] = _truncate(self.text)
        return output


def _truncate(text: str) -> str:
    if len(text) <= MAX_OUTPUT_LENGTH:
        return text
    return text[: MAX_OUTPUT_LENGTH - 20] + "\n\n... (truncated)"


def validate_actions(actions: list[CheckRunAction]) -> list[dict[str, Any]]:
    """Check actions against GitHub's limits and return them as payload dicts.

    Raises:
        CheckRunValidationError: If there are too many actions or a field is too long
    """
    if len(actions) > MAX_ACTIONS:
        raise CheckRunValidationError(
            f"Too many actions: {len(actions)} (GitHub allows at most {MAX_ACTIONS})"
        )

    limits = (
        ("label", MAX_LABEL_LENGTH),
        ("description", MAX_DESCRIPTION_LENGTH),
        ("identifier", MAX_IDENTIFIER_LENGTH),
    )
    for action in actions:
        for attr, limit in limits:
            value = getattr(action, attr)
            if not value:
                raise CheckRunValidationError(f"Action {attr} must not be empty")
            if len(value) > limit:
                raise CheckRunValidationError(
                    f"Action {attr} '{value}' is {len(value)} characters (max {limit})"
                )

    return [action.to_dict() for action in actions]
