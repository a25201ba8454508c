"""Apply an AI fix suggestion to a file's current content.

Strategies are tried in order, each only when the previous one failed:

1. exact      - replace the first verbatim occurrence of ``current_code``
2. block      - match ``current_code`` line by line, ignoring indentation
3. line_index - replace the finding's line when it resembles ``current_code``
4. heuristic  - pattern-match well-known issue kinds near the finding's line
5. annotated  - insert the fix as a commented block after the finding's line

A strategy that leaves the content unchanged counts as a failure, so a
successful result always differs from the input.
"""

import logging
import re
import textwrap
from collections.abc import Callable
from dataclasses import dataclass
from difflib import SequenceMatcher
from pathlib import PurePosixPath

from interactive_reviewer.models.findings import Finding, FixSuggestion

logger = logging.getLogger(__name__)


@dataclass
class ApplicatorConfig:
    """Configuration for the fix applicator."""

    heuristic_window: int = 5
    line_similarity_threshold: float = 0.5
    annotation_issue_chars: int = 80


@dataclass
class AppliedFix:
    """Outcome of a successful application."""

    content: str
    strategy: str


Strategy = Callable[[str, Finding, FixSuggestion, ApplicatorConfig], str | None]


@dataclass(frozen=True)
class HeuristicPattern:
    """A known issue kind recognised from the issue text and the code line."""

    name: str
    issue_pattern: re.Pattern[str]
    line_pattern: re.Pattern[str]


HEURISTIC_PATTERNS: tuple[HeuristicPattern, ...] = (
    HeuristicPattern(
        name="sql-string-building",
        issue_pattern=re.compile(r"sql|injection|query", re.IGNORECASE),
        line_pattern=re.compile(
            r"\b(select|insert|update|delete)\b.*(\+\s*\w|\$\{|\{\w+\}|%\s*\(|%s['\"]\s*%)",
            re.IGNORECASE,
        ),
    ),
    HeuristicPattern(
        name="unsafe-html-write",
        issue_pattern=re.compile(
            r"xss|cross.site|innerhtml|html injection|document\.write", re.IGNORECASE
        ),
        line_pattern=re.compile(
            r"\.(inner|outer)HTML\s*=|document\.write(ln)?\s*\("
            r"|dangerouslySetInnerHTML|insertAdjacentHTML\s*\("
        ),
    ),
    HeuristicPattern(
        name="unsanitized-path-join",
        issue_pattern=re.compile(
            r"path traversal|directory traversal|file path|\bpath\b.*sanitiz", re.IGNORECASE
        ),
        line_pattern=re.compile(r"\bpath\.(join|resolve)\s*\(|os\.path\.join\s*\(|\bopen\s*\(.*\+"),
    ),
)

_HASH_COMMENT_EXTENSIONS = {
    ".py", ".rb", ".sh", ".bash", ".yml", ".yaml", ".toml", ".r", ".pl", ".ex", ".exs",
}
_DASH_COMMENT_EXTENSIONS = {".sql", ".lua", ".hs"}


def _leading_whitespace(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _reindent(code: str, indent: str) -> list[str]:
    """Dedent ``code`` and prefix every non-blank line with ``indent``."""
    dedented = textwrap.dedent(code.strip("\n"))
    return [indent + line if line.strip() else "" for line in dedented.split("\n")]


def _splice(lines: list[str], start: int, stop: int, replacement: list[str]) -> str:
    return "\n".join(lines[:start] + replacement + lines[stop:])


def comment_prefix(path: str) -> str:
    """Line comment token for a file, based on its extension."""
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in _HASH_COMMENT_EXTENSIONS:
        return "#"
    if suffix in _DASH_COMMENT_EXTENSIONS:
        return "--"
    return "//"


def apply_exact(
    content: str, finding: Finding, suggestion: FixSuggestion, config: ApplicatorConfig
) -> str | None:
    """Replace the first verbatim occurrence of the current code."""
    if not suggestion.current_code or suggestion.current_code not in content:
        return None
    return content.replace(suggestion.current_code, suggestion.suggested_fix, 1)


def apply_block(
    content: str, finding: Finding, suggestion: FixSuggestion, config: ApplicatorConfig
) -> str | None:
    """Find the current code as a run of lines, comparing trimmed text."""
    target = [line.strip() for line in suggestion.current_code.split("\n") if line.strip()]
    if not target:
        return None

    lines = content.split("\n")
    for start in range(len(lines) - len(target) + 1):
        window = lines[start : start + len(target)]
        if all(line.strip() == expected for line, expected in zip(window, target)):
            indent = _leading_whitespace(lines[start])
            replacement = _reindent(suggestion.suggested_fix, indent)
            return _splice(lines, start, start + len(target), replacement)
    return None


def apply_line_index(
    content: str, finding: Finding, suggestion: FixSuggestion, config: ApplicatorConfig
) -> str | None:
    """Replace the finding's own line.

    Only used when the AI gave no current code, or when the line at that index
    resembles the first line of it; otherwise the index is too likely to point
    at unrelated code.
    """
    lines = content.split("\n")
    index = finding.line - 1
    if not 0 <= index < len(lines) or not lines[index].strip():
        return None

    first_current = next(
        (line.strip() for line in suggestion.current_code.split("\n") if line.strip()), ""
    )
    if first_current:
        ratio = SequenceMatcher(None, lines[index].strip(), first_current).ratio()
        if ratio < config.line_similarity_threshold:
            return None

    indent = _leading_whitespace(lines[index])
    return _splice(lines, index, index + 1, _reindent(suggestion.suggested_fix, indent))


def apply_heuristic(
    content: str, finding: Finding, suggestion: FixSuggestion, config: ApplicatorConfig
) -> str | None:
    """Replace the first line near the finding that matches a known issue kind."""
    patterns = [p for p in HEURISTIC_PATTERNS if p.issue_pattern.search(finding.issue)]
    if not patterns:
        return None

    lines = content.split("\n")
    index = finding.line - 1
    start = max(0, index - config.heuristic_window)
    stop = min(len(lines), index + config.heuristic_window + 1)
    for candidate in range(start, stop):
        for pattern in patterns:
            if pattern.line_pattern.search(lines[candidate]):
                logger.debug(f"Heuristic {pattern.name} matched {finding.file}:{candidate + 1}")
                indent = _leading_whitespace(lines[candidate])
                return _splice(
                    lines, candidate, candidate + 1, _reindent(suggestion.suggested_fix, indent)
                )
    return None


def apply_annotated(
    content: str, finding: Finding, suggestion: FixSuggestion, config: ApplicatorConfig
) -> str | None:
    """Insert the suggestion as comments after the finding's line."""
    lines = content.split("\n")
    if finding.line < 1 or finding.line > len(lines):
        return None

    prefix = comment_prefix(finding.file)
    indent = _leading_whitespace(lines[finding.line - 1])
    issue = finding.issue.strip().replace("\n", " ")
    if len(issue) > config.annotation_issue_chars:
        issue = issue[: config.annotation_issue_chars] + "..."

    block = [f"{indent}{prefix} AI-suggested fix for: {issue}"]
    for line in textwrap.dedent(suggestion.suggested_fix.strip("\n")).split("\n"):
        block.append(f"{indent}{prefix} {line}".rstrip())
    return _splice(lines, finding.line, finding.line, block)


STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("exact", apply_exact),
    ("block", apply_block),
    ("line_index", apply_line_index),
    ("heuristic", apply_heuristic),
    ("annotated", apply_annotated),
)


class FixApplicator:
    """Runs the strategy cascade for one fix at a time."""

    def __init__(
        self,
        config: ApplicatorConfig | None = None,
        strategies: tuple[tuple[str, Strategy], ...] = STRATEGIES,
    ) -> None:
        self.config = config or ApplicatorConfig()
        self.strategies = strategies

    def apply(self, content: str, finding: Finding, suggestion: FixSuggestion) -> AppliedFix | None:
        """Apply ``suggestion`` to ``content``.

        Args:
            content: Current full file content
            finding: The finding being fixed (used for its line and issue text)
            suggestion: AI fix with ``current_code`` and ``suggested_fix``

        Returns:
            The rewritten content and the strategy that produced it, or None
            when no strategy changed the content
        """
        if not suggestion.suggested_fix.strip():
            logger.debug(f"Empty fix for {finding.location}, nothing to apply")
            return None

        for name, strategy in self.strategies:
            updated = strategy(content, finding, suggestion, self.config)
            if updated is not None and updated != content:
                logger.info(f"Applied fix for {finding.location} using {name} strategy")
                return AppliedFix(content=updated, strategy=name)

        logger.info(f"No strategy could apply fix for {finding.location}")
        return None
