"""Build a line model of a single file's unified-diff patch.

GitHub only accepts inline review comments on lines that appear in the
pull request diff. This module turns the raw ``patch`` text of one file into
a :class:`DiffLineMap` recording, for every hunk line, its old/new line numbers
and whether a comment may be attached to it. Only added lines are treated as
commentable.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_NO_NEWLINE_MARKER = "\\ No newline at end of file"


class LineKind(Enum):
    """Classification of a line inside a hunk."""

    ADDED = "added"
    CONTEXT = "context"
    DELETED = "deleted"


@dataclass
class DiffLine:
    """One line of a hunk."""

    kind: LineKind
    content: str
    old_line: int | None
    new_line: int | None


@dataclass
class Hunk:
    """A hunk introduced by an ``@@ -a,b +c,d @@`` header."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: list[DiffLine] = field(default_factory=list)


@dataclass
class ContextLine:
    """An unchanged line, keyed in the map by its new-file line number."""

    old_line: int
    content: str


@dataclass
class DiffLineMap:
    """Line model of one file's patch."""

    commentable_lines: set[int] = field(default_factory=set)
    file_line_to_comment_line: dict[int, int] = field(default_factory=dict)
    context_lines: dict[int, ContextLine] = field(default_factory=dict)
    hunks: list[Hunk] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """An empty map means no comment can be placed in this file."""
        return not self.commentable_lines

    def is_commentable(self, line: int) -> bool:
        return line in self.commentable_lines

    def added_content(self, line: int) -> str | None:
        """Return the text of an added line, or None if the line was not added."""
        for hunk in self.hunks:
            for diff_line in hunk.lines:
                if diff_line.kind is LineKind.ADDED and diff_line.new_line == line:
                    return diff_line.content
        return None


def build_line_map(patch: str | None) -> DiffLineMap:
    """Parse a single file's unified-diff patch into a :class:`DiffLineMap`.

    Lines before the first hunk header (``---``/``+++`` file headers, ``index``
    lines) are ignored. A malformed hunk header makes the whole map empty
    rather than raising: callers treat an empty map as "cannot place comments
    in this file".

    Args:
        patch: Patch text as returned by GitHub's pull request files API

    Returns:
        The line map (empty when there is no usable patch)
    """
    line_map = DiffLineMap()
    if not patch:
        return line_map

    current: Hunk | None = None
    old_line = 0
    new_line = 0

    lines = patch.split("\n")
    if lines[-1] == "":
        lines.pop()

    for raw in lines:
        raw = raw.removesuffix("\r")
        if raw.startswith("@@"):
            match = _HUNK_HEADER.match(raw)
            if not match:
                logger.debug(f"Malformed hunk header, ignoring patch: {raw!r}")
                return DiffLineMap()
            old_start, old_count, new_start, new_count = match.groups()
            current = Hunk(
                old_start=int(old_start),
                old_count=int(old_count) if old_count is not None else 1,
                new_start=int(new_start),
                new_count=int(new_count) if new_count is not None else 1,
            )
            line_map.hunks.append(current)
            old_line = current.old_start - 1
            new_line = current.new_start - 1
            continue

        if current is None:
            continue

        if raw.startswith(_NO_NEWLINE_MARKER):
            continue

        marker, content = raw[:1], raw[1:]
        if marker == "-":
            old_line += 1
            current.lines.append(DiffLine(LineKind.DELETED, content, old_line, None))
        elif marker == "+":
            new_line += 1
            current.lines.append(DiffLine(LineKind.ADDED, content, None, new_line))
            line_map.commentable_lines.add(new_line)
            line_map.file_line_to_comment_line[new_line] = new_line
        else:
            # " " prefix, or a context line whose trailing space was stripped
            old_line += 1
            new_line += 1
            current.lines.append(DiffLine(LineKind.CONTEXT, content, old_line, new_line))
            line_map.context_lines[new_line] = ContextLine(old_line=old_line, content=content)

    return line_map
