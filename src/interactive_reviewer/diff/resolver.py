"""Resolve a finding's target line to a line that can carry a review comment."""

import logging
from enum import Enum

from interactive_reviewer.diff.line_map import DiffLineMap, build_line_map

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RADIUS = 10


class TieBreak(Enum):
    """Which side wins when two candidates are equally far from the target."""

    AFTER = "after"
    BEFORE = "before"


def is_commentable(line_map: DiffLineMap, line: int) -> bool:
    """Check whether ``line`` can receive an inline comment."""
    return line in line_map.commentable_lines


def resolve(
    line_map: DiffLineMap,
    target_line: int,
    radius: int = DEFAULT_SEARCH_RADIUS,
    tie_break: TieBreak = TieBreak.AFTER,
) -> int | None:
    """Find the commentable line to use for a comment aimed at ``target_line``.

    Returns ``target_line`` itself when it is commentable, otherwise the
    nearest commentable line at most ``radius`` lines away. Equal distances on
    both sides are decided by ``tie_break``. ``None`` means the comment cannot
    be placed, which is an expected outcome for findings outside the diff.
    """
    if target_line in line_map.commentable_lines:
        return target_line

    best: int | None = None
    best_key: tuple[int, int] | None = None
    for candidate in line_map.commentable_lines:
        distance = abs(candidate - target_line)
        if distance > radius:
            continue
        is_after = candidate > target_line
        preferred = is_after if tie_break is TieBreak.AFTER else not is_after
        key = (distance, 0 if preferred else 1)
        if best_key is None or key < best_key:
            best, best_key = candidate, key

    return best


def resolve_in_patch(
    patch: str | None,
    target_line: int,
    radius: int = DEFAULT_SEARCH_RADIUS,
    tie_break: TieBreak = TieBreak.AFTER,
) -> int | None:
    """Build the line map for ``patch`` and resolve ``target_line`` against it.

    The map is rebuilt on every call so a resolution never sees a stale patch.
    """
    line_map = build_line_map(patch)
    if line_map.is_empty:
        logger.debug(f"No commentable lines in patch, cannot place line {target_line}")
        return None
    return resolve(line_map, target_line, radius=radius, tie_break=tie_break)
