"""Unified-diff line modelling and comment placement."""

from interactive_reviewer.diff.line_map import (
    ContextLine,
    DiffLine,
    DiffLineMap,
    Hunk,
    LineKind,
    build_line_map,
)
from interactive_reviewer.diff.resolver import (
    DEFAULT_SEARCH_RADIUS,
    TieBreak,
    is_commentable,
    resolve,
    resolve_in_patch,
)

__all__ = [
    "ContextLine",
    "DEFAULT_SEARCH_RADIUS",
    "DiffLine",
    "DiffLineMap",
    "Hunk",
    "LineKind",
    "TieBreak",
    "build_line_map",
    "is_commentable",
    "resolve",
    "resolve_in_patch",
]
