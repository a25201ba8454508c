"""Interactive Reviewer - AI pull request review driven by check run actions."""

__version__ = "0.1.0"
