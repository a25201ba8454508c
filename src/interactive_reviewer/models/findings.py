"""Finding models for AI review results."""

from dataclasses import dataclass, field
from enum import Enum

# Placeholder file names the analysis uses when a finding has no real location
UNKNOWN_FILE = "unknown-file"
ANALYSIS_ERROR_FILE = "AI_ANALYSIS_ERROR"


class Severity(Enum):
    """SonarQube-style severity levels, most severe first."""

    BLOCKER = "BLOCKER"
    CRITICAL = "CRITICAL"
    MAJOR = "MAJOR"
    MINOR = "MINOR"
    INFO = "INFO"

    @classmethod
    def parse(cls, value: str | None) -> "Severity":
        """Parse a severity name leniently, defaulting to INFO."""
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return cls.INFO


class Category(Enum):
    """SonarQube-style issue categories."""

    BUG = "BUG"
    VULNERABILITY = "VULNERABILITY"
    SECURITY_HOTSPOT = "SECURITY_HOTSPOT"
    CODE_SMELL = "CODE_SMELL"

    @classmethod
    def parse(cls, value: str | None) -> "Category":
        """Parse a category name leniently, defaulting to CODE_SMELL."""
        normalized = str(value or "").strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            return cls.CODE_SMELL


@dataclass
class FixSuggestion:
    """A code fix proposed by the AI for one finding."""

    current_code: str
    suggested_fix: str
    explanation: str = ""


@dataclass
class Finding:
    """A single issue reported by the AI analysis."""

    file: str
    line: int
    issue: str
    severity: Severity = Severity.INFO
    category: Category = Category.CODE_SMELL
    suggestion: str = ""
    technical_debt_minutes: int = 0

    # Mutated by the comment poster
    posted: bool = False
    original_line: int | None = None
    line_adjusted: bool = False

    # Filled lazily when a fix is first generated for this finding
    fix_suggestion: FixSuggestion | None = field(default=None, repr=False)

    @property
    def is_postable(self) -> bool:
        """Whether the finding points at a real file location and is not yet posted."""
        return (
            bool(self.file)
            and self.file not in (UNKNOWN_FILE, ANALYSIS_ERROR_FILE)
            and self.line > 0
            and not self.posted
        )

    def move_to(self, line: int) -> None:
        """Re-target the finding to another line, remembering the first original line."""
        if line == self.line:
            return
        if self.original_line is None:
            self.original_line = self.line
        self.line = line
        self.line_adjusted = True

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"
