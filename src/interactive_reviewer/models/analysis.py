"""AI analysis result models."""

from dataclasses import dataclass, field

from interactive_reviewer.models.findings import (
    ANALYSIS_ERROR_FILE,
    Category,
    Finding,
    Severity,
)

PROPERLY_REVIEWED = "PROPERLY REVIEWED"
NOT_PROPERLY_REVIEWED = "NOT PROPERLY REVIEWED"
REVIEW_REQUIRED = "REVIEW REQUIRED"


@dataclass
class SeverityBreakdown:
    """Issue counts per severity."""

    blocker: int = 0
    critical: int = 0
    major: int = 0
    minor: int = 0
    info: int = 0

    @classmethod
    def from_findings(cls, findings: list[Finding]) -> "SeverityBreakdown":
        breakdown = cls()
        for finding in findings:
            name = finding.severity.value.lower()
            setattr(breakdown, name, getattr(breakdown, name) + 1)
        return breakdown

    @property
    def total(self) -> int:
        return self.blocker + self.critical + self.major + self.minor + self.info


@dataclass
class CategoryBreakdown:
    """Issue counts per category."""

    bugs: int = 0
    vulnerabilities: int = 0
    security_hotspots: int = 0
    code_smells: int = 0

    @classmethod
    def from_findings(cls, findings: list[Finding]) -> "CategoryBreakdown":
        breakdown = cls()
        for finding in findings:
            if finding.category == Category.BUG:
                breakdown.bugs += 1
            elif finding.category == Category.VULNERABILITY:
                breakdown.vulnerabilities += 1
            elif finding.category == Category.SECURITY_HOTSPOT:
                breakdown.security_hotspots += 1
            else:
                breakdown.code_smells += 1
        return breakdown


@dataclass
class AnalysisResult:
    """Structured result of one AI analysis of a pull request."""

    total_issues: int
    severity_breakdown: SeverityBreakdown
    detailed_findings: list[Finding]
    review_assessment: str
    recommendation: str
    categories: CategoryBreakdown = field(default_factory=CategoryBreakdown)
    technical_debt_minutes: int = 0
    failed: bool = False

    @classmethod
    def failed_analysis(cls, error_message: str) -> "AnalysisResult":
        """Build the stand-in result used when the AI call fails.

        The session still gets created, carrying one synthetic finding that
        explains the failure instead of aborting the review.
        """
        finding = Finding(
            file=ANALYSIS_ERROR_FILE,
            line=1,
            issue=(
                f"AI analysis failed: {error_message}. This could be due to API limits, "
                "service unavailability, or response format issues."
            ),
            severity=Severity.MAJOR,
            category=Category.CODE_SMELL,
            suggestion=(
                "Please try running the analysis again. If the error persists, "
                "check AI service configuration."
            ),
        )
        return cls(
            total_issues=1,
            severity_breakdown=SeverityBreakdown(major=1),
            detailed_findings=[finding],
            review_assessment=REVIEW_REQUIRED,
            recommendation=(
                f"AI analysis could not be completed due to: {error_message}. "
                "Manual code review is recommended."
            ),
            categories=CategoryBreakdown(code_smells=1),
            technical_debt_minutes=30,
            failed=True,
        )

    @property
    def postable_findings(self) -> list[Finding]:
        """Findings that can become inline comments, in report order."""
        return [f for f in self.detailed_findings if f.is_postable]

    @property
    def conclusion(self) -> str:
        """Check run conclusion for this analysis."""
        if self.severity_breakdown.blocker > 0:
            return "failure"
        if self.severity_breakdown.critical > 0:
            return "neutral"
        if self.review_assessment == PROPERLY_REVIEWED:
            return "success"
        return "neutral"


@dataclass
class MergeAssessment:
    """AI judgment of whether a pull request is ready to merge."""

    is_ready: bool
    status: str = ""
    recommendation: str = ""
    score: int | None = None
    blocking_issues: list[str] = field(default_factory=list)

    @property
    def conclusion(self) -> str:
        return "success" if self.is_ready else "failure"
