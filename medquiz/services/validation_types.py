"""
Shared result types for the quiz validators.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class IssueCategory(Enum):
    STRUCTURE = "structure"
    CONTENT = "content"
    MEDICAL = "medical"
    PEDAGOGICAL = "pedagogical"


class IssueSeverity(Enum):
    """Severity of a blocking or score-reducing issue"""
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class WarningCategory(Enum):
    QUALITY = "quality"
    STYLE = "style"
    OPTIMIZATION = "optimization"
    LEVEL_SPECIFIC = "level-specific"


class RecommendationPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {
    RecommendationPriority.HIGH: 0,
    RecommendationPriority.MEDIUM: 1,
    RecommendationPriority.LOW: 2,
}


@dataclass
class ValidationIssue:
    """A problem that reduces the score; critical ones block acceptance."""
    category: IssueCategory
    severity: IssueSeverity
    field: str                      # e.g. "questions[1].options[2].text"
    message: str
    suggestion: str = ""
    pattern: Optional[str] = None   # matched regex for inappropriate content

    @property
    def is_critical(self) -> bool:
        return self.severity == IssueSeverity.CRITICAL


@dataclass
class ValidationWarning:
    """Non-blocking observation"""
    category: WarningCategory
    message: str
    suggestion: str = ""
    field: Optional[str] = None


@dataclass
class ValidationRecommendation:
    category: str
    priority: RecommendationPriority
    action: str
    rationale: str = ""


@dataclass
class CheckReport:
    """Output of one validator pass"""
    is_valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    recommendations: List[ValidationRecommendation] = field(default_factory=list)
    penalty: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    def merge_into(self, issues: List[ValidationIssue], warnings: List[ValidationWarning],
                   recommendations: List[ValidationRecommendation]) -> None:
        issues.extend(self.issues)
        warnings.extend(self.warnings)
        recommendations.extend(self.recommendations)


@dataclass
class ValidationMetadata:
    validated_at: datetime = field(default_factory=datetime.utcnow)
    level: Optional[str] = None
    question_count: int = 0
    terminology_ratio: float = 0.0
    average_question_length: float = 0.0
    average_explanation_length: float = 0.0
    difficulty_distribution: Dict[str, int] = field(default_factory=dict)
    processing_time_ms: float = 0.0


@dataclass
class ValidationSummary:
    total_issues: int = 0
    critical_issues: int = 0
    major_issues: int = 0
    minor_issues: int = 0
    warnings: int = 0
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    """Complete outcome of validating a quiz draft"""
    is_valid: bool
    overall_score: float
    category_scores: Dict[str, float]
    issues: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    recommendations: List[ValidationRecommendation] = field(default_factory=list)
    metadata: ValidationMetadata = field(default_factory=ValidationMetadata)

    # Populated by ValidationOrchestrator only
    component_scores: Dict[str, float] = field(default_factory=dict)
    summary: Optional[ValidationSummary] = None
    can_proceed_to_creation: bool = False

    def issues_with_severity(self, severity: IssueSeverity) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def critical_issues(self) -> List[ValidationIssue]:
        return self.issues_with_severity(IssueSeverity.CRITICAL)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation (enums as values, datetimes as ISO strings)."""
        def convert(value):
            if isinstance(value, Enum):
                return value.value
            if isinstance(value, datetime):
                return value.isoformat()
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            if isinstance(value, list):
                return [convert(v) for v in value]
            return value

        return convert(asdict(self))


def count_severities(issues: List[ValidationIssue]) -> Dict[IssueSeverity, int]:
    counts = {severity: 0 for severity in IssueSeverity}
    for issue in issues:
        counts[issue.severity] += 1
    return counts
