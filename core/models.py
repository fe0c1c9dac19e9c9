import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

MAX_PER_SECTION = 100
FAILURE_SCORE = 50
FAILURE_SEVERITY = 3


class Grade(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    DANGER = "danger"


def round_half_up(value: float) -> int:
    """Rounds x.5 upwards instead of to the nearest even integer."""
    return int(math.floor(value + 0.5))


@dataclass
class Finding:
    """A single observation made by a probe. Severity is informational only."""
    message: str
    severity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "severity": self.severity}


@dataclass
class ProbeResult:
    """
    The outcome of one probe run.

    Fields:
        score:    Non-negative risk score; the only number that is aggregated.
        grade:    The probe-local grade derived from score.
        findings: Ordered findings explaining the score.
        meta:     Optional probe-specific context (domain, records, dates).
    """
    score: float
    grade: Grade
    findings: List[Finding] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, message: str) -> "ProbeResult":
        """Builds the fixed high-risk result used for unusable input and failed probes."""
        return cls(
            score=FAILURE_SCORE,
            grade=Grade.DANGER,
            findings=[Finding(message, FAILURE_SEVERITY)],
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "score": self.score,
            "grade": self.grade.value,
            "findings": [f.to_dict() for f in self.findings],
        }
        if self.meta:
            data["meta"] = self.meta
        return data


@dataclass
class SectionOutcome:
    """A ProbeResult tagged with the name of the probe that produced it."""
    probe: str
    score: float
    grade: Grade
    findings: List[Finding] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    failed: bool = False

    @classmethod
    def from_result(cls, probe: str, result: ProbeResult, failed: bool = False) -> "SectionOutcome":
        return cls(
            probe=probe,
            score=result.score,
            grade=result.grade,
            findings=list(result.findings),
            meta=dict(result.meta),
            failed=failed,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "probe": self.probe,
            "score": self.score,
            "grade": self.grade.value,
            "findings": [f.to_dict() for f in self.findings],
            "failed": self.failed,
        }
        if self.meta:
            data["meta"] = self.meta
        return data


@dataclass
class AssessmentMeta:
    section_count: int
    max_per_section: int
    max_total: int
    total_risk: float
    total_safe: float
    avg_safe_per_section: int
    safe_score_100: int

    @classmethod
    def from_total_risk(cls, total_risk: float, section_count: int,
                        max_per_section: int = MAX_PER_SECTION) -> "AssessmentMeta":
        """
        Derives the normalized totals from the summed section risk.

        Args:
            total_risk (float): Sum of all section scores.
            section_count (int): Number of configured probes (must be positive).
            max_per_section (int): Maximum risk a single section contributes.

        Returns:
            AssessmentMeta: The derived totals.
        """
        if section_count <= 0:
            raise ValueError("section_count must be positive")
        max_total = max_per_section * section_count
        total_safe = max(0, max_total - total_risk)
        return cls(
            section_count=section_count,
            max_per_section=max_per_section,
            max_total=max_total,
            total_risk=total_risk,
            total_safe=total_safe,
            avg_safe_per_section=round_half_up(total_safe / section_count),
            safe_score_100=round_half_up(total_safe / max_total * 100),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sectionCount": self.section_count,
            "maxPerSection": self.max_per_section,
            "maxTotal": self.max_total,
            "totalRisk": self.total_risk,
            "totalSafe": self.total_safe,
            "avgSafePerSection": self.avg_safe_per_section,
            "safeScore100": self.safe_score_100,
        }


@dataclass
class AssessmentResult:
    target: str
    details: Dict[str, SectionOutcome]
    total_score: int
    overall_grade: Grade
    meta: AssessmentMeta

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "details": {name: outcome.to_dict() for name, outcome in self.details.items()},
            "totalScore": self.total_score,
            "overallGrade": self.overall_grade.value,
            "meta": self.meta.to_dict(),
        }
