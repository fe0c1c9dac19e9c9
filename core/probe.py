import logging
from typing import Any, Dict, List, Optional, Tuple

from core.grading import grade_from_score
from core.models import Finding, ProbeResult
from core.weights import require_weights

INVALID_DOMAIN_MESSAGE = "Invalid URL or the domain could not be parsed"


class Probe:
    """
    Base class for a single risk dimension.

    Subclasses set `name` (the section key in an assessment) and `weight_keys`
    (every rule weight they read), and implement `run`. `run` must return a
    declared-failure result for unusable input and may raise for anything
    unexpected; the Aggregator isolates those exceptions.
    """
    name: str = ""
    weight_keys: Tuple[str, ...] = ()

    def __init__(self, weights: Dict[str, float]):
        require_weights(weights, self.weight_keys, owner=self.__class__.__name__)
        self.weights = weights
        self.logger = logging.getLogger(self.__class__.__module__)

    async def run(self, target: str) -> ProbeResult:
        raise NotImplementedError

    def _result(self, score: float, findings: List[Finding],
                meta: Optional[Dict[str, Any]] = None) -> ProbeResult:
        grade = grade_from_score(score)
        self.logger.info(f"{self.name} risk score: {score} ({grade.value})")
        return ProbeResult(score=score, grade=grade, findings=findings, meta=meta or {})
