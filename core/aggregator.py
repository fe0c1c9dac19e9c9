import logging
import asyncio
from typing import List, Optional, Sequence

from core.grading import grade_from_score
from core.models import AssessmentMeta, AssessmentResult, ProbeResult, SectionOutcome
from core.probe import Probe


class Aggregator:
    """
    Runs every configured probe for a target concurrently and folds their
    scores into one assessment. A failing probe never aborts the others: its
    exception becomes a fixed high-risk section outcome.
    """
    def __init__(self, probes: Sequence[Probe], probe_timeout: Optional[float] = None):
        """
        Args:
            probes (Sequence[Probe]): The configured probes; names must be unique.
            probe_timeout (float, optional): Upper bound for a single probe run in seconds.
        """
        if not probes:
            raise ValueError("Aggregator requires at least one probe")
        names = [p.name for p in probes]
        if len(set(names)) != len(names):
            raise ValueError(f"Probe names must be unique, got {names}")
        self.probes: List[Probe] = list(probes)
        self.probe_timeout = probe_timeout
        self.logger = logging.getLogger(__name__)

    async def _run_probe(self, probe: Probe, target: str) -> SectionOutcome:
        try:
            if self.probe_timeout:
                result = await asyncio.wait_for(probe.run(target), timeout=self.probe_timeout)
            else:
                result = await probe.run(target)
        except asyncio.TimeoutError:
            self.logger.error(f"Probe '{probe.name}' timed out for {target}")
            return SectionOutcome.from_result(
                probe.name, ProbeResult.failure(f"{probe.name} analysis timed out"), failed=True)
        except Exception as e:
            self.logger.error(f"Probe '{probe.name}' failed for {target}: {e}", exc_info=True)
            return SectionOutcome.from_result(
                probe.name, ProbeResult.failure(f"{probe.name} analysis failed: {e}"), failed=True)
        return SectionOutcome.from_result(probe.name, result)

    async def assess(self, target: str) -> AssessmentResult:
        """
        Assesses a target with all probes.

        Args:
            target (str): The URL or domain to assess.

        Returns:
            AssessmentResult: One section per configured probe plus the derived totals.
        """
        self.logger.info(f"Starting site analysis for: {target}")
        outcomes = await asyncio.gather(*(self._run_probe(p, target) for p in self.probes))
        details = {outcome.probe: outcome for outcome in outcomes}

        total_risk = sum(outcome.score for outcome in outcomes)
        meta = AssessmentMeta.from_total_risk(total_risk, section_count=len(self.probes))
        # The grade follows the raw risk sum, not the normalized safe score
        overall_grade = grade_from_score(total_risk)

        self.logger.info(f"[Total risk] {total_risk}/{meta.max_total}")
        self.logger.info(f"[Safe score] {meta.total_safe}/{meta.max_total} -> average: "
                         f"{meta.avg_safe_per_section}, percentage: {meta.safe_score_100}")
        self.logger.info(f"[Grade (risk based)] {overall_grade.value}")

        return AssessmentResult(
            target=target,
            details=details,
            total_score=meta.avg_safe_per_section,
            overall_grade=overall_grade,
            meta=meta,
        )
