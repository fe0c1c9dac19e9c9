import logging
import asyncio
from typing import Awaitable, Callable, Dict

from core.models import AssessmentResult


class RequestCoalescer:
    """
    Shares one in-flight assessment among concurrent requests for the same target.

    The registry is keyed by the exact target string. Entries are removed as soon as
    the assessment finishes, successfully or not, so nothing is cached: the next
    request for that target starts a fresh assessment.
    """
    def __init__(self, assess: Callable[[str], Awaitable[AssessmentResult]]):
        """
        Args:
            assess (Callable): Coroutine function performing one assessment,
                               normally Aggregator.assess.
        """
        self._assess = assess
        self._inflight: Dict[str, asyncio.Task] = {}
        self.logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._inflight)

    def in_flight(self, target: str) -> bool:
        return target in self._inflight

    async def _run(self, target: str) -> AssessmentResult:
        try:
            return await self._assess(target)
        finally:
            self._inflight.pop(target, None)

    def _on_done(self, target: str, task: asyncio.Task) -> None:
        # Consume the outcome so a failure is logged even when every waiter has gone
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.warning(f"Assessment for {target} failed: {exc}")

    def _get_or_start(self, target: str) -> asyncio.Task:
        # No await between lookup and insert, so this is atomic on the event loop
        task = self._inflight.get(target)
        if task is None:
            task = asyncio.ensure_future(self._run(target))
            task.add_done_callback(lambda t: self._on_done(target, t))
            self._inflight[target] = task
            self.logger.debug(f"Started new assessment for {target}")
        else:
            self.logger.info(f"Joining in-flight assessment for {target}")
        return task

    async def submit(self, target: str) -> AssessmentResult:
        """
        Returns the outcome of the assessment for target, starting one only if none is
        running. Errors raised by the assessment propagate to every waiter.

        A waiter that is cancelled stops waiting, but the shared assessment keeps running
        for the others.
        """
        return await asyncio.shield(self._get_or_start(target))

    async def close(self) -> None:
        """Cancels and drains any assessments still running."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
