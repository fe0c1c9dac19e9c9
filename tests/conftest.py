# tests/conftest.py
import asyncio
import sys
import pytest
from pathlib import Path

# Ensure the repo root is in sys.path for imports
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.models import ProbeResult
from core.probe import Probe
from core.weights import DEFAULT_WEIGHTS


class StaticProbe(Probe):
    """Returns a fixed score, optionally after a delay, and counts its runs."""
    def __init__(self, name, score, delay=0.0, weights=None):
        self.name = name
        super().__init__(weights or {})
        self.score = score
        self.delay = delay
        self.calls = 0

    async def run(self, target):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._result(self.score, [])


class FailingProbe(Probe):
    def __init__(self, name, exc=None):
        self.name = name
        super().__init__({})
        self.exc = exc or RuntimeError("boom")

    async def run(self, target):
        raise self.exc


class SlowProbe(Probe):
    def __init__(self, name, delay):
        self.name = name
        super().__init__({})
        self.delay = delay

    async def run(self, target):
        await asyncio.sleep(self.delay)
        return self._result(0, [])


@pytest.fixture
def weights():
    return dict(DEFAULT_WEIGHTS)
