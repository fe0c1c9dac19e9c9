import asyncio
import pytest

from conftest import FailingProbe, SlowProbe, StaticProbe
from core.aggregator import Aggregator
from core.models import Grade


def _assess(probes, target="https://example.com", **kwargs):
    return asyncio.run(Aggregator(probes, **kwargs).assess(target))


def test_one_section_per_probe_in_configured_order():
    probes = [StaticProbe("url", 0), StaticProbe("header", 10), StaticProbe("dns", 5)]
    result = _assess(probes)
    assert list(result.details) == ["url", "header", "dns"]
    assert result.details["header"].score == 10
    assert result.target == "https://example.com"


def test_all_clean_is_safe_and_full_score():
    probes = [StaticProbe(name, 0) for name in ("a", "b", "c", "d", "e", "f")]
    result = _assess(probes)
    assert result.total_score == 100
    assert result.meta.safe_score_100 == 100
    assert result.meta.total_risk == 0
    assert result.overall_grade == Grade.SAFE


def test_overall_grade_follows_total_risk_not_safe_score():
    # 60 risk out of 600 still reads as 90% safe, but the summed risk is danger
    probes = [StaticProbe(name, 10) for name in ("a", "b", "c", "d", "e", "f")]
    result = _assess(probes)
    assert result.meta.total_risk == 60
    assert result.meta.safe_score_100 == 90
    assert result.total_score == 90
    assert result.overall_grade == Grade.DANGER
    for section in result.details.values():
        assert section.grade == Grade.SAFE


def test_failing_probe_is_isolated():
    probes = [StaticProbe("url", 0), FailingProbe("whois"), StaticProbe("dns", 20)]
    result = _assess(probes)
    assert set(result.details) == {"url", "whois", "dns"}

    failed = result.details["whois"]
    assert failed.failed is True
    assert failed.score == 50
    assert failed.grade == Grade.DANGER
    assert "boom" in failed.findings[0].message
    assert failed.findings[0].severity == 3

    assert result.details["dns"].failed is False
    assert result.meta.total_risk == 70


def test_timed_out_probe_becomes_failure():
    probes = [StaticProbe("url", 0), SlowProbe("ssl", delay=5)]
    result = _assess(probes, probe_timeout=0.05)
    assert result.details["ssl"].failed is True
    assert result.details["ssl"].score == 50
    assert "timed out" in result.details["ssl"].findings[0].message


def test_probes_run_concurrently():
    probes = [SlowProbe(name, delay=0.2) for name in ("a", "b", "c", "d")]

    async def timed():
        loop = asyncio.get_running_loop()
        start = loop.time()
        await Aggregator(probes).assess("example.com")
        return loop.time() - start

    assert asyncio.run(timed()) < 0.6


def test_section_count_follows_configuration():
    result = _assess([StaticProbe("url", 0), StaticProbe("dns", 0)])
    assert result.meta.section_count == 2
    assert result.meta.max_total == 200


def test_rejects_empty_probe_list():
    with pytest.raises(ValueError):
        Aggregator([])


def test_rejects_duplicate_probe_names():
    with pytest.raises(ValueError):
        Aggregator([StaticProbe("url", 0), StaticProbe("url", 1)])


def test_result_serializes_with_camel_case_totals():
    data = _assess([StaticProbe("url", 30)]).to_dict()
    assert data["totalScore"] == 70
    assert data["overallGrade"] == "caution"
    assert data["details"]["url"]["grade"] == "caution"
    assert data["meta"]["maxTotal"] == 100
