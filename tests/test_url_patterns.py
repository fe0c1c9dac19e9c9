import asyncio
import pytest

from core.models import Grade
from core.url_patterns import UrlPatternProbe


def _run(weights, target):
    return asyncio.run(UrlPatternProbe(weights).run(target))


@pytest.mark.parametrize("target,expected", [
    ("https://example.com", 0),
    ("example.com", 0),
    ("https://example.com/blog/post-1?page=2", 0),
    ("https://example.com/loginpage", 0),
    ("http://example.com", 30),
    ("https://example.com/admin/users", 28),
    ("https://example.com/login.php", 28),
    ("https://example.com/.env", 28),
    ("https://example.com/search?q=<script>alert(1)</script>", 42),
    ("https://example.com/item?id=1' OR '1'='1", 42),
    ("https://example.com/files?path=../../etc/passwd", 42),
    ("https://example.com/?q=%253Cscript%253E", 42),
    ("https://example.com/go?next=javascript:alert(1)", 42),
    ("http://example.com/wp-admin/?x=1 UNION SELECT password FROM users", 30 + 28 + 42),
])
def test_url_pattern_scores(weights, target, expected):
    assert _run(weights, target).score == expected


def test_combined_patterns_are_danger(weights):
    result = _run(weights, "http://example.com/admin?q=<script>")
    assert result.grade == Grade.DANGER
    assert len(result.findings) == 3


@pytest.mark.parametrize("target", ["http://", "https:///path-only", "   "])
def test_unparseable_target_is_declared_failure(weights, target):
    result = _run(weights, target)
    assert result.score == 50
    assert result.grade == Grade.DANGER
