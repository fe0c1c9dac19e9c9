import re
from typing import List
from urllib.parse import unquote, urlparse

from core.models import Finding, ProbeResult
from core.probe import INVALID_DOMAIN_MESSAGE, Probe
from core.utils import normalize_url

SENSITIVE_PATHS = [
    "/admin", "/administrator", "/login", "/signin", "/wp-admin", "/wp-login.php",
    "/phpmyadmin", "/.env", "/.git", "/config", "/backup", "/server-status",
]

INJECTION_PATTERNS = [
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"on(error|load|mouseover)\s*=", re.IGNORECASE),
    re.compile(r"'\s*or\s*'?\d+'?\s*=\s*'?\d+", re.IGNORECASE),
    re.compile(r"\bunion\b\s+(all\s+)?\bselect\b", re.IGNORECASE),
    re.compile(r"(\.\./|\.\.\\)"),
    re.compile(r";\s*(drop|delete|insert|update)\s", re.IGNORECASE),
]


class UrlPatternProbe(Probe):
    """Heuristics on the URL string itself. Makes no network calls."""
    name = "url"
    weight_keys = ("url_http_usage", "url_sensitive_path", "url_injection_pattern")

    async def run(self, target: str) -> ProbeResult:
        self.logger.info(f"Starting URL pattern analysis for: {target}")
        # Bare domains are assumed to be served over HTTPS, so only an explicit
        # http:// scheme counts as plain-text usage.
        try:
            parsed = urlparse(normalize_url(target))
        except ValueError:
            return ProbeResult.failure(INVALID_DOMAIN_MESSAGE)
        if not parsed.hostname:
            return ProbeResult.failure(INVALID_DOMAIN_MESSAGE)

        score = 0
        findings: List[Finding] = []

        if parsed.scheme.lower() == "http":
            score += self.weights["url_http_usage"]
            findings.append(Finding("Site is accessed over plain HTTP instead of HTTPS", 2))
            self.logger.warning(f"  [HTTP] {target} does not use HTTPS")

        path = unquote(parsed.path).lower()
        matched_path = next((p for p in SENSITIVE_PATHS if path == p or path.startswith(p + "/")
                             or path.startswith(p + ".")), None)
        if matched_path:
            score += self.weights["url_sensitive_path"]
            findings.append(Finding(f"URL points at a sensitive path ({matched_path})", 2))
            self.logger.warning(f"  [PATH] Sensitive path in URL: {matched_path}")

        # Decode twice so double-encoded payloads are caught too
        tail = unquote(unquote(f"{parsed.path}?{parsed.query}#{parsed.fragment}"))
        if any(pattern.search(tail) for pattern in INJECTION_PATTERNS):
            score += self.weights["url_injection_pattern"]
            findings.append(Finding("URL contains an injection-style pattern (script, SQL or traversal)", 3))
            self.logger.warning(f"  [INJECTION] Suspicious pattern in URL: {target}")

        return self._result(score, findings)
