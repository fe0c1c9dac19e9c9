import httpx
from typing import Dict, List

from core.models import Finding, ProbeResult
from core.probe import Probe
from core.utils import fetch_url, normalize_url


class HeaderProbe(Probe):
    """
    Analyzes HTTP security headers of a target URL to identify missing or insecure configurations.
    """
    name = "header"
    weight_keys = (
        "header_csp",
        "header_x_frame_options",
        "header_hsts",
        "header_content_type_options",
        "header_cors_wildcard",
    )

    def __init__(self, weights: Dict[str, float], client: httpx.AsyncClient, timeout: float = 10):
        """
        Initializes the HeaderProbe.

        Args:
            weights (Dict[str, float]): The rule weight table.
            client (httpx.AsyncClient): The shared httpx client.
            timeout (float): Request timeout in seconds.
        """
        super().__init__(weights)
        self.client = client
        self.timeout = timeout
        self.frame_options = ["DENY", "SAMEORIGIN"]

    async def run(self, target: str) -> ProbeResult:
        """
        Fetches the target and scores its security headers.

        Args:
            target (str): The target URL or domain.

        Returns:
            ProbeResult: Score and findings for missing/insecure headers.
        """
        url = normalize_url(target)
        self.logger.info(f"Starting header analysis for: {url}")

        response = await fetch_url(url, self.client, timeout=self.timeout)
        headers = {k.lower(): v for k, v in response.headers.items()}

        score = 0
        findings: List[Finding] = []

        csp = headers.get("content-security-policy")
        if not csp:
            score += self.weights["header_csp"]
            findings.append(Finding("Content-Security-Policy header is missing", 2))
            self.logger.warning("  [MISSING] Header: Content-Security-Policy")
        else:
            for issue in self._analyze_csp(csp):
                findings.append(Finding(issue, 1))

        frame_options = headers.get("x-frame-options")
        if not frame_options:
            score += self.weights["header_x_frame_options"]
            findings.append(Finding("X-Frame-Options header is missing", 2))
            self.logger.warning("  [MISSING] Header: X-Frame-Options")
        elif frame_options.strip().upper() not in self.frame_options:
            score += self.weights["header_x_frame_options"]
            findings.append(Finding(f"X-Frame-Options has an unrecommended value: '{frame_options}'", 2))
            self.logger.warning(f"  [INSECURE] X-Frame-Options: {frame_options}")

        if "strict-transport-security" not in headers:
            score += self.weights["header_hsts"]
            findings.append(Finding("Strict-Transport-Security header is missing", 2))
            self.logger.warning("  [MISSING] Header: Strict-Transport-Security")

        content_type_options = headers.get("x-content-type-options", "")
        if content_type_options.strip().lower() != "nosniff":
            score += self.weights["header_content_type_options"]
            findings.append(Finding("X-Content-Type-Options is not set to 'nosniff'", 1))
            self.logger.warning(f"  [INSECURE] X-Content-Type-Options: {content_type_options or 'missing'}")

        if headers.get("access-control-allow-origin", "").strip() == "*":
            score += self.weights["header_cors_wildcard"]
            findings.append(Finding("CORS allows any origin (Access-Control-Allow-Origin: *)", 2))
            self.logger.warning("  [INSECURE] Access-Control-Allow-Origin: *")

        return self._result(score, findings, meta={"statusCode": response.status_code})

    def _analyze_csp(self, csp_policy: str) -> List[str]:
        """
        Reports permissive Content-Security-Policy directives. These are informational
        and do not add to the score.
        """
        issues = []
        for directive in (d.strip() for d in csp_policy.split(';')):
            if not directive:
                continue
            name = directive.split(' ')[0]
            value = directive.lower()
            if "unsafe-inline" in value:
                issues.append(f"CSP '{name}' allows 'unsafe-inline'")
            if "unsafe-eval" in value:
                issues.append(f"CSP '{name}' allows 'unsafe-eval'")
        return issues
