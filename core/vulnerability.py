import httpx
from bs4 import BeautifulSoup
from typing import Dict, List

from core.models import Finding, ProbeResult
from core.probe import Probe
from core.utils import fetch_url, normalize_url

# Harmless marker tag; if it comes back unescaped the page reflects raw input.
XSS_MARKER = "<phishscope-xss-probe>"
XSS_PARAM = "q"


class VulnerabilityProbe(Probe):
    """
    Looks for common web vulnerability indicators on the landing page: reflected
    input, missing framing protection, file upload forms and directory listings.
    """
    name = "vulnerability"
    weight_keys = ("vuln_xss", "vuln_clickjacking", "vuln_file_upload", "vuln_dir_listing")

    def __init__(self, weights: Dict[str, float], client: httpx.AsyncClient, timeout: float = 10):
        super().__init__(weights)
        self.client = client
        self.timeout = timeout

    async def run(self, target: str) -> ProbeResult:
        url = normalize_url(target)
        self.logger.info(f"Starting vulnerability indicator checks for: {url}")

        response = await fetch_url(url, self.client, timeout=self.timeout)
        soup = BeautifulSoup(response.text, 'html.parser')
        headers = {k.lower(): v for k, v in response.headers.items()}

        score = 0
        findings: List[Finding] = []

        reflected = await self._check_reflection(url, findings)
        if reflected:
            score += self.weights["vuln_xss"]
            findings.append(Finding(f"Query parameter '{XSS_PARAM}' is reflected without escaping (possible XSS)", 3))
            self.logger.warning(f"  [XSS] Unescaped reflection of '{XSS_PARAM}' on {url}")

        csp = headers.get("content-security-policy", "").lower()
        if "x-frame-options" not in headers and "frame-ancestors" not in csp:
            score += self.weights["vuln_clickjacking"]
            findings.append(Finding("Page can be framed by any site (clickjacking)", 2))
            self.logger.warning(f"  [CLICKJACKING] No framing protection on {url}")

        if soup.select('form input[type="file"]'):
            score += self.weights["vuln_file_upload"]
            findings.append(Finding("Page exposes a file upload form", 2))
            self.logger.warning(f"  [UPLOAD] File upload form found on {url}")

        title = soup.title.get_text(strip=True) if soup.title else ""
        if title.lower().startswith("index of /"):
            score += self.weights["vuln_dir_listing"]
            findings.append(Finding("Directory listing is enabled", 2))
            self.logger.warning(f"  [LISTING] Directory listing on {url}")

        return self._result(score, findings)

    async def _check_reflection(self, url: str, findings: List[Finding]) -> bool:
        """Sends the marker in a query parameter and reports whether it is echoed verbatim."""
        try:
            response = await self.client.get(url, params={XSS_PARAM: XSS_MARKER},
                                             timeout=self.timeout, follow_redirects=True)
        except httpx.RequestError as exc:
            self.logger.debug(f"Reflection check request failed for {url}: {exc}")
            findings.append(Finding("Reflection check could not be completed", 1))
            return False
        return XSS_MARKER in response.text
