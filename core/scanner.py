import logging
import httpx
from typing import Dict, List, Optional

from core.aggregator import Aggregator
from core.coalescer import RequestCoalescer
from core.config import Settings
from core.dns_analysis import DnsProbe
from core.headers import HeaderProbe
from core.models import AssessmentResult
from core.probe import Probe
from core.ssl_analysis import CertificateAcquirer, LocalCertificateInspector, SSLProbe
from core.url_patterns import UrlPatternProbe
from core.utils import get_random_user_agent
from core.vulnerability import VulnerabilityProbe
from core.weights import load_weights
from core.whois_analysis import WhoisProbe
from integrations.ssllabs import SSLLabsClient


def build_probes(settings: Settings, client: httpx.AsyncClient, weights: Dict[str, float]) -> List[Probe]:
    """
    Constructs the configured probe set. Each probe validates that every weight it
    reads is present, so an incomplete weight table fails here rather than at scoring.
    """
    acquirer = CertificateAcquirer(
        remote=SSLLabsClient(client, api_base_url=settings.ssl_api_url, timeout=settings.http_timeout),
        local=LocalCertificateInspector(timeout=settings.tls_timeout),
        poll_interval=settings.ssl_poll_interval,
        max_polls=settings.ssl_max_polls,
        remote_timeout=settings.ssl_remote_budget,
    )
    return [
        UrlPatternProbe(weights),
        HeaderProbe(weights, client, timeout=settings.http_timeout),
        SSLProbe(weights, acquirer),
        VulnerabilityProbe(weights, client, timeout=settings.http_timeout),
        WhoisProbe(weights, timeout=settings.whois_timeout),
        DnsProbe(weights, timeout=settings.dns_timeout),
    ]


class Scanner:
    """
    The main scanning engine for PhishScope. Owns the shared httpx client, the probe
    set, the Aggregator and the RequestCoalescer, and is the single entry point used
    by both the CLI and the HTTP API.
    """
    def __init__(self, settings: Settings, client: httpx.AsyncClient = None,
                 weights: Optional[Dict[str, float]] = None, probes: Optional[List[Probe]] = None):
        """
        Initializes the Scanner.

        Args:
            settings (Settings): Runtime settings.
            client (httpx.AsyncClient, optional): An existing client. If None, one is created
                                                  and closed by `aclose`.
            weights (Dict[str, float], optional): Weight table; loaded from settings if None.
            probes (List[Probe], optional): Probe set; built from settings if None.

        Raises:
            ConfigError: If the settings or the weights file are invalid.
        """
        self.settings = settings.validate()
        self.logger = logging.getLogger(__name__)
        self.weights = weights if weights is not None else load_weights(settings.weights_file)
        self._own_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=settings.http_timeout,
            follow_redirects=True,
            headers={"User-Agent": get_random_user_agent()},
        )
        self.probes = probes if probes is not None else build_probes(settings, self.client, self.weights)
        self.aggregator = Aggregator(self.probes, probe_timeout=settings.probe_timeout)
        self.coalescer = RequestCoalescer(self.aggregator.assess)
        self.logger.info(f"Scanner initialized with probes: {', '.join(p.name for p in self.probes)}")

    async def analyze(self, target: str) -> AssessmentResult:
        return await self.coalescer.submit(target)

    async def aclose(self):
        await self.coalescer.close()
        if self._own_client:
            await self.client.aclose()
            self.logger.debug("HTTPX client closed.")
