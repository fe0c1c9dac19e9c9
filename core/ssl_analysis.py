import logging
import asyncio
import math
import ssl
import httpx
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.config import SSL_REMOTE_SLACK
from core.errors import CertificateUnavailableError, RemoteAnalysisError
from core.models import Finding, ProbeResult
from core.probe import INVALID_DOMAIN_MESSAGE, Probe
from core.utils import extract_domain, get_hostname
from integrations.ssllabs import SSLLabsClient, STATUS_ERROR, STATUS_READY

TRUSTED_ISSUERS = ["Let's Encrypt", "DigiCert", "Google Trust Services", "Amazon"]
EXPIRY_WARNING_DAYS = 30
SECONDS_PER_DAY = 86400

# Remote tier failures that fall back to the local handshake
REMOTE_FAILURES = (
    RemoteAnalysisError, httpx.HTTPError, asyncio.TimeoutError,
    KeyError, IndexError, TypeError, ValueError, OverflowError, OSError,
)


@dataclass
class CertificateInfo:
    expires_at: datetime
    issuer: str
    source: str  # "remote" or "local"


def is_trusted_issuer(issuer: str) -> bool:
    """Case-insensitive substring match of issuer against the trusted CA list."""
    issuer = str(issuer or "").lower()
    return any(trusted.lower() in issuer for trusted in TRUSTED_ISSUERS)


def _parse_expiry(value: Any) -> datetime:
    """Parses a notAfter value given as epoch milliseconds or an ISO-8601 string."""
    if isinstance(value, bool):
        raise ValueError(f"Unsupported certificate expiry value: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"Unsupported certificate expiry value: {value!r}")


class LocalCertificateInspector:
    """
    Reads the peer certificate from a direct TLS handshake. No data is exchanged
    beyond the handshake itself.
    """
    def __init__(self, port: int = 443, timeout: float = 10):
        self.port = port
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    async def inspect(self, hostname: str) -> CertificateInfo:
        """
        Performs a verified TLS handshake with hostname and extracts expiry and issuer.

        Raises:
            CertificateUnavailableError: If the handshake fails or no usable certificate
                                         was presented.
        """
        self.logger.info(f"Inspecting certificate of {hostname}:{self.port} directly")
        context = ssl.create_default_context()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(hostname, self.port, ssl=context, server_hostname=hostname),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, OSError) as e:
            raise CertificateUnavailableError(f"Local SSL check failed for {hostname}: {e}") from e

        try:
            cert = writer.get_extra_info("peercert")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                self.logger.debug(f"Error closing TLS connection to {hostname}: {e}")

        if not cert or not cert.get("notAfter"):
            raise CertificateUnavailableError(f"No certificate information returned by {hostname}")

        # 'issuer' is a tuple of RDNs, each a tuple of (key, value) pairs
        issuer = dict(x[0] for x in cert.get("issuer", ()))
        expires_at = datetime.fromtimestamp(ssl.cert_time_to_seconds(cert["notAfter"]), tz=timezone.utc)
        return CertificateInfo(
            expires_at=expires_at,
            issuer=issuer.get("organizationName") or issuer.get("commonName") or "Unknown Issuer",
            source="local",
        )


class CertificateAcquirer:
    """
    Two-tier certificate acquisition: a remote analysis service polled at a fixed
    interval for a bounded number of attempts, falling back to a direct handshake
    when the remote tier fails for any reason.
    """
    def __init__(self, remote: SSLLabsClient, local: LocalCertificateInspector,
                 poll_interval: float = 5, max_polls: int = 15,
                 remote_timeout: Optional[float] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """
        Args:
            remote (SSLLabsClient): Client for the remote analysis service.
            local (LocalCertificateInspector): Direct handshake fallback.
            poll_interval (float): Seconds to wait before each status poll.
            max_polls (int): Maximum number of status polls.
            remote_timeout (float, optional): Deadline for the whole remote tier; defaults
                                              to max_polls * poll_interval plus a fixed slack.
            sleep (Callable): Awaitable timer; injectable so tests need not wait.
        """
        self.remote = remote
        self.local = local
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.remote_timeout = remote_timeout or max_polls * poll_interval + SSL_REMOTE_SLACK
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

    async def acquire(self, hostname: str) -> CertificateInfo:
        try:
            return await asyncio.wait_for(self._acquire_remote(hostname), timeout=self.remote_timeout)
        except REMOTE_FAILURES as e:
            reason = str(e) or f"no result within {self.remote_timeout}s"
            self.logger.warning(f"Remote SSL analysis failed for {hostname}, trying local inspection: {reason}")
        return await self.local.inspect(hostname)

    async def _acquire_remote(self, hostname: str) -> CertificateInfo:
        await self.remote.start_analysis(hostname)

        analysis = None
        for attempt in range(1, self.max_polls + 1):
            await self.sleep(self.poll_interval)
            data = await self.remote.get_status(hostname)
            if data.get("status") in (STATUS_READY, STATUS_ERROR):
                analysis = data
                break
            self.logger.info(f"Waiting for SSL analysis of {hostname}... ({attempt}/{self.max_polls})")

        if analysis is None:
            raise RemoteAnalysisError(f"No result for {hostname} after {self.max_polls} polls")
        if analysis["status"] == STATUS_ERROR:
            raise RemoteAnalysisError(
                f"SSL analysis failed for {hostname} ({analysis.get('statusMessage') or 'no reason given'})"
            )

        cert = analysis["endpoints"][0]["details"]["cert"]
        return CertificateInfo(
            expires_at=_parse_expiry(cert["notAfter"]),
            issuer=str(cert.get("issuerLabel") or ""),
            source="remote",
        )


class SSLProbe(Probe):
    """
    Scores the TLS certificate posture of the target host: expiry and issuer.
    """
    name = "ssl"
    weight_keys = ("ssl_expired", "ssl_expiring_soon", "ssl_untrusted_issuer")

    def __init__(self, weights: Dict[str, float], acquirer: CertificateAcquirer,
                 clock: Callable[[], datetime] = None):
        super().__init__(weights)
        self.acquirer = acquirer
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def run(self, target: str) -> ProbeResult:
        self.logger.info(f"Starting SSL certificate analysis for: {target}")
        hostname = get_hostname(target)
        if not hostname or not extract_domain(target):
            self.logger.warning(f"Skipping SSL analysis for {target}: no domain could be parsed")
            return ProbeResult.failure(INVALID_DOMAIN_MESSAGE)

        cert = await self.acquirer.acquire(hostname)
        return self.score_certificate(cert)

    def score_certificate(self, cert: CertificateInfo) -> ProbeResult:
        """Applies the expiry and issuer rules to certificate data from either tier."""
        score = 0
        findings: List[Finding] = []

        days_remaining = math.ceil((cert.expires_at - self.clock()).total_seconds() / SECONDS_PER_DAY)
        if days_remaining <= 0:
            findings.append(Finding(f"Certificate has expired (expired on {cert.expires_at.date()})", 3))
            score += self.weights["ssl_expired"]
            self.logger.warning(f"  [EXPIRED] Certificate expired on {cert.expires_at.date()}")
        elif days_remaining < EXPIRY_WARNING_DAYS:
            findings.append(Finding(f"Certificate expires soon ({days_remaining} days remaining)", 2))
            score += self.weights["ssl_expiring_soon"]
            self.logger.warning(f"  [EXPIRING] Certificate expires in {days_remaining} days")

        if not is_trusted_issuer(cert.issuer):
            findings.append(Finding(f"Untrusted certificate issuer: {cert.issuer or 'unknown'}", 2))
            score += self.weights["ssl_untrusted_issuer"]
            self.logger.warning(f"  [UNTRUSTED] Certificate issuer: {cert.issuer}")

        return self._result(score, findings, meta={
            "source": cert.source,
            "issuer": cert.issuer,
            "expiresAt": cert.expires_at.isoformat(),
            "daysRemaining": days_remaining,
        })
