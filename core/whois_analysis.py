import asyncio
import json
import whois
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from core.models import Finding, ProbeResult
from core.probe import INVALID_DOMAIN_MESSAGE, Probe
from core.utils import extract_domain

CREATION_DATE_KEYS = ["creation_date", "created_date", "createdDate", "creationDate", "registered_date"]
EXPIRATION_DATE_KEYS = [
    "expiration_date", "expires_date", "expiresDate", "expirationDate",
    "registry_expiry_date", "registrar_registration_expiration_date",
]
RISK_COUNTRIES = ["NG", "RU", "CN"]
DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%d-%b-%Y", "%Y.%m.%d"]


def _parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, (list, tuple)):
        for item in value:
            parsed = _parse_date(item)
            if parsed:
                return parsed
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _first_date(info: Mapping[str, Any], keys: Iterable[str]) -> Optional[datetime]:
    for key in keys:
        if key in info:
            parsed = _parse_date(info[key])
            if parsed:
                return parsed
    return None


def _add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return moment.replace(year=moment.year + years, month=3, day=1)


class WhoisProbe(Probe):
    """
    Scores domain registration data: domain age, registration length, registrant
    privacy and registrant country.
    """
    name = "whois"
    weight_keys = (
        "whois_recent_domain",
        "whois_short_registration",
        "whois_registrant_privacy",
        "whois_risky_country",
        "whois_missing_created_date",
        "whois_missing_expires_date",
    )

    def __init__(self, weights: Dict[str, float], timeout: float = 15,
                 lookup: Callable[[str], Mapping[str, Any]] = None,
                 clock: Callable[[], datetime] = None):
        """
        Args:
            weights (Dict[str, float]): The rule weight table.
            timeout (float): Upper bound for the WHOIS lookup in seconds.
            lookup (Callable): Blocking WHOIS lookup; defaults to python-whois.
            clock (Callable): Returns the current time (UTC-aware).
        """
        super().__init__(weights)
        self.timeout = timeout
        self.lookup = lookup or whois.whois
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def run(self, target: str) -> ProbeResult:
        domain = extract_domain(target)
        if not domain:
            self.logger.warning(f"Invalid URL or domain could not be parsed: {target}")
            return ProbeResult.failure(INVALID_DOMAIN_MESSAGE)

        self.logger.info(f"Starting WHOIS analysis for: {domain}")
        loop = asyncio.get_running_loop()
        # python-whois is blocking, so it runs in the default executor
        info = await asyncio.wait_for(loop.run_in_executor(None, self.lookup, domain), timeout=self.timeout)
        info = dict(info or {})
        now = self.clock()

        score = 0
        findings: List[Finding] = []

        created = _first_date(info, CREATION_DATE_KEYS)
        if created:
            if _add_years(created, 1) > now:
                score += self.weights["whois_recent_domain"]
                findings.append(Finding("Domain was registered less than a year ago", 2))
                self.logger.warning(f"  [RECENT] {domain} created on {created.date()}")
        else:
            score += self.weights["whois_missing_created_date"]
            findings.append(Finding("Domain creation date could not be determined", 1))
            self.logger.warning(f"  [UNKNOWN] Creation date missing for {domain}")

        expires = _first_date(info, EXPIRATION_DATE_KEYS)
        if expires:
            if expires < _add_years(now, 1):
                score += self.weights["whois_short_registration"]
                findings.append(Finding("Domain registration expires within a year", 2))
                self.logger.warning(f"  [SHORT] {domain} expires on {expires.date()}")
        else:
            score += self.weights["whois_missing_expires_date"]
            findings.append(Finding("Domain expiration date could not be determined", 1))
            self.logger.warning(f"  [UNKNOWN] Expiration date missing for {domain}")

        registrant_blob = json.dumps(info, default=str).lower()
        if "privacy" in registrant_blob or "redacted" in registrant_blob:
            score += self.weights["whois_registrant_privacy"]
            findings.append(Finding("Registrant details are hidden (privacy/redacted)", 2))
            self.logger.warning(f"  [PRIVACY] Registrant of {domain} is redacted")

        country = info.get("country") or info.get("Country") or ""
        if isinstance(country, (list, tuple)):
            country = country[0] if country else ""
        country = str(country).strip().upper()
        if country in RISK_COUNTRIES:
            score += self.weights["whois_risky_country"]
            findings.append(Finding(f"Registrant country is classified as high risk ({country})", 3))
            self.logger.warning(f"  [COUNTRY] Registrant country of {domain}: {country}")

        return self._result(score, findings, meta={
            "domain": domain,
            "createdDate": created.date().isoformat() if created else None,
            "expiresDate": expires.date().isoformat() if expires else None,
        })
