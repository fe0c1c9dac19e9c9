import asyncio
import dns.asyncresolver
import dns.exception
import dns.resolver
from typing import Any, Dict, List

from core.models import Finding, ProbeResult
from core.probe import INVALID_DOMAIN_MESSAGE, Probe
from core.utils import extract_domain

RELIABLE_NS_PROVIDERS = ["cloudflare", "aws", "azure", "google"]
RELIABLE_IP_PROVIDERS = ["amazonaws", "azure", "google"]
FAST_FLUX_THRESHOLD = 5

# "No such record" outcomes, as opposed to resolver failures
MISSING = (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer)
LOOKUP_ERRORS = (dns.exception.DNSException,)


class DnsProbe(Probe):
    """
    Scores the DNS posture of the registrable domain: mail authentication records
    (SPF, DMARC, MX), nameserver provider, the www CNAME and A record stability.
    """
    name = "dns"
    weight_keys = (
        "dns_spf_missing",
        "dns_dmarc_missing",
        "dns_ns_unreliable",
        "dns_cname_deprecated",
        "dns_a_unstable",
        "dns_mx_missing",
    )

    def __init__(self, weights: Dict[str, float], timeout: float = 5, resolver: Any = None):
        """
        Args:
            weights (Dict[str, float]): The rule weight table.
            timeout (float): Lifetime of each DNS query in seconds.
            resolver: An object exposing async `resolve(name, rdtype)` and
                      `resolve_address(ip)`; defaults to dnspython's async resolver.
        """
        super().__init__(weights)
        self.timeout = timeout
        self.resolver = resolver

    def _get_resolver(self):
        if self.resolver is None:
            self.resolver = dns.asyncresolver.Resolver()
            self.resolver.lifetime = self.timeout
        return self.resolver

    async def _query(self, name: str, rdtype: str) -> List[str]:
        answer = await self._get_resolver().resolve(name, rdtype)
        if rdtype == "TXT":
            return [b"".join(r.strings).decode("utf-8", errors="replace") for r in answer]
        return [r.to_text() for r in answer]

    async def _reverse(self, ip: str) -> List[str]:
        try:
            answer = await self._get_resolver().resolve_address(ip)
        except (dns.exception.DNSException, OSError) as e:
            self.logger.debug(f"PTR lookup failed for {ip}: {e}")
            return []
        return [r.to_text() for r in answer]

    async def run(self, target: str) -> ProbeResult:
        domain = extract_domain(target)
        if not domain:
            self.logger.warning(f"Invalid URL or domain could not be parsed: {target}")
            return ProbeResult.failure(INVALID_DOMAIN_MESSAGE)

        self.logger.info(f"Starting DNS analysis for: {domain}")
        score = 0
        findings: List[Finding] = []
        records: Dict[str, Any] = {
            "spf": None, "dmarc": None, "ns": [], "cnameOfWww": [], "a": [], "aPtr": [], "mx": [],
        }

        # 1) SPF
        try:
            txt = await self._query(domain, "TXT")
            records["spf"] = any(rec.lower().startswith("v=spf1") for rec in txt)
        except MISSING:
            records["spf"] = False
        except LOOKUP_ERRORS as e:
            findings.append(Finding(f"SPF lookup error: {e}", 1))
        if records["spf"] is False:
            score += self.weights["dns_spf_missing"]
            findings.append(Finding("No SPF record is published", 2))
            self.logger.warning(f"  [SPF] No SPF record for {domain}")

        # 2) DMARC
        try:
            txt = await self._query(f"_dmarc.{domain}", "TXT")
            records["dmarc"] = any(rec.upper().startswith("V=DMARC1") for rec in txt)
        except MISSING:
            records["dmarc"] = False
        except LOOKUP_ERRORS as e:
            findings.append(Finding(f"DMARC lookup error: {e}", 1))
        if records["dmarc"] is False:
            score += self.weights["dns_dmarc_missing"]
            findings.append(Finding("No DMARC record is published", 2))
            self.logger.warning(f"  [DMARC] No DMARC record for {domain}")

        # 3) Nameserver provider
        try:
            records["ns"] = await self._query(domain, "NS")
            if not any(p in host.lower() for host in records["ns"] for p in RELIABLE_NS_PROVIDERS):
                score += self.weights["dns_ns_unreliable"]
                findings.append(Finding(
                    f"Nameservers are not from a well-known provider ({', '.join(records['ns'])})", 3))
                self.logger.warning(f"  [NS] Unrecognized nameservers for {domain}: {records['ns']}")
        except LOOKUP_ERRORS as e:
            findings.append(Finding(f"NS lookup error: {e}", 1))

        # 4) www CNAME
        try:
            records["cnameOfWww"] = await self._query(f"www.{domain}", "CNAME")
        except dns.resolver.NoAnswer:
            findings.append(Finding("www subdomain has no CNAME (A record may be used directly)", 0))
        except dns.resolver.NXDOMAIN:
            score += self.weights["dns_cname_deprecated"]
            findings.append(Finding("www subdomain does not resolve; its CNAME target may be abandoned", 2))
            self.logger.warning(f"  [CNAME] www.{domain} does not exist")
        except LOOKUP_ERRORS as e:
            findings.append(Finding(f"CNAME lookup error: {e}", 1))

        # 5) A records and fast-flux
        try:
            records["a"] = await self._query(domain, "A")
            if len(records["a"]) >= FAST_FLUX_THRESHOLD:
                score += self.weights["dns_a_unstable"]
                findings.append(Finding(f"Domain resolves to {len(records['a'])} addresses (possible fast flux)", 2))
                self.logger.warning(f"  [A] {len(records['a'])} A records for {domain}")
            elif records["a"]:
                ptr_lists = await asyncio.gather(*(self._reverse(ip) for ip in records["a"]))
                records["aPtr"] = [ptr for ptrs in ptr_lists for ptr in ptrs]
                if not any(p in ptr.lower() for ptr in records["aPtr"] for p in RELIABLE_IP_PROVIDERS):
                    findings.append(Finding(
                        f"Hosting provider not identified from PTR records ({', '.join(records['aPtr']) or 'N/A'})", 0))
        except MISSING:
            findings.append(Finding("Domain has no A records", 1))
        except LOOKUP_ERRORS as e:
            findings.append(Finding(f"A record lookup error: {e}", 1))

        # 6) MX
        try:
            records["mx"] = await self._query(domain, "MX")
        except MISSING:
            records["mx"] = []
        except LOOKUP_ERRORS as e:
            records["mx"] = None
            findings.append(Finding(f"MX lookup error: {e}", 1))
        if records["mx"] == []:
            score += self.weights["dns_mx_missing"]
            findings.append(Finding("No MX records are published", 1))
            self.logger.warning(f"  [MX] No MX records for {domain}")

        return self._result(score, findings, meta={"domain": domain, "records": records})
