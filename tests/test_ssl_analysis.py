import asyncio
import ssl
import httpx
import pytest
from datetime import datetime, timedelta, timezone

from core.aggregator import Aggregator
from core.errors import CertificateUnavailableError, RemoteAnalysisError
from core.models import Grade
from core.ssl_analysis import (
    CertificateAcquirer,
    CertificateInfo,
    LocalCertificateInspector,
    SSLProbe,
    is_trusted_issuer,
)
from integrations.ssllabs import SSLLabsClient

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _epoch_ms(moment):
    return int(moment.timestamp() * 1000)


class ScriptedRemote:
    """Returns the given status payloads in order, repeating the last one."""
    def __init__(self, statuses, start_error=None):
        self.statuses = list(statuses)
        self.start_error = start_error
        self.started = []
        self.polls = 0

    async def start_analysis(self, host):
        self.started.append(host)
        if self.start_error:
            raise self.start_error
        return {"status": "DNS"}

    async def get_status(self, host):
        self.polls += 1
        index = min(self.polls, len(self.statuses)) - 1
        return self.statuses[index]


class FakeLocal:
    def __init__(self, cert=None, error=None):
        self.cert = cert
        self.error = error
        self.calls = []

    async def inspect(self, hostname):
        self.calls.append(hostname)
        if self.error:
            raise self.error
        return self.cert


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _ready(not_after, issuer="R3 Let's Encrypt"):
    return {
        "status": "READY",
        "endpoints": [{"details": {"cert": {"notAfter": not_after, "issuerLabel": issuer}}}],
    }


def _probe(weights, remote, local, sleep=None, max_polls=15):
    acquirer = CertificateAcquirer(remote, local, poll_interval=5, max_polls=max_polls,
                                   sleep=sleep or RecordingSleep())
    return SSLProbe(weights, acquirer, clock=lambda: NOW)


def test_remote_ready_with_soon_expiry(weights):
    remote = ScriptedRemote([{"status": "IN_PROGRESS"}, _ready(_epoch_ms(NOW + timedelta(days=10)))])
    local = FakeLocal()
    sleep = RecordingSleep()

    result = asyncio.run(_probe(weights, remote, local, sleep).run("https://example.com/login"))

    assert remote.started == ["example.com"]
    assert sleep.delays == [5, 5]
    assert local.calls == []
    assert result.score == 10
    assert result.grade == Grade.SAFE
    assert result.meta["source"] == "remote"
    assert result.meta["daysRemaining"] == 10


def test_remote_error_status_falls_back_to_local_once(weights):
    remote = ScriptedRemote([{"status": "ERROR", "statusMessage": "Unable to resolve domain name"}])
    local = FakeLocal(CertificateInfo(NOW + timedelta(days=200), "DigiCert Inc", "local"))

    result = asyncio.run(_probe(weights, remote, local).run("example.com"))

    assert remote.polls == 1
    assert local.calls == ["example.com"]
    assert result.score == 0
    assert result.meta["source"] == "local"


def test_exhausted_polls_fall_back_to_local(weights):
    remote = ScriptedRemote([{"status": "IN_PROGRESS"}])
    local = FakeLocal(CertificateInfo(NOW + timedelta(days=90), "Amazon RSA 2048 M02", "local"))
    sleep = RecordingSleep()

    result = asyncio.run(_probe(weights, remote, local, sleep).run("example.com"))

    assert remote.polls == 15
    assert sleep.delays == [5] * 15
    assert local.calls == ["example.com"]
    assert result.score == 0


def test_remote_transport_failure_falls_back_to_local(weights):
    remote = ScriptedRemote([], start_error=httpx.ConnectError("unreachable"))
    local = FakeLocal(CertificateInfo(NOW + timedelta(days=90), "Google Trust Services", "local"))

    result = asyncio.run(_probe(weights, remote, local).run("example.com"))

    assert remote.polls == 0
    assert local.calls == ["example.com"]
    assert result.score == 0


def test_malformed_ready_payload_falls_back_to_local(weights):
    remote = ScriptedRemote([{"status": "READY", "endpoints": []}])
    local = FakeLocal(CertificateInfo(NOW + timedelta(days=90), "DigiCert", "local"))

    asyncio.run(_probe(weights, remote, local).run("example.com"))

    assert local.calls == ["example.com"]


def test_both_tiers_failing_raises(weights):
    remote = ScriptedRemote([{"status": "ERROR"}])
    local = FakeLocal(error=CertificateUnavailableError("handshake failed"))

    with pytest.raises(CertificateUnavailableError):
        asyncio.run(_probe(weights, remote, local).run("example.com"))


def test_expired_untrusted_certificate(weights):
    remote = ScriptedRemote([_ready(_epoch_ms(NOW - timedelta(days=3)), issuer="Sketchy CA Ltd")])
    result = asyncio.run(_probe(weights, remote, FakeLocal()).run("example.com"))

    assert result.score == 30 + 15
    assert result.grade == Grade.CAUTION
    assert [f.severity for f in result.findings] == [3, 2]


def test_iso_expiry_is_accepted(weights):
    remote = ScriptedRemote([_ready((NOW + timedelta(days=365)).isoformat())])
    result = asyncio.run(_probe(weights, remote, FakeLocal()).run("example.com"))
    assert result.score == 0


def test_ip_target_is_declared_failure(weights):
    remote = ScriptedRemote([])
    result = asyncio.run(_probe(weights, remote, FakeLocal()).run("https://192.0.2.10/"))

    assert remote.started == []
    assert result.score == 50
    assert result.grade == Grade.DANGER


def test_weights_are_configurable(weights):
    weights["ssl_untrusted_issuer"] = 40
    remote = ScriptedRemote([_ready(_epoch_ms(NOW + timedelta(days=100)), issuer="Unknown CA")])
    result = asyncio.run(_probe(weights, remote, FakeLocal()).run("example.com"))
    assert result.score == 40


@pytest.mark.parametrize("issuer,trusted", [
    ("LET'S ENCRYPT AUTHORITY X3", True),
    ("DigiCert TLS RSA SHA256 2020 CA1", True),
    ("Google Trust Services LLC", True),
    ("Amazon", True),
    ("Self Signed", False),
    ("", False),
])
def test_trusted_issuer_matching(issuer, trusted):
    assert is_trusted_issuer(issuer) is trusted


def _ssllabs(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client, SSLLabsClient(client, api_base_url="https://ssl.test/api/v3/analyze")


def test_ssllabs_client_sends_start_parameters():
    seen = []

    def handler(request):
        seen.append(dict(request.url.params))
        return httpx.Response(200, json={"status": "DNS"})

    async def scenario():
        client, api = _ssllabs(handler)
        async with client:
            await api.start_analysis("example.com")
            return await api.get_status("example.com")

    assert asyncio.run(scenario()) == {"status": "DNS"}
    assert seen[0] == {"host": "example.com", "publish": "off", "all": "done", "startNew": "on"}
    assert seen[1] == {"host": "example.com"}


@pytest.mark.parametrize("response", [
    httpx.Response(529, text="overloaded"),
    httpx.Response(200, text="<html>not json</html>"),
    httpx.Response(200, json=["not", "an", "object"]),
])
def test_ssllabs_client_rejects_unusable_responses(response):
    async def scenario():
        client, api = _ssllabs(lambda request: response)
        async with client:
            await api.get_status("example.com")

    with pytest.raises(RemoteAnalysisError):
        asyncio.run(scenario())


class SlowRemote:
    """Never finishes its analysis and takes `delay` seconds per status request."""
    def __init__(self, delay):
        self.delay = delay
        self.polls = 0

    async def start_analysis(self, host):
        return {"status": "DNS"}

    async def get_status(self, host):
        self.polls += 1
        await asyncio.sleep(self.delay)
        return {"status": "IN_PROGRESS"}


def test_slow_remote_tier_leaves_time_for_local_fallback(weights):
    remote = SlowRemote(delay=0.03)
    local = FakeLocal(CertificateInfo(NOW + timedelta(days=90), "DigiCert Inc", "local"))
    acquirer = CertificateAcquirer(remote, local, poll_interval=0.05, max_polls=15, remote_timeout=0.5)
    probe = SSLProbe(weights, acquirer, clock=lambda: NOW)

    result = asyncio.run(Aggregator([probe], probe_timeout=1.2).assess("example.com"))

    section = result.details["ssl"]
    assert local.calls == ["example.com"]
    assert remote.polls < 15
    assert section.failed is False
    assert section.score == 0
    assert section.meta["source"] == "local"


def test_remote_deadline_defaults_to_polling_budget():
    acquirer = CertificateAcquirer(ScriptedRemote([]), FakeLocal(), poll_interval=5, max_polls=15)
    assert acquirer.remote_timeout == 90


def test_out_of_range_remote_expiry_falls_back_to_local(weights):
    remote = ScriptedRemote([_ready(10 ** 20)])
    local = FakeLocal(CertificateInfo(NOW + timedelta(days=90), "DigiCert", "local"))

    result = asyncio.run(_probe(weights, remote, local).run("example.com"))

    assert local.calls == ["example.com"]
    assert result.meta["source"] == "local"


def test_non_string_issuer_label_is_scored(weights):
    remote = ScriptedRemote([_ready(_epoch_ms(NOW + timedelta(days=100)), issuer=12345)])
    local = FakeLocal()

    result = asyncio.run(_probe(weights, remote, local).run("example.com"))

    assert local.calls == []
    assert result.meta["issuer"] == "12345"
    assert result.score == 15


LETS_ENCRYPT_ISSUER = (
    (("countryName", "US"),),
    (("organizationName", "Let's Encrypt"),),
    (("commonName", "R3"),),
)


class FakeWriter:
    def __init__(self, peercert):
        self.peercert = peercert
        self.closed = False

    def get_extra_info(self, name):
        return self.peercert if name == "peercert" else None

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass


def _patch_connection(monkeypatch, writer=None, error=None, delay=0):
    calls = []

    async def fake_open_connection(host, port, **kwargs):
        calls.append((host, port, kwargs))
        if delay:
            await asyncio.sleep(delay)
        if error:
            raise error
        return object(), writer

    monkeypatch.setattr(asyncio, "open_connection", fake_open_connection)
    return calls


def test_local_inspection_reads_peer_certificate(monkeypatch):
    writer = FakeWriter({"notAfter": "Jun  1 12:00:00 2030 GMT", "issuer": LETS_ENCRYPT_ISSUER})
    calls = _patch_connection(monkeypatch, writer=writer)

    cert = asyncio.run(LocalCertificateInspector().inspect("example.com"))

    assert cert.issuer == "Let's Encrypt"
    assert cert.expires_at == datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert cert.source == "local"
    assert writer.closed is True
    host, port, kwargs = calls[0]
    assert (host, port) == ("example.com", 443)
    assert kwargs["server_hostname"] == "example.com"
    assert isinstance(kwargs["ssl"], ssl.SSLContext)


@pytest.mark.parametrize("issuer,expected", [
    (((("commonName", "R3"),),), "R3"),
    ((), "Unknown Issuer"),
])
def test_local_issuer_fallbacks(monkeypatch, issuer, expected):
    _patch_connection(monkeypatch, writer=FakeWriter({"notAfter": "Jun  1 12:00:00 2030 GMT", "issuer": issuer}))
    cert = asyncio.run(LocalCertificateInspector().inspect("example.com"))
    assert cert.issuer == expected


@pytest.mark.parametrize("peercert", [
    None,
    {},
    {"issuer": LETS_ENCRYPT_ISSUER},
])
def test_local_inspection_without_usable_certificate(monkeypatch, peercert):
    writer = FakeWriter(peercert)
    _patch_connection(monkeypatch, writer=writer)

    with pytest.raises(CertificateUnavailableError):
        asyncio.run(LocalCertificateInspector().inspect("example.com"))
    assert writer.closed is True


@pytest.mark.parametrize("error", [
    ssl.SSLError("certificate verify failed"),
    ConnectionRefusedError("connection refused"),
    asyncio.TimeoutError(),
])
def test_local_handshake_errors_are_unavailable(monkeypatch, error):
    _patch_connection(monkeypatch, error=error)
    with pytest.raises(CertificateUnavailableError):
        asyncio.run(LocalCertificateInspector().inspect("example.com"))


def test_local_handshake_is_bounded_by_timeout(monkeypatch):
    _patch_connection(monkeypatch, writer=FakeWriter({}), delay=1)
    with pytest.raises(CertificateUnavailableError):
        asyncio.run(LocalCertificateInspector(timeout=0.05).inspect("example.com"))
