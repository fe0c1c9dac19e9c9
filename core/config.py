import os
from dataclasses import dataclass
from typing import Optional

from core.errors import ConfigError

ENV_PREFIX = "PHISHSCOPE_"

# Extra time granted to the remote certificate tier beyond its polling sleeps,
# covering the start request and the status requests themselves.
SSL_REMOTE_SLACK = 15.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{ENV_PREFIX}{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    value = _env_float(name, default)
    if value != int(value):
        raise ConfigError(f"{ENV_PREFIX}{name} must be a whole number, got {value!r}")
    return int(value)


@dataclass
class Settings:
    """
    Runtime settings for PhishScope. Every network call made by a probe is bounded
    by one of the timeouts below.
    """
    http_timeout: float = 10.0
    dns_timeout: float = 5.0
    whois_timeout: float = 15.0
    tls_timeout: float = 10.0
    probe_timeout: float = 120.0
    ssl_api_url: str = "https://api.ssllabs.com/api/v3/analyze"
    ssl_poll_interval: float = 5.0
    ssl_max_polls: int = 15
    weights_file: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 3000
    verbose: bool = False

    @property
    def ssl_remote_budget(self) -> float:
        """Deadline for the remote certificate tier in seconds."""
        return self.ssl_max_polls * self.ssl_poll_interval + SSL_REMOTE_SLACK

    def validate(self) -> "Settings":
        """
        Checks that the per-probe deadline leaves room for both certificate tiers.

        Raises:
            ConfigError: If probe_timeout is shorter than the remote tier budget
                         plus the local handshake timeout.
        """
        required = self.ssl_remote_budget + self.tls_timeout
        if self.probe_timeout < required:
            raise ConfigError(
                f"{ENV_PREFIX}PROBE_TIMEOUT ({self.probe_timeout}s) must be at least {required}s "
                f"to cover {self.ssl_max_polls} SSL polls every {self.ssl_poll_interval}s "
                f"and the {self.tls_timeout}s local TLS fallback"
            )
        return self

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Builds settings from PHISHSCOPE_* environment variables, falling back to defaults.

        Raises:
            ConfigError: If a numeric variable is malformed or not positive, or the
                         timeouts are inconsistent (see `validate`).
        """
        defaults = cls()
        settings = cls(
            http_timeout=_env_float("HTTP_TIMEOUT", defaults.http_timeout),
            dns_timeout=_env_float("DNS_TIMEOUT", defaults.dns_timeout),
            whois_timeout=_env_float("WHOIS_TIMEOUT", defaults.whois_timeout),
            tls_timeout=_env_float("TLS_TIMEOUT", defaults.tls_timeout),
            probe_timeout=_env_float("PROBE_TIMEOUT", defaults.probe_timeout),
            ssl_api_url=os.getenv(ENV_PREFIX + "SSL_API_URL") or defaults.ssl_api_url,
            ssl_poll_interval=_env_float("SSL_POLL_INTERVAL", defaults.ssl_poll_interval),
            ssl_max_polls=_env_int("SSL_MAX_POLLS", defaults.ssl_max_polls),
            weights_file=os.getenv(ENV_PREFIX + "WEIGHTS_FILE") or None,
            host=os.getenv(ENV_PREFIX + "HOST") or defaults.host,
            port=_env_int("PORT", defaults.port),
            verbose=os.getenv(ENV_PREFIX + "VERBOSE", "").lower() in ("1", "true", "yes"),
        )
        return settings.validate()
