class PhishScopeError(Exception):
    """Base class for all PhishScope errors."""


class ConfigError(PhishScopeError):
    """Raised when settings cannot be loaded or are invalid."""


class WeightConfigError(ConfigError):
    """Raised when the rule weight table is incomplete or malformed."""


class RemoteAnalysisError(PhishScopeError):
    """Raised when the remote certificate-analysis service cannot produce a result."""


class CertificateUnavailableError(PhishScopeError):
    """Raised when no certificate could be obtained from either acquisition tier."""
