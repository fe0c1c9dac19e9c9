import json
import logging
from typing import Dict, Iterable, Optional

from core.errors import WeightConfigError

logger = logging.getLogger(__name__)

# Penalty applied when the named rule fires. Every key a probe reads must be here.
DEFAULT_WEIGHTS: Dict[str, float] = {
    # header
    "header_csp": 30,
    "header_x_frame_options": 20,
    "header_hsts": 20,
    "header_content_type_options": 15,
    "header_cors_wildcard": 15,

    # ssl
    "ssl_expired": 30,
    "ssl_expiring_soon": 10,
    # The shared table once listed 10 for this rule under a name the SSL rules
    # never read, so 15 is the value that was actually applied.
    "ssl_untrusted_issuer": 15,

    # url
    "url_http_usage": 30,
    "url_sensitive_path": 28,
    "url_injection_pattern": 42,

    # vulnerability
    "vuln_xss": 25,
    "vuln_clickjacking": 25,
    "vuln_file_upload": 25,
    "vuln_dir_listing": 25,

    # whois
    "whois_recent_domain": 30,
    "whois_short_registration": 25,
    "whois_registrant_privacy": 20,
    "whois_risky_country": 25,
    "whois_missing_created_date": 10,
    "whois_missing_expires_date": 10,

    # dns
    "dns_spf_missing": 20,
    "dns_dmarc_missing": 20,
    "dns_ns_unreliable": 30,
    "dns_cname_deprecated": 15,
    "dns_a_unstable": 10,
    "dns_mx_missing": 5,
}


def load_weights(path: Optional[str] = None) -> Dict[str, float]:
    """
    Loads the rule weight table, optionally overriding defaults from a JSON file.

    Args:
        path (str, optional): Path to a JSON object mapping weight names to numbers.

    Returns:
        Dict[str, float]: The complete weight table.

    Raises:
        WeightConfigError: If the file cannot be read, names an unknown weight,
                           or holds a value that is not a non-negative number.
    """
    weights = dict(DEFAULT_WEIGHTS)
    if not path:
        return weights

    try:
        with open(path, 'r', encoding='utf-8') as f:
            overrides = json.load(f)
    except FileNotFoundError as e:
        raise WeightConfigError(f"Weights file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise WeightConfigError(f"Error decoding JSON from weights file {path}: {e}") from e

    if not isinstance(overrides, dict):
        raise WeightConfigError(f"Weights file {path} must contain a JSON object")

    unknown = sorted(set(overrides) - set(DEFAULT_WEIGHTS))
    if unknown:
        raise WeightConfigError(f"Unknown weight names in {path}: {', '.join(unknown)}")

    for name, value in overrides.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise WeightConfigError(f"Weight '{name}' must be a non-negative number, got {value!r}")
        weights[name] = value

    logger.info(f"Loaded {len(overrides)} weight override(s) from {path}")
    return weights


def require_weights(weights: Dict[str, float], keys: Iterable[str], owner: str = "probe") -> None:
    """
    Ensures every weight a component reads is present in the table.

    Raises:
        WeightConfigError: Listing all missing keys for the given owner.
    """
    missing = [key for key in keys if key not in weights]
    if missing:
        raise WeightConfigError(f"{owner} references undefined weight(s): {', '.join(missing)}")
