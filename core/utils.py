import logging
import sys
import random
import ipaddress
import httpx
import tldextract
from urllib.parse import urlparse

# Only the bundled public suffix snapshot is used; no list is fetched at runtime.
_domain_extractor = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())


def setup_logging(verbose: bool = False):
    """
    Configures root logging to stdout for both the CLI and the API server.

    Args:
        verbose (bool): DEBUG level when True, INFO otherwise.

    Returns:
        logging.Logger: The root logger.
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    # Replace handlers so repeated calls (CLI then API) do not double every line
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s'))
    root.addHandler(console)

    # Third-party chatter stays out of the assessment log
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('whois').setLevel(logging.CRITICAL)

    return root


async def fetch_url(url: str, client: httpx.AsyncClient, timeout: float = 10) -> httpx.Response:
    """
    Fetches a URL asynchronously. Transport errors are logged and re-raised so the
    caller's failure handling decides the outcome; HTTP error statuses are returned.

    Args:
        url (str): The URL to fetch.
        client (httpx.AsyncClient): The shared httpx client.
        timeout (float): Request timeout in seconds.

    Returns:
        httpx.Response: The response object.
    """
    try:
        logging.debug(f"Fetching URL: {url}")
        response = await client.get(url, timeout=timeout, follow_redirects=True)
        logging.debug(f"Fetched {url} with status {response.status_code}")
        return response
    except httpx.RequestError as exc:
        logging.error(f"An error occurred while requesting {url!r}: {exc}")
        raise


def normalize_url(target: str) -> str:
    """Returns target with an https:// scheme if it was given as a bare domain."""
    target = target.strip()
    if "://" not in target:
        return f"https://{target}"
    return target


def get_hostname(target: str) -> str | None:
    """Returns the lowercase hostname of target, or None if none can be parsed."""
    try:
        return urlparse(normalize_url(target)).hostname
    except ValueError:
        return None


def extract_domain(target: str) -> str | None:
    """
    Extracts the registrable domain (e.g. "example.co.uk") from a URL or bare domain.

    Args:
        target (str): A URL or domain.

    Returns:
        str | None: The registrable domain, or None for IP literals, hosts without a
                    public suffix, and unparseable input.
    """
    hostname = get_hostname(target)
    if not hostname:
        return None
    try:
        ipaddress.ip_address(hostname)
        return None
    except ValueError:
        pass
    extracted = _domain_extractor(hostname)
    if not extracted.domain or not extracted.suffix:
        return None
    return f"{extracted.domain}.{extracted.suffix}"


def get_random_user_agent() -> str:
    """
    Returns a random user-agent string to mimic different browsers.
    """
    user_agents = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.2478.51",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
    ]
    return random.choice(user_agents)
