import logging
import httpx
from typing import Dict, Any

from core.errors import RemoteAnalysisError

STATUS_READY = "READY"
STATUS_ERROR = "ERROR"


class SSLLabsClient:
    """
    Client for an SSL Labs compatible certificate-analysis API. The service is
    asynchronous: an analysis is started for a host and its status is polled
    until it reports READY or ERROR.
    """
    def __init__(self, client: httpx.AsyncClient, api_base_url: str = "https://api.ssllabs.com/api/v3/analyze",
                 timeout: float = 15):
        """
        Initializes the SSLLabsClient.

        Args:
            client (httpx.AsyncClient): The shared httpx client.
            api_base_url (str): The analyze endpoint of the service.
            timeout (float): Per-request timeout in seconds.
        """
        self.api_base_url = api_base_url
        self._client = client
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    async def start_analysis(self, host: str) -> Dict[str, Any]:
        """Asks the service to start a fresh analysis of host."""
        self.logger.info(f"Starting remote SSL analysis for {host}")
        return await self._get({"host": host, "publish": "off", "all": "done", "startNew": "on"})

    async def get_status(self, host: str) -> Dict[str, Any]:
        """Fetches the current state of the analysis for host."""
        return await self._get({"host": host})

    async def _get(self, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = await self._client.get(self.api_base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteAnalysisError(
                f"SSL analysis API returned HTTP {exc.response.status_code} for {params['host']}"
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteAnalysisError(f"SSL analysis API returned a non-JSON body for {params['host']}") from exc

        if not isinstance(data, dict):
            raise RemoteAnalysisError(f"SSL analysis API returned an unexpected payload for {params['host']}")
        return data
