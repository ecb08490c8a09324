"""Hackage registry client."""

import logging
from typing import Optional

import httpx

from haskell_plugins.resolver.base import LookupFailed

logger = logging.getLogger(__name__)


class HackageClient:
    """
    Lists package versions from a Hackage server.

    Uses the ``/package/<name>/preferred`` endpoint, which reports normal
    and deprecated versions separately.
    """

    def __init__(
        self,
        base_url: str = "https://hackage.haskell.org",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Hackage client.

        Args:
            base_url: Hackage server URL
            timeout: Request timeout in seconds
            client: Shared HTTP client; one is created if None
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def versions(self, package: str) -> list[str]:
        url = f"{self.base_url}/package/{package}/preferred"
        logger.debug("Querying %s", url)

        try:
            response = await self._client.get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            raise LookupFailed(f"Hackage unreachable: {e}") from e

        if response.status_code == 404:
            raise LookupFailed(f"package '{package}' not found on {self.base_url}")
        try:
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LookupFailed(f"unexpected Hackage response: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("normal-version", []), list):
            raise LookupFailed("unexpected Hackage response: missing 'normal-version'")
        return [str(v) for v in data.get("normal-version", [])]

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
