"""GitHub source-control client."""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from haskell_plugins.resolver.base import LookupFailed

logger = logging.getLogger(__name__)


class GitHubClient:
    """
    Looks up the commit a pinned revision names on GitHub.

    The revision is passed to the API exactly as declared; a branch name
    yields the commit it points to at lookup time and nothing later.
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize GitHub client.

        Args:
            api_url: GitHub REST API URL
            timeout: Request timeout in seconds
            token: Optional token for authenticated requests
            client: Shared HTTP client; one is created if None
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def commit_for(self, repository: str, ref: str) -> str:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        url = f"{self.api_url}/repos/{repository}/commits/{quote(ref, safe='')}"
        logger.debug("Querying %s", url)

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise LookupFailed(f"GitHub unreachable: {e}") from e

        if response.status_code in (404, 422):
            raise LookupFailed(f"revision '{ref}' not found in {repository}")
        try:
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LookupFailed(f"unexpected GitHub response: {e}") from e

        sha = data.get("sha") if isinstance(data, dict) else None
        if not isinstance(sha, str) or not sha:
            raise LookupFailed("unexpected GitHub response: missing commit sha")
        return sha

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
