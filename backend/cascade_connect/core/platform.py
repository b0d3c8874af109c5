"""
Cascade Connect - Hosting Platform
===================================

Netlify REST client used by the backend dashboard.
"""

from typing import Any, Optional

import httpx
import structlog

from cascade_connect.core.config import settings

logger = structlog.get_logger()


class NetlifyClient:
    """Read-only access to the site's deploy history."""

    def __init__(
        self,
        api_token: Optional[str] = None,
        site_id: Optional[str] = None,
        api_url: Optional[str] = None,
    ):
        self.api_token = api_token or settings.NETLIFY_API_TOKEN
        self.site_id = site_id or settings.NETLIFY_SITE_ID
        self.api_url = (api_url or settings.NETLIFY_API_URL).rstrip("/")
        self._client = httpx.AsyncClient(timeout=15.0)

    @property
    def enabled(self) -> bool:
        return bool(self.api_token and self.site_id)

    async def list_deploys(self, limit: int = 10) -> list[dict[str, Any]]:
        """
        Most recent deploys, newest first.

        Raises:
            httpx.HTTPError: request failed or returned an error status
        """
        response = await self._client.get(
            f"{self.api_url}/sites/{self.site_id}/deploys",
            params={"per_page": limit},
            headers={"Authorization": f"Bearer {self.api_token}"},
        )
        response.raise_for_status()
        deploys = response.json()
        logger.debug("netlify_deploys_fetched", count=len(deploys))
        return deploys[:limit]

    async def close(self) -> None:
        await self._client.aclose()


_netlify_client: Optional[NetlifyClient] = None


def get_netlify_client() -> NetlifyClient:
    global _netlify_client
    if _netlify_client is None:
        _netlify_client = NetlifyClient()
    return _netlify_client


async def close_netlify_client() -> None:
    global _netlify_client
    if _netlify_client is not None:
        await _netlify_client.close()
        _netlify_client = None
