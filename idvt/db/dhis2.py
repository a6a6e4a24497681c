"""
DHIS2 Web API client and FastAPI dependency.

Configure via environment or .env:
  - DHIS2_URL (base URL of the host instance, without the trailing /api)
  - DHIS2_USERNAME / DHIS2_PASSWORD (basic auth)

The same client class talks to external DHIS2 instances; the dispatcher builds
one per data source from its authentication block.
"""

import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from idvt.config import settings

logger = logging.getLogger(__name__)

# Lazy host client, shared by every request once created
_host_client: Optional["Dhis2Client"] = None


class Dhis2Client:
    """Thin async wrapper over the DHIS2 Web API rooted at ``<base_url>/api/``."""

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        auth = httpx.BasicAuth(username, password) if username and password else None
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/api/",
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "Dhis2Client":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, resource: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a resource path (may carry its own query string) and return decoded JSON."""
        response = await self._client.get(resource.lstrip("/"), params=params)
        response.raise_for_status()
        return response.json()

    async def post(self, resource: str, payload: Any) -> Any:
        response = await self._client.post(resource.lstrip("/"), json=payload)
        response.raise_for_status()
        return _json_or_none(response)

    async def put(self, resource: str, payload: Any) -> Any:
        response = await self._client.put(resource.lstrip("/"), json=payload)
        response.raise_for_status()
        return _json_or_none(response)

    async def delete(self, resource: str) -> Any:
        response = await self._client.delete(resource.lstrip("/"))
        response.raise_for_status()
        return _json_or_none(response)

    async def organisation_unit_geojson(
        self, levels: Iterable[str], parents: Iterable[str]
    ) -> Dict[str, Any]:
        """Boundaries for the children of ``parents`` at the given ``levels``."""
        params = [("parent", p) for p in parents] + [("level", l) for l in levels]
        response = await self._client.get("organisationUnits.geojson", params=params)
        response.raise_for_status()
        return response.json()


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    return response.json()


def get_dhis2_client() -> Optional[Dhis2Client]:
    """
    Return the shared client for the host DHIS2 instance, or None if DHIS2_URL is not set.
    """
    global _host_client
    if _host_client is not None:
        return _host_client
    if not settings.dhis2_enabled:
        return None
    _host_client = Dhis2Client(
        settings.DHIS2_URL,
        username=settings.DHIS2_USERNAME,
        password=settings.DHIS2_PASSWORD,
        timeout=settings.HTTP_TIMEOUT,
    )
    logger.info("DHIS2 client created for %s", settings.DHIS2_URL)
    return _host_client


def require_dhis2() -> Dhis2Client:
    """
    FastAPI dependency that returns the host DHIS2 client.
    Raises if DHIS2 is not configured; use for routes that require it.
    """
    client = get_dhis2_client()
    if client is None:
        raise RuntimeError(
            "DHIS2 is not configured. Set DHIS2_URL, DHIS2_USERNAME and DHIS2_PASSWORD."
        )
    return client


async def close_dhis2_client() -> None:
    global _host_client
    if _host_client is not None:
        await _host_client.aclose()
        _host_client = None
