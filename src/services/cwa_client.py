from __future__ import annotations

import logging
from typing import Optional

import httpx

from config import settings
from services.cwa_payload import RawLocation, extract_location
from services.errors import UpstreamError
from services.regions import CanonicalRegion

logger = logging.getLogger("ecoweather.hub.cwa")

# Legacy codes for weather, 12h precipitation probability, temperature,
# relative humidity and wind speed. Display-name responses are handled in
# services.forecast_normalizer.
ELEMENT_NAMES = ("Wx", "PoP12h", "T", "RH", "WS")


class CwaClient:
    """Async client for the CWA open data forecast datastore."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dataset_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._dataset_id = dataset_id
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key if self._api_key is not None else settings.cwa_api_key

    @property
    def endpoint(self) -> str:
        base_url = (self._base_url or settings.cwa_base_url).rstrip("/")
        return f"{base_url}/{self._dataset_id or settings.cwa_dataset_id}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "User-Agent": settings.cwa_user_agent,
                "Accept": "application/json",
            }
            timeout = self._timeout if self._timeout is not None else settings.cwa_request_timeout
            self._client = httpx.AsyncClient(headers=headers, timeout=timeout)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, region: CanonicalRegion) -> RawLocation:
        api_key = self.api_key
        if not api_key:
            raise UpstreamError("CWA API key is not configured")

        params = {
            "Authorization": api_key,
            "locationName": region.name,
            "elementName": ",".join(ELEMENT_NAMES),
            "sort": "time",
        }
        client = await self._get_client()
        logger.debug("Fetching %s forecast for %s", self.endpoint, region.name)
        try:
            response = await client.get(self.endpoint, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"CWA request failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"CWA request failed: {exc.__class__.__name__}: {exc}") from exc

        try:
            document = response.json()
        except ValueError as exc:
            raise UpstreamError("CWA response is not valid JSON") from exc
        return extract_location(document)
