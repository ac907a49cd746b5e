from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from services.astro import AstroDay, augment
from services.cwa_client import CwaClient
from services.errors import UpstreamError
from services.forecast_cache import Clock, ForecastCache
from services.forecast_normalizer import ForecastSlot, normalize
from services.regions import CanonicalRegion, Geocoder, RegionQuery, geocoder as default_geocoder

logger = logging.getLogger("ecoweather.hub.forecast")


@dataclass(frozen=True, slots=True)
class AggregatedForecast:
    """Week forecast plus daily sun times for one region; the unit of caching."""

    city: str
    lat: float
    lon: float
    forecasts: tuple[ForecastSlot, ...]
    astro: tuple[AstroDay, ...]
    last_update: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "city": self.city,
            "coords": {"lat": self.lat, "lon": self.lon},
            "forecasts": [slot.to_dict() for slot in self.forecasts],
            "astro": [day.to_dict() for day in self.astro],
            "lastUpdate": self.last_update.isoformat().replace("+00:00", "Z"),
        }


class ForecastService:
    """Resolves a query to a region and serves its forecast through the cache.

    Misses for the same region are serialised behind a per-region lock, so
    concurrent requests trigger a single CWA call and share its result.
    """

    def __init__(
        self,
        cache: ForecastCache,
        client: CwaClient,
        geocoder: Geocoder = default_geocoder,
        *,
        astro_days: int = 7,
        clock: Optional[Clock] = None,
    ) -> None:
        self._cache = cache
        self._client = client
        self._geocoder = geocoder
        self._astro_days = astro_days
        self._clock = clock or cache.clock
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def cache(self) -> ForecastCache:
        return self._cache

    @property
    def geocoder(self) -> Geocoder:
        return self._geocoder

    async def close(self) -> None:
        await self._client.close()
        self._cache.clear()

    def resolve(self, query: RegionQuery) -> CanonicalRegion:
        return self._geocoder.resolve(query)

    async def get_forecast(self, query: RegionQuery) -> AggregatedForecast:
        region = self.resolve(query)

        cached = self._cache.get(region.name, self._clock())
        if cached is not None:
            logger.info("[Cache Hit] %s", region.name)
            return cached.forecast

        lock = self._locks.setdefault(region.name, asyncio.Lock())
        async with lock:
            cached = self._cache.get(region.name, self._clock())
            if cached is not None:
                logger.info("[Cache Hit] %s (after wait)", region.name)
                return cached.forecast

            logger.info("[Cache Miss] %s; requesting CWA forecast", region.name)
            forecast = await self._build(region)
            self._cache.put(region.name, forecast, forecast.last_update)
            return forecast

    async def _build(self, region: CanonicalRegion) -> AggregatedForecast:
        zone = ZoneInfo(region.timezone)
        try:
            raw = await self._client.fetch(region)
            slots = normalize(raw, zone)
        except UpstreamError as exc:
            logger.warning("Forecast for %s unavailable: %s", region.name, exc)
            raise

        generated_at = self._clock()
        local_today = generated_at.astimezone(zone).date()
        astro = augment(region.lat, region.lon, local_today, days=self._astro_days, tz=zone)
        return AggregatedForecast(
            city=region.name,
            lat=region.lat,
            lon=region.lon,
            forecasts=tuple(slots),
            astro=tuple(astro),
            last_update=generated_at,
        )
