from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Any, Dict, Optional

import pytest

from services.cwa_payload import RawLocation, extract_location
from services.errors import MalformedUpstreamData, RegionNotFound, UpstreamError
from services.forecast import ForecastService
from services.forecast_cache import ForecastCache
from services.regions import CanonicalRegion, RegionQuery


class _StubCwaClient:
    def __init__(self, document: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> None:
        self.document = document
        self.error = error
        self.calls: list[str] = []
        self.closed = False
        self.delay = 0.0

    async def fetch(self, region: CanonicalRegion) -> RawLocation:
        self.calls.append(region.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        assert self.document is not None
        return extract_location(self.document)

    async def close(self) -> None:
        self.closed = True


def _service(clock, stub: _StubCwaClient) -> ForecastService:
    return ForecastService(ForecastCache(ttl=timedelta(minutes=10), clock=clock), stub)  # type: ignore[arg-type]


@pytest.mark.anyio
async def test_miss_builds_and_caches_forecast(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload(slots=14))
    service = _service(clock, stub)

    forecast = await service.get_forecast(RegionQuery(name="臺北市"))

    assert forecast.city == "臺北市"
    assert (forecast.lat, forecast.lon) == (25.032969, 121.565418)
    assert len(forecast.forecasts) == 14
    assert len(forecast.astro) == 7
    assert forecast.last_update == clock.now
    assert stub.calls == ["臺北市"]
    assert service.cache.get("臺北市") is not None


@pytest.mark.anyio
async def test_hit_within_ttl_returns_identical_forecast(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload())
    service = _service(clock, stub)

    first = await service.get_forecast(RegionQuery(name="臺北市"))
    clock.advance(minutes=9, seconds=59)
    second = await service.get_forecast(RegionQuery(name="臺北市"))

    assert second is first
    assert second.to_dict() == first.to_dict()
    assert stub.calls == ["臺北市"]


@pytest.mark.anyio
async def test_expired_entry_triggers_fresh_fetch(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload())
    service = _service(clock, stub)

    first = await service.get_forecast(RegionQuery(name="臺北市"))
    clock.advance(minutes=10, seconds=1)
    second = await service.get_forecast(RegionQuery(name="臺北市"))

    assert stub.calls == ["臺北市", "臺北市"]
    assert second.last_update > first.last_update
    assert service.cache.get("臺北市").forecast is second


@pytest.mark.anyio
async def test_coordinates_and_name_share_cache_slot(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload())
    service = _service(clock, stub)

    by_name = await service.get_forecast(RegionQuery(name="臺北市"))
    by_coords = await service.get_forecast(RegionQuery(lat=25.03, lon=121.56))

    assert by_coords is by_name
    assert stub.calls == ["臺北市"]


@pytest.mark.anyio
async def test_unknown_region_never_calls_upstream(clock) -> None:
    stub = _StubCwaClient()
    service = _service(clock, stub)

    with pytest.raises(RegionNotFound):
        await service.get_forecast(RegionQuery())
    with pytest.raises(RegionNotFound):
        await service.get_forecast(RegionQuery(name="Atlantis"))
    assert stub.calls == []


@pytest.mark.anyio
async def test_upstream_failure_leaves_cache_untouched(clock) -> None:
    stub = _StubCwaClient(error=UpstreamError("CWA request failed with status 503"))
    service = _service(clock, stub)

    with pytest.raises(UpstreamError):
        await service.get_forecast(RegionQuery(name="臺北市"))
    assert len(service.cache) == 0


@pytest.mark.anyio
async def test_malformed_payload_is_an_upstream_failure(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload(omit=("Wx",)))
    service = _service(clock, stub)

    with pytest.raises(MalformedUpstreamData):
        await service.get_forecast(RegionQuery(name="臺北市"))
    assert len(service.cache) == 0


@pytest.mark.anyio
async def test_failure_in_one_region_keeps_other_cached(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload("高雄市"))
    service = _service(clock, stub)
    kaohsiung = await service.get_forecast(RegionQuery(name="高雄市"))

    stub.error = UpstreamError("boom")
    with pytest.raises(UpstreamError):
        await service.get_forecast(RegionQuery(name="臺北市"))

    assert await service.get_forecast(RegionQuery(name="高雄市")) is kaohsiung


@pytest.mark.anyio
async def test_astro_starts_on_local_calendar_day(clock, cwa_payload) -> None:
    # 20:30 UTC is already the next morning in Taipei
    clock.now = clock.now.replace(hour=20, minute=30)
    service = _service(clock, _StubCwaClient(cwa_payload()))

    forecast = await service.get_forecast(RegionQuery(name="臺北市"))

    assert forecast.astro[0].date == date(2025, 5, 13)
    assert forecast.astro[-1].date == date(2025, 5, 19)


@pytest.mark.anyio
async def test_concurrent_misses_share_one_fetch(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload())
    stub.delay = 0.01
    service = _service(clock, stub)

    results = await asyncio.gather(*(service.get_forecast(RegionQuery(name="臺北市")) for _ in range(5)))

    assert stub.calls == ["臺北市"]
    assert all(result is results[0] for result in results)


@pytest.mark.anyio
async def test_close_releases_client_and_cache(clock, cwa_payload) -> None:
    stub = _StubCwaClient(cwa_payload())
    service = _service(clock, stub)
    await service.get_forecast(RegionQuery(name="臺北市"))

    await service.close()

    assert stub.closed is True
    assert len(service.cache) == 0


def test_serialised_forecast_shape(clock, cwa_payload) -> None:
    service = _service(clock, _StubCwaClient(cwa_payload(slots=2)))
    forecast = asyncio.run(service.get_forecast(RegionQuery(name="臺北市")))

    payload = forecast.to_dict()
    assert set(payload) == {"city", "coords", "forecasts", "astro", "lastUpdate"}
    assert payload["coords"] == {"lat": 25.032969, "lon": 121.565418}
    assert payload["lastUpdate"] == "2025-05-12T09:30:00Z"
    assert payload["astro"][0]["date"] == "2025-05-12"
    assert len(payload["forecasts"]) == 2
