from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from services.errors import RegionNotFound

EARTH_RADIUS_KM = 6371.0
DEFAULT_TIMEZONE = "Asia/Taipei"


@dataclass(frozen=True, slots=True)
class CanonicalRegion:
    """A county or city the CWA forecast dataset is published for."""

    name: str
    lat: float
    lon: float
    timezone: str = DEFAULT_TIMEZONE


@dataclass(frozen=True, slots=True)
class RegionQuery:
    name: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


# Geographic centres, in CWA listing order. Order matters for distance ties.
CANONICAL_REGIONS: tuple[CanonicalRegion, ...] = (
    CanonicalRegion("臺北市", 25.032969, 121.565418),
    CanonicalRegion("新北市", 25.016982, 121.462786),
    CanonicalRegion("基隆市", 25.127603, 121.739183),
    CanonicalRegion("桃園市", 24.993628, 121.300979),
    CanonicalRegion("新竹縣", 24.838722, 121.017724),
    CanonicalRegion("新竹市", 24.813829, 120.967480),
    CanonicalRegion("苗栗縣", 24.560664, 120.821428),
    CanonicalRegion("臺中市", 24.147736, 120.673648),
    CanonicalRegion("彰化縣", 24.051796, 120.516135),
    CanonicalRegion("南投縣", 23.960998, 120.971864),
    CanonicalRegion("雲林縣", 23.709203, 120.431337),
    CanonicalRegion("嘉義縣", 23.451843, 120.255461),
    CanonicalRegion("嘉義市", 23.480047, 120.449111),
    CanonicalRegion("臺南市", 22.999728, 120.227028),
    CanonicalRegion("高雄市", 22.627278, 120.301435),
    CanonicalRegion("屏東縣", 22.551975, 120.548759),
    CanonicalRegion("宜蘭縣", 24.702107, 121.737750),
    CanonicalRegion("花蓮縣", 23.987158, 121.601571),
    CanonicalRegion("臺東縣", 22.761319, 121.143126),
    CanonicalRegion("澎湖縣", 23.571505, 119.579315),
    CanonicalRegion("金門縣", 24.440300, 118.323254),
    CanonicalRegion("連江縣", 26.158031, 119.951486),
)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute great-circle distance between two points in kilometers."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


class Geocoder:
    """Maps coordinates or a region name onto the fixed region table."""

    def __init__(self, regions: Iterable[CanonicalRegion] = CANONICAL_REGIONS) -> None:
        self._regions: tuple[CanonicalRegion, ...] = tuple(regions)
        if not self._regions:
            raise ValueError("Geocoder requires at least one region")
        self._by_name = {region.name: region for region in self._regions}

    @property
    def regions(self) -> Sequence[CanonicalRegion]:
        return self._regions

    def get(self, name: str) -> Optional[CanonicalRegion]:
        return self._by_name.get(name)

    def nearest(self, lat: float, lon: float) -> CanonicalRegion:
        closest = self._regions[0]
        min_distance = math.inf
        for region in self._regions:
            distance = haversine_km(lat, lon, region.lat, region.lon)
            # strict comparison keeps the first region on ties
            if distance < min_distance:
                min_distance = distance
                closest = region
        return closest

    def resolve(self, query: RegionQuery) -> CanonicalRegion:
        if query.has_coordinates:
            return self.nearest(float(query.lat), float(query.lon))  # type: ignore[arg-type]
        if query.name:
            region = self.get(query.name)
            if region is not None:
                return region
            raise RegionNotFound(f"Unknown region: {query.name}")
        raise RegionNotFound("A region name or coordinates are required")


geocoder = Geocoder()
