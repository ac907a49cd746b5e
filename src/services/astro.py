"""Sunrise/sunset for the forecast horizon.

Rise and set instants come from pvlib's NREL SPA implementation, which uses
the standard -0.8333 degree rise altitude (refraction plus solar disc radius).
A day on which the sun never crosses that altitude (polar day or polar night)
has ``None`` for both sunrise and sunset.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import pandas as pd
from pvlib import solarposition

from services.regions import DEFAULT_TIMEZONE


@dataclass(frozen=True, slots=True)
class AstroDay:
    date: date
    sunrise: Optional[str]
    sunset: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "sunrise": self.sunrise, "sunset": self.sunset}


def _clock_label(moment: Any, tz: tzinfo) -> Optional[str]:
    # pvlib reports NaT when the event does not happen on that day
    if pd.isna(moment):
        return None
    return pd.Timestamp(moment).tz_convert(tz).strftime("%H:%M")


def augment(
    lat: float,
    lon: float,
    start_date: date,
    days: int = 7,
    tz: tzinfo | str = DEFAULT_TIMEZONE,
) -> List[AstroDay]:
    """Return one :class:`AstroDay` per calendar day starting at ``start_date``.

    Each day is sampled at local noon so the solar day matches the local
    calendar date; times are rendered as 24-hour ``HH:MM`` in ``tz``.
    """

    if days < 0:
        raise ValueError("days must not be negative")
    if days == 0:
        return []
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    noons = pd.date_range(start=datetime.combine(start_date, time(12, 0)), periods=days, freq="D", tz=zone)
    events = solarposition.sun_rise_set_transit_spa(noons, lat, lon)
    return [
        AstroDay(
            date=noon.date(),
            sunrise=_clock_label(sunrise, zone),
            sunset=_clock_label(sunset, zone),
        )
        for noon, sunrise, sunset in zip(noons, events["sunrise"], events["sunset"])
    ]
