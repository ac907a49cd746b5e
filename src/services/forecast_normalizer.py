from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from services.cwa_payload import RawLocation, RawWeatherElement
from services.errors import MalformedUpstreamData
from services.regions import DEFAULT_TIMEZONE

# Legacy element codes first, then the display names of the current CWA schema.
CONDITION_ELEMENTS = ("Wx", "天氣現象")
PRECIPITATION_ELEMENTS = ("PoP12h", "12小時降雨機率")
TEMPERATURE_ELEMENTS = ("T", "平均溫度")
HUMIDITY_ELEMENTS = ("RH", "平均相對濕度")
WIND_SPEED_ELEMENTS = ("WS", "風速")


@dataclass(frozen=True, slots=True)
class ForecastSlot:
    """One upstream forecast window with every attribute joined onto it.

    ``None`` marks a value the upstream did not report for this window.
    """

    start_time: datetime
    end_time: datetime
    weather: Optional[str]
    rain_prob: Optional[str]
    temp: Optional[str]
    humidity: Optional[str]
    wind_speed: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "weather": self.weather,
            "rainProb": self.rain_prob,
            "temp": self.temp,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
        }


def _parse_instant(value: Optional[str], default_tz: tzinfo) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        # older CWA documents publish local wall-clock times without an offset
        parsed = parsed.replace(tzinfo=default_tz)
    return parsed


def _value_at(element: Optional[RawWeatherElement], index: int) -> Optional[str]:
    if element is None or index >= len(element.time):
        return None
    return element.time[index].first_value()


def normalize(location: RawLocation, default_tz: Optional[tzinfo] = None) -> List[ForecastSlot]:
    """Transpose CWA's per-element series into per-window forecast slots.

    The weather-condition series defines the windows. Every other element is
    joined by list position, not by timestamp, so a shorter series simply
    leaves the trailing windows unknown.
    """

    tz = default_tz or ZoneInfo(DEFAULT_TIMEZONE)
    axis = location.element(*CONDITION_ELEMENTS)
    if axis is None:
        raise MalformedUpstreamData("CWA forecast is missing the weather condition element (Wx)")

    precipitation = location.element(*PRECIPITATION_ELEMENTS)
    temperature = location.element(*TEMPERATURE_ELEMENTS)
    humidity = location.element(*HUMIDITY_ELEMENTS)
    wind_speed = location.element(*WIND_SPEED_ELEMENTS)

    slots: List[ForecastSlot] = []
    for index, entry in enumerate(axis.time):
        start = _parse_instant(entry.start_time, tz)
        end = _parse_instant(entry.end_time, tz)
        if start is None or end is None:
            raise MalformedUpstreamData(f"Forecast window {index} has no usable start/end time")
        if end <= start:
            raise MalformedUpstreamData(f"Forecast window {index} ends before it starts")
        slots.append(
            ForecastSlot(
                start_time=start,
                end_time=end,
                weather=entry.first_value(),
                rain_prob=_value_at(precipitation, index),
                temp=_value_at(temperature, index),
                humidity=_value_at(humidity, index),
                wind_speed=_value_at(wind_speed, index),
            )
        )
    return slots
