"""Schema for the parts of a CWA ``F-D0047-*`` document the hub consumes.

CWA has published these datasets under two spellings: the legacy camelCase
layout (``records.locations[0].location[0].weatherElement``) and the current
PascalCase one (``records.Locations[0].Location[0].WeatherElement``). Both are
accepted here so the rest of the pipeline only sees one shape.

The hub filters its requests with the legacy element codes
(``services.cwa_client.ELEMENT_NAMES``). The display-name elements of the
current schema are only reached when the datastore ignores that filter and
returns every element under its display name.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from services.errors import MalformedUpstreamData, UpstreamError

# Placeholder the current schema uses where a reading is not available
MISSING_MARKERS = frozenset({"-"})


class _CwaModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class RawTimeEntry(_CwaModel):
    start_time: Optional[str] = Field(default=None, validation_alias=AliasChoices("startTime", "StartTime"))
    end_time: Optional[str] = Field(default=None, validation_alias=AliasChoices("endTime", "EndTime"))
    element_value: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("elementValue", "ElementValue"),
    )

    def first_value(self) -> Optional[str]:
        """Return the primary reading of this entry, or ``None`` when blank or ``"-"``."""
        if not self.element_value:
            return None
        head = self.element_value[0]
        if not isinstance(head, dict):
            return None
        if "value" in head:
            raw = head["value"]
        elif "Value" in head:
            raw = head["Value"]
        else:
            raw = next(iter(head.values()), None)
        if raw is None:
            return None
        text = str(raw).strip()
        if not text or text in MISSING_MARKERS:
            return None
        return text


class RawWeatherElement(_CwaModel):
    element_name: str = Field(validation_alias=AliasChoices("elementName", "ElementName"))
    time: list[RawTimeEntry] = Field(default_factory=list, validation_alias=AliasChoices("time", "Time"))


class RawLocation(_CwaModel):
    location_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("locationName", "LocationName"))
    weather_element: list[RawWeatherElement] = Field(
        default_factory=list,
        validation_alias=AliasChoices("weatherElement", "WeatherElement"),
    )

    def element(self, *names: str) -> Optional[RawWeatherElement]:
        for candidate in self.weather_element:
            if candidate.element_name in names:
                return candidate
        return None


def _first_dict(container: Any, *keys: str) -> Optional[dict[str, Any]]:
    if not isinstance(container, dict):
        return None
    for key in keys:
        items = container.get(key)
        if isinstance(items, list) and items and isinstance(items[0], dict):
            return items[0]
    return None


def extract_location(document: Any) -> RawLocation:
    """Pull ``records.locations[0].location[0]`` out of a CWA response body."""
    if not isinstance(document, dict):
        raise UpstreamError("CWA response body is not a JSON object")
    if str(document.get("success", "true")).lower() == "false":
        raise UpstreamError("CWA reported an unsuccessful query")
    records = document.get("records")
    locations = _first_dict(records, "locations", "Locations")
    if locations is None:
        raise UpstreamError("CWA response is missing records.locations")
    location = _first_dict(locations, "location", "Location")
    if location is None:
        raise UpstreamError("CWA response has no data for the requested location")
    try:
        return RawLocation.model_validate(location)
    except ValidationError as exc:
        raise MalformedUpstreamData(f"CWA location record failed validation: {exc.error_count()} error(s)") from exc
