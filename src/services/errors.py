from __future__ import annotations


class ForecastError(Exception):
    """Base class for failures raised by the forecast pipeline."""


class RegionNotFound(ForecastError):
    """The query named no known region and carried no coordinates."""


class UpstreamError(ForecastError):
    """The CWA request failed or returned an unusable document."""


class MalformedUpstreamData(UpstreamError):
    """The CWA document was reachable but its forecast elements were not."""
