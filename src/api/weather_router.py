from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from api.dependencies import get_forecast_service
from api.limits import limiter, request_limit
from services.forecast import ForecastService
from services.regions import RegionQuery

router = APIRouter(prefix="/weather", tags=["weather"])


class Coordinates(BaseModel):
    lat: float
    lon: float


class ForecastSlotModel(BaseModel):
    startTime: str
    endTime: str
    weather: str | None = Field(default=None, description="Weather condition label (Wx)")
    rainProb: str | None = Field(default=None, description="12 hour probability of precipitation in %")
    temp: str | None = Field(default=None, description="Temperature in degC")
    humidity: str | None = Field(default=None, description="Relative humidity %")
    windSpeed: str | None = Field(default=None, description="Wind speed in m/s")


class AstroDayModel(BaseModel):
    date: str
    sunrise: str | None = Field(default=None, description="Local sunrise HH:MM, null during polar day/night")
    sunset: str | None = Field(default=None, description="Local sunset HH:MM, null during polar day/night")


class WeekForecast(BaseModel):
    city: str
    coords: Coordinates
    forecasts: list[ForecastSlotModel]
    astro: list[AstroDayModel]
    lastUpdate: str


class WeekForecastResponse(BaseModel):
    success: bool = True
    data: WeekForecast


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


@router.get(
    "/week",
    response_model=WeekForecastResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
@limiter.limit(request_limit)
async def week_forecast(
    request: Request,
    city: Optional[str] = Query(default=None, description="Canonical county/city name, e.g. 臺北市"),
    lat: Optional[float] = Query(default=None, ge=-90.0, le=90.0),
    lon: Optional[float] = Query(default=None, ge=-180.0, le=180.0),
    service: ForecastService = Depends(get_forecast_service),
):
    # coordinates only count as a pair; a lone lat or lon falls back to the city
    if lat is None or lon is None:
        lat = lon = None
    query = RegionQuery(name=city or None, lat=lat, lon=lon)
    forecast = await service.get_forecast(query)
    return {"success": True, "data": forecast.to_dict()}
