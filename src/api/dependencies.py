from __future__ import annotations

from fastapi import Request

from services.forecast import ForecastService


def get_forecast_service(request: Request) -> ForecastService:
    return request.app.state.forecast_service
