from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Load <project>/.env and accept env keys in any case
    _env_file = Path(__file__).resolve().parent.parent / ".env"
    model_config = SettingsConfigDict(env_file=str(_env_file), extra="ignore", case_sensitive=False)

    app_name: str = "Eco-Weather Hub"
    app_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:5500",
            "https://cwa-weather-a4.zeabur.app",
            "https://wang-yi-zhang.github.io",
        ]
    )

    # CWA open data
    cwa_api_key: str | None = Field(default=None, description="Authorization key for the CWA open data platform.")
    cwa_base_url: str = Field(
        default="https://opendata.cwa.gov.tw/api/v1/rest/datastore",
        description="Base URL for the CWA datastore API",
    )
    cwa_dataset_id: str = Field(
        default="F-D0047-091",
        description="Dataset identifier for the county-level one-week 12-hourly forecast.",
    )
    cwa_request_timeout: float = Field(default=10.0, ge=1.0, description="Timeout in seconds for CWA HTTP calls")
    cwa_user_agent: str = Field(
        default="EcoWeatherHub/0.1.0",
        description="User-Agent sent to the upstream forecast provider.",
    )

    # Forecast pipeline
    forecast_cache_ttl: int = Field(default=600, ge=0, description="Cache duration (seconds) for aggregated forecasts")
    astro_days: int = Field(default=7, ge=1, le=31, description="Number of calendar days of sunrise/sunset data")

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit: str = Field(
        default="100 per 15 minutes",
        description="Per-client request quota applied to every /api route.",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def normalize_cors(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return json.loads(s)
            if s in ("", "*"):
                return ["*"]
            return [p.strip() for p in s.split(",")]
        return v

    @field_validator("cwa_api_key", mode="before")
    @classmethod
    def blank_key_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

settings = Settings()
