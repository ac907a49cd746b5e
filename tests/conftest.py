import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from api.limits import limiter  # noqa: E402
from config import settings  # noqa: E402
from main import create_app  # noqa: E402
from services.cwa_client import CwaClient  # noqa: E402
from services.forecast import ForecastService  # noqa: E402
from services.forecast_cache import ForecastCache  # noqa: E402

TAIPEI_OFFSET = timezone(timedelta(hours=8))

WEATHER_LABELS = ["多雲", "陰短暫雨", "晴時多雲", "多雲短暫陣雨"]


class FakeClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


def _series(name: str, values: Sequence[Any], windows: Sequence[tuple[datetime, datetime]]) -> Dict[str, Any]:
    entries = [
        {
            "startTime": start.isoformat(),
            "endTime": end.isoformat(),
            "elementValue": [{"value": value, "measures": "自定義"}],
        }
        for (start, end), value in zip(windows, values)
    ]
    return {"elementName": name, "time": entries}


def build_cwa_payload(
    location_name: str = "臺北市",
    slots: int = 14,
    *,
    start: datetime = datetime(2025, 5, 12, 18, 0, tzinfo=TAIPEI_OFFSET),
    lengths: Optional[Dict[str, int]] = None,
    omit: Iterable[str] = (),
) -> Dict[str, Any]:
    """Return a legacy-layout F-D0047-091 document with ``slots`` aligned 12 hour windows."""

    windows = [(start + timedelta(hours=12 * i), start + timedelta(hours=12 * (i + 1))) for i in range(slots)]
    values: Dict[str, list[str]] = {
        "Wx": [WEATHER_LABELS[i % len(WEATHER_LABELS)] for i in range(slots)],
        "PoP12h": [str(10 * (i % 10)) for i in range(slots)],
        "T": [str(20 + i % 5) for i in range(slots)],
        "RH": [str(70 + i % 10) for i in range(slots)],
        "WS": [str(2 + i % 3) for i in range(slots)],
    }
    lengths = lengths or {}
    skipped = set(omit)
    elements = []
    for name, series in values.items():
        if name in skipped:
            continue
        count = lengths.get(name, slots)
        elements.append(_series(name, series[:count], windows[:count]))
    return {
        "success": "true",
        "result": {"resource_id": "F-D0047-091"},
        "records": {
            "locations": [
                {
                    "datasetDescription": "臺灣各縣市鄉鎮未來1週逐12小時天氣預報",
                    "locationsName": "臺灣",
                    "location": [{"locationName": location_name, "weatherElement": elements}],
                }
            ]
        },
    }


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def settings_override() -> Callable[..., None]:
    original: Dict[str, Any] = {}

    def _apply(**overrides: Any) -> None:
        for key, value in overrides.items():
            if key not in original:
                original[key] = getattr(settings, key)
            setattr(settings, key, value)

    yield _apply

    for key, value in original.items():
        setattr(settings, key, value)


@pytest.fixture
def cwa_payload() -> Callable[..., Dict[str, Any]]:
    return build_cwa_payload


@pytest.fixture
def clock() -> FakeClock:
    # 2025-05-12 17:30 in Taipei
    return FakeClock(datetime(2025, 5, 12, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def forecast_service(clock: FakeClock) -> ForecastService:
    cache = ForecastCache(ttl=timedelta(minutes=10), clock=clock)
    return ForecastService(cache, CwaClient(api_key="test-key"))


@pytest.fixture
def client(forecast_service: ForecastService) -> TestClient:
    app = create_app(forecast_service)
    with TestClient(app) as test_client:
        yield test_client
