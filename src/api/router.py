from datetime import datetime, timezone

from fastapi import APIRouter, Request

from .limits import limiter, request_limit
from .weather_router import router as weather_router

router = APIRouter(prefix="/api")
router.include_router(weather_router)


@router.get("/health", tags=["meta"])
@limiter.limit(request_limit)
async def health(request: Request):
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {"status": "OK", "timestamp": timestamp}
