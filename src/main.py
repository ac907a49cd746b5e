from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging, time

from config import settings
from api.limits import limiter
from api.router import router as api_router
from services.cwa_client import CwaClient
from services.errors import RegionNotFound, UpstreamError
from services.forecast import ForecastService
from services.forecast_cache import ForecastCache

logger = logging.getLogger("ecoweather.hub")
if not logger.handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}

BAD_REQUEST_MESSAGE = "A valid city name or lat/lon coordinates are required"
UPSTREAM_FAILURE_MESSAGE = "Unable to retrieve weather information"
RATE_LIMITED_MESSAGE = "Too many requests, please try again later"


def build_forecast_service() -> ForecastService:
    cache = ForecastCache(ttl=settings.forecast_cache_ttl)
    return ForecastService(cache, CwaClient(), astro_days=settings.astro_days)


def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit exceeded for %s on %s", get_remote_address(request), request.url.path)
    return JSONResponse(status_code=429, content={"error": RATE_LIMITED_MESSAGE})


def create_app(forecast_service: ForecastService | None = None) -> FastAPI:
    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.state.forecast_service = forecast_service or build_forecast_service()

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limited)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        dur_ms = (time.perf_counter() - start) * 1000.0
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, dur_ms)
        return response

    @app.exception_handler(RegionNotFound)
    async def _region_not_found(request: Request, exc: RegionNotFound):
        return JSONResponse(status_code=400, content={"error": BAD_REQUEST_MESSAGE})

    @app.exception_handler(UpstreamError)
    async def _upstream_failure(request: Request, exc: UpstreamError):
        logger.error("Server Error: %s", exc)
        return JSONResponse(status_code=500, content={"error": UPSTREAM_FAILURE_MESSAGE, "details": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request parameters", "details": problems})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": UPSTREAM_FAILURE_MESSAGE, "details": str(exc)})

    app.include_router(api_router)

    @app.on_event("startup")
    async def _startup():
        logger.info("%s running on port %s", settings.app_name, settings.port)
        if not settings.cwa_api_key:
            logger.warning("CWA_API_KEY is not set; forecast requests will fail until it is configured.")

    @app.on_event("shutdown")
    async def _shutdown():
        await app.state.forecast_service.close()

    return app

app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
