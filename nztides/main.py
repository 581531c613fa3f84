import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from .byte_source import DirectoryByteSource
from .config import Settings, get_settings
from .errors import DataExpiredError, DecodeError, PortNotFoundError
from .logging_config import setup_logging
from .port_cache import PortCache
from .repository import PortState, TideRepository
from .tide_service import TideService

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        return response


limiter = Limiter(key_func=get_remote_address)
router = APIRouter()

# Tide files store signed 32-bit timestamps
MIN_TIMESTAMP = -(2 ** 31)
MAX_TIMESTAMP = 2 ** 31 - 1


def get_service(request: Request) -> TideService:
    return request.app.state.tide_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _parse_date(date: Optional[str]) -> Optional[datetime]:
    if not date:
        return None
    try:
        start_date = datetime.fromisoformat(date)
    except ValueError:
        raise HTTPException(400, "Invalid date format. Please use ISO 8601 format (YYYY-MM-DD)")
    if start_date.tzinfo is None:
        start_date = start_date.replace(tzinfo=timezone.utc)
    return start_date


async def _data_expired_handler(request: Request, exc: DataExpiredError) -> JSONResponse:
    valid_until = datetime.fromtimestamp(exc.valid_until, tz=timezone.utc).isoformat()
    return JSONResponse(
        status_code=410,
        content={"detail": f"Tide data for '{exc.port}' ended at {valid_until}"},
    )


def _internal_error(where: str) -> HTTPException:
    error_id = uuid.uuid4().hex[:8]
    logger.exception(f"Error {error_id} in {where}")
    return HTTPException(500, detail=f"Internal error (ref: {error_id})")


async def _loaded_cache(service: TideService, port: str, timeout: float) -> PortCache:
    """
    Get a port's cache, waiting up to ``timeout`` seconds for it to load.

    Maps load failures to HTTP errors: 404 for an unknown port, 422 for a
    file that cannot be decoded, 503 when the load takes too long and 500
    for anything else, such as an unreadable file.
    """
    repository = service.repository
    cache = repository.get(port)
    if cache is not None:
        return cache

    future = repository.ensure_loaded(port)
    try:
        # Shielded so a timeout here does not cancel the shared load
        return await asyncio.wait_for(asyncio.shield(asyncio.wrap_future(future)), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Timed out after {timeout}s waiting for '{port}' to load")
        raise HTTPException(503, detail=f"Tide data for '{port}' is still loading, try again shortly")
    except PortNotFoundError as e:
        raise HTTPException(404, detail=str(e))
    except DecodeError as e:
        raise HTTPException(422, detail=f"Tide data for '{port}' could not be read: {e}")
    except Exception:
        raise _internal_error(f"loading '{port}'")


@router.get("/health")
async def health(service: TideService = Depends(get_service)):
    states = service.repository.ports().values()
    return {"status": "healthy", "ports_ready": sum(1 for s in states if s is PortState.READY)}


@router.get("/api/v1/ports")
async def list_ports(service: TideService = Depends(get_service)):
    """
    List ports with tide data available, and their load state.

    Ports that failed to load for lack of a data file are not listed.
    """
    repository = service.repository
    states = repository.ports()

    names = set(repository.byte_source.ports()) if repository.byte_source is not None else set()
    for port, state in states.items():
        if state is not PortState.ABSENT and not isinstance(repository.error(port), PortNotFoundError):
            names.add(port)

    return [
        {"name": name, "state": states.get(name, PortState.ABSENT).value}
        for name in sorted(names)
    ]


@router.get("/api/v1/ports/{port}/now")
async def get_current_tide(
    port: str,
    timestamp: Optional[int] = Query(
        None,
        ge=MIN_TIMESTAMP,
        le=MAX_TIMESTAMP,
        description="Seconds since epoch. If not provided, the current time is used.",
    ),
    service: TideService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Get the tide level at a moment for a port.

    Returns the interpolated height, the rate of change, the next high or
    low tide and how long the data remains valid. Responds with 410 when the
    moment is after the last tide in the port's data.
    """
    t = int(time.time()) if timestamp is None else timestamp
    cache = await _loaded_cache(service, port, settings.load_timeout)
    if not service.is_fresh(cache, t):
        raise DataExpiredError(port, cache.valid_until)

    try:
        state = service.current_state(cache, t)
        next_tide = service.next_extremum(cache, t)

        current = service.reading(t, state.height if state else 0.0)
        if state is None:
            current.update(height_m=None, height_ft=None)

        return {
            "port": port,
            "station": cache.station_name,
            **current,
            "rate_m_per_hour": round(state.rate_per_hour, 3) if state else None,
            "rising": state.rising if state else None,
            "next_tide": None if next_tide is None else {
                "type": next_tide.record.tide_type,
                **service.reading(next_tide.timestamp, next_tide.height),
                "seconds_until": next_tide.seconds_until,
            },
            "valid_until": datetime.fromtimestamp(cache.valid_until, tz=service.tz).isoformat(),
        }
    except Exception:
        raise _internal_error("get_current_tide")


@router.get("/api/v1/ports/{port}/tides")
async def get_tides(
    port: str,
    days: int = Query(7, ge=1, le=60, description="Number of days to list"),
    date: Optional[str] = Query(
        None,
        description="Optional start date (YYYY-MM-DD). If not provided, current date is used.",
    ),
    service: TideService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
):
    """Get high and low tides for a port, starting at local midnight."""
    start_date = _parse_date(date)
    cache = await _loaded_cache(service, port, settings.load_timeout)
    try:
        return service.tides_for_days(cache, days, start_date=start_date)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except Exception:
        raise _internal_error("get_tides")


@router.get("/api/v1/ports/{port}/heights")
async def get_heights(
    port: str,
    days: int = Query(1, ge=1, le=14, description="Number of days to sample"),
    date: Optional[str] = Query(
        None,
        description="Optional start date (YYYY-MM-DD). If not provided, current date is used.",
    ),
    interval: Literal["15", "30", "60"] = Query("30", description="Interval in minutes"),
    service: TideService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Get interpolated tide heights at regular intervals.

    Readings outside the span covered by the port's data are omitted, so
    fewer readings than requested means the data runs out.
    """
    start_date = _parse_date(date)
    cache = await _loaded_cache(service, port, settings.load_timeout)
    try:
        return service.tide_heights(cache, days, int(interval), start_date=start_date)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except Exception:
        raise _internal_error("get_heights")


@router.get("/api/v1/ports/{port}/report", response_class=PlainTextResponse)
@limiter.limit("5/minute")
async def get_report(
    request: Request,
    port: str,
    timestamp: Optional[int] = Query(
        None, ge=MIN_TIMESTAMP, le=MAX_TIMESTAMP, description="Seconds since epoch"
    ),
    service: TideService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Get the plain-text tide report for a port.

    Rate limited to 5 requests per minute per IP.
    """
    t = int(time.time()) if timestamp is None else timestamp
    cache = await _loaded_cache(service, port, settings.load_timeout)
    try:
        report = service.report(cache, t)
    except Exception:
        raise _internal_error("get_report")
    if report is None:
        raise DataExpiredError(port, cache.valid_until)
    return PlainTextResponse(content=report)


@router.post("/api/v1/ports/{port}/reload", status_code=202)
async def reload_port(port: str, service: TideService = Depends(get_service)):
    """Start reloading a port's data in the background."""
    repository = service.repository
    known = repository.byte_source is not None and port in repository.byte_source.ports()
    if not known and repository.get(port) is None:
        raise HTTPException(404, detail=str(PortNotFoundError(port)))

    repository.reload(port)
    return {"port": port, "state": repository.state(port).value}


@router.delete("/api/v1/ports/{port}", status_code=204)
async def evict_port(port: str, service: TideService = Depends(get_service)):
    """Drop a port's cached data; it is reloaded on next use."""
    service.repository.evict(port)
    return Response(status_code=204)


def create_app(service: Optional[TideService] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        service: Tide service to serve from; built from settings if omitted
        settings: Runtime settings; read from the environment if omitted
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    if service is None:
        repository = TideRepository(
            DirectoryByteSource(settings.data_path),
            allow_partial=settings.allow_partial,
            byte_order=settings.byte_order,
            max_workers=settings.loader_threads,
        )
        service = TideService(repository, settings.timezone)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Warm the default port so the first request is usually served from cache
        repository = app.state.tide_service.repository
        if settings.default_port and repository.byte_source is not None:
            repository.ensure_loaded(settings.default_port)
        yield
        repository.shutdown(wait=False)

    app = FastAPI(
        title="NZ Tides API",
        description="Tide heights and high/low times for New Zealand ports",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.tide_service = service
    app.state.settings = settings

    # Set up rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(DataExpiredError, _data_expired_handler)

    # Add security headers middleware
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(router)
    return app


app = create_app()
