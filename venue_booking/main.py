"""
Venue Booking API

Routers are mounted per area: availability, holds, bookings, waitlist and
email (consent, tracking webhooks, dead letters).
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog

from venue_booking.config import settings
from venue_booking.errors import BookingError
from venue_booking.log import configure_logging
from venue_booking.api import availability, holds, bookings, waitlist, email

VERSION = "1.0.0"

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("API starting", version=VERSION, venue=settings.venue_name)
    yield
    from venue_booking.database import engine

    await engine.dispose()
    logger.info("API stopped")


app = FastAPI(
    title="Venue Booking",
    description="Table holds, combinations, waitlist and booking emails for a single venue",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Render domain errors as {"detail", "code"}"""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request failed",
        method=request.method,
        path=request.url.path,
        code=exc.code,
        detail=exc.detail,
        **{key: str(value) for key, value in exc.context.items()},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


async def _database_status() -> str:
    from venue_booking.database import SessionLocal

    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        return f"failed: {e}"
    return "ok"


def _broker_status() -> str:
    from venue_booking.jobs.celery_app import celery_app

    try:
        celery_app.control.ping(timeout=1)
    except Exception as e:
        return f"failed: {e}"
    return "ok"


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "venue-booking", "version": VERSION}


@app.get("/health/ready")
async def ready():
    """Database and broker reachability"""
    checks = {"database": await _database_status(), "broker": _broker_status()}
    all_ok = all(status == "ok" for status in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ready" if all_ok else "not_ready", "checks": checks},
    )


app.include_router(availability.router, prefix="/availability", tags=["Availability"])
app.include_router(holds.router, prefix="/holds", tags=["Holds"])
app.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
app.include_router(waitlist.router, prefix="/waitlist", tags=["Waitlist"])
app.include_router(email.router, prefix="/email", tags=["Email"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "venue_booking.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
