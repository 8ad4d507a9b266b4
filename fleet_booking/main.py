import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fleet_booking.config import ENABLE_SCHEDULER, LOG_LEVEL
from fleet_booking.db import init_database
from fleet_booking.exceptions import DomainError
from fleet_booking.routers import auth, bookings, messages, notifications, vehicles
from fleet_booking.utils import scheduler

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    "lifespan for initing database and the reconciliation sweep"
    init_database()
    sweep = scheduler.start() if ENABLE_SCHEDULER else None
    yield
    if sweep is not None:
        sweep.shutdown(wait=False)


app = FastAPI(
    lifespan=lifespan,
    title="Academy fleet booker",
    description="Vehicle booking, key handover and notifications for training academy locations.",
    version="0.1.0",
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT",
    },
)


@app.exception_handler(DomainError)
async def domain_error_handler(_: Request, exc: DomainError):
    logger.error(f"{exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "details": exc.details},
    )


app.include_router(auth.router)
app.include_router(vehicles.router)
app.include_router(bookings.router)
app.include_router(notifications.router)
app.include_router(messages.router)
