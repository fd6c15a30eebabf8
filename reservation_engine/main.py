# reservation_engine/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reservation_engine.config import ALLOWED_ORIGINS
from reservation_engine.dependencies import shutdown_dispatcher
from reservation_engine.errors import ReservationEngineError
from reservation_engine.logging_config import setup_logging
from reservation_engine.middleware import RequestIDMiddleware
from reservation_engine.routes.alerts import router as alerts_router
from reservation_engine.routes.availability import router as availability_router
from reservation_engine.routes.calendar import router as calendar_router
from reservation_engine.routes.external import router as external_router
from reservation_engine.routes.health import router as health_router
from reservation_engine.routes.metrics import router as metrics_router
from reservation_engine.routes.reservations import router as reservations_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Reservation Engine API",
    description="Reservation lifecycle, availability calendar and resale for venues and services",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(reservations_router, tags=["Reservations"])
app.include_router(external_router, tags=["External Reservations"])
app.include_router(availability_router, tags=["Availability"])
app.include_router(calendar_router, tags=["Calendar"])
app.include_router(alerts_router, tags=["Alerts"])


@app.exception_handler(ReservationEngineError)
async def reservation_engine_error_handler(
    request: Request, exc: ReservationEngineError
) -> JSONResponse:
    """Answer engine errors with their status code and ``{"error", "detail"}`` body."""
    if exc.status_code >= 500:
        logger.warning("request_failed", error=exc.code, detail=exc.message, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def startup_event() -> None:
    logger.info("FastAPI application starting up...")


@app.on_event("shutdown")
def shutdown_event() -> None:
    """Let queued refunds and notifications finish before the process exits."""
    shutdown_dispatcher()
    logger.info("FastAPI application shut down")
