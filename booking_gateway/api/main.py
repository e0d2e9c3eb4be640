"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from booking_gateway.api.dependencies import get_request_id
from booking_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from booking_gateway.api.v1 import availability, business_hours, conflicts, pricing
from booking_gateway.domain.exceptions import (
    BookingAvailabilityError,
    BusinessNotFoundError,
    DomainException,
)
from booking_gateway.infrastructure.observability.logging import setup_logging
from booking_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def domain_error_status(exc: DomainException) -> int:
    """HTTP status for a domain error that escaped its route"""
    if isinstance(exc, BusinessNotFoundError):
        return 404
    if isinstance(exc, BookingAvailabilityError):
        return 409
    return 422


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = domain_error_status(exc)
    logging.warning(
        f"Domain error: {exc}",
        extra={"request_id": get_request_id(request), "error": type(exc).__name__, "status": status_code},
    )

    content = {"detail": str(exc)}
    if isinstance(exc, BookingAvailabilityError):
        content["code"] = exc.code
    return JSONResponse(status_code=status_code, content=content)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Booking Gateway",
        description="Booking pricing, slot availability and staffing conflict detection",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(pricing.router, prefix="/v1", tags=["pricing"])
    app.include_router(availability.router, prefix="/v1", tags=["availability"])
    app.include_router(business_hours.router, prefix="/v1", tags=["business-hours"])
    app.include_router(conflicts.router, prefix="/v1", tags=["conflicts"])

    return app


app = create_app()
