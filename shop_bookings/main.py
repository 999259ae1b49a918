import logging
import time
from uuid import uuid4

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError

from shop_bookings.api.v1.auth import router as auth_router
from shop_bookings.api.v1.bookings import router as bookings_router
from shop_bookings.api.v1.shops import router as shops_router
from shop_bookings.api.v1.users import router as users_router
from shop_bookings.core.config import settings
from shop_bookings.core.exceptions import (
    BookingError,
    booking_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from shop_bookings.core.logging import setup_logging
from shop_bookings.core.metrics import REQUEST_COUNT, REQUEST_LATENCY, render_metrics
from shop_bookings.core.request_context import request_id_ctx_var

setup_logging()
logger = logging.getLogger("shop_bookings.request")

app = FastAPI(title="Shop Bookings API", version="0.1.0")
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(BookingError, booking_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(shops_router)
app.include_router(bookings_router)


def _route_template(request: Request) -> str:
    # Label metrics with "/bookings/{booking_id}" rather than one series per booking.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _record_request(request: Request, method: str, status_code: int, elapsed: float) -> None:
    path = _route_template(request)
    REQUEST_COUNT.labels(method=method, path=path, status_code=status_code).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    token = request_id_ctx_var.set(request_id)
    start = time.perf_counter()
    method = request.method
    try:
        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - start
            _record_request(request, method, 500, elapsed)
            logger.exception(
                "request_failed method=%s path=%s status=500 duration_ms=%.2f",
                method,
                request.url.path,
                elapsed * 1000,
            )
            raise
        elapsed = time.perf_counter() - start
        _record_request(request, method, response.status_code, elapsed)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed method=%s path=%s status=%s duration_ms=%.2f",
            method,
            request.url.path,
            response.status_code,
            elapsed * 1000,
        )
        return response
    finally:
        request_id_ctx_var.reset(token)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "env": settings.app_env}


@app.get("/metrics", tags=["observability"])
def metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
