from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shop_bookings.core.request_context import request_id_ctx_var


class BookingError(Exception):
    """Base class for booking lifecycle failures surfaced to API callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "booking_error"
    default_message: str = "Booking operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BookingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "booking_not_found"
    default_message = "Booking not found"


class NotAuthorized(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "not_authorized"
    default_message = "Not enough permissions"


class ReasonRequired(BookingError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "reason_required"
    default_message = "A cancellation reason is required"


class TransitionRejected(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "transition_rejected"
    default_message = "Booking status does not allow this operation. Refresh and try again."


class VersionConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "version_conflict"
    default_message = "Booking was modified by someone else. Refresh and try again."


class AlreadyRated(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_rated"
    default_message = "Booking has already been rated"


class AppointmentInPast(BookingError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "appointment_in_past"
    default_message = "Appointment must be in the future"


def _error_payload(code: str, message: str, detail):
    return {
        "error": {
            "code": code,
            "message": message,
            "detail": detail,
        },
        "detail": detail,
        "request_id": request_id_ctx_var.get(),
    }


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=f"http_{exc.status_code}",
            message=str(exc.detail),
            detail=exc.detail,
        ),
        headers=exc.headers,
    )


async def booking_exception_handler(_: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code=exc.code, message=exc.message, detail=exc.message),
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_payload(
            code="validation_error",
            message="Request validation failed",
            detail=exc.errors(),
        ),
    )
