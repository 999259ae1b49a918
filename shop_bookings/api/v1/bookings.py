from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from shop_bookings.api.deps import get_current_user, get_expected_version
from shop_bookings.api.pagination import DEFAULT_PAGE_SIZE, LimitParam, OffsetParam
from shop_bookings.db.models import User
from shop_bookings.db.session import get_db
from shop_bookings.schemas.booking import (
    BookingActionsResponse,
    BookingCancelRequest,
    BookingRejectRequest,
    BookingRescheduleRequest,
    BookingResponse,
    BookingScope,
    ReviewCreateRequest,
    ReviewResponse,
)
from shop_bookings.services.booking_service import (
    cancel_booking,
    complete_booking,
    confirm_booking,
    fetch_user_bookings,
    get_booking_for_actor,
    list_booking_actions,
    mark_booking_no_show,
    rate_booking,
    reject_booking,
    reschedule_booking,
)
from shop_bookings.services.notification_service import NotificationDispatcher, get_notification_dispatcher

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _with_etag(response: Response, booking) -> BookingResponse:
    response.headers["ETag"] = f'"{booking.version}"'
    return BookingResponse.model_validate(booking)


@router.get("/me", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
def list_my_bookings(
    scope: BookingScope = Query(default=BookingScope.UPCOMING),
    shop_id: int | None = Query(default=None),
    limit: LimitParam = DEFAULT_PAGE_SIZE,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BookingResponse]:
    bookings = fetch_user_bookings(
        db=db,
        actor=current_user,
        scope=scope,
        shop_id=shop_id,
        limit=limit,
        offset=offset,
    )
    return [BookingResponse.model_validate(booking) for booking in bookings]


@router.get("/{booking_id}", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def get_booking_by_id(
    booking_id: int,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = get_booking_for_actor(db=db, booking_id=booking_id, actor=current_user)
    return _with_etag(response, booking)


@router.get("/{booking_id}/actions", response_model=BookingActionsResponse, status_code=status.HTTP_200_OK)
def get_booking_actions(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BookingActionsResponse:
    booking, role, actions = list_booking_actions(db=db, booking_id=booking_id, actor=current_user)
    return BookingActionsResponse(
        booking_id=booking.id,
        status=booking.status,
        role=role.value if role else None,
        actions=actions,
    )


@router.patch("/{booking_id}/confirm", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def confirm_existing_booking(
    booking_id: int,
    response: Response,
    expected_version: int | None = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = confirm_booking(
        db=db,
        booking_id=booking_id,
        actor=current_user,
        notifier=notifier,
        expected_version=expected_version,
    )
    return _with_etag(response, booking)


@router.patch("/{booking_id}/reject", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def reject_existing_booking(
    booking_id: int,
    payload: BookingRejectRequest,
    response: Response,
    expected_version: int | None = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = reject_booking(
        db=db,
        booking_id=booking_id,
        actor=current_user,
        reason=payload.reason,
        notifier=notifier,
        expected_version=expected_version,
    )
    return _with_etag(response, booking)


@router.patch("/{booking_id}/cancel", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def cancel_existing_booking(
    booking_id: int,
    response: Response,
    payload: BookingCancelRequest | None = None,
    expected_version: int | None = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = cancel_booking(
        db=db,
        booking_id=booking_id,
        actor=current_user,
        reason=payload.reason if payload else None,
        notifier=notifier,
        expected_version=expected_version,
    )
    return _with_etag(response, booking)


@router.patch("/{booking_id}/complete", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def complete_existing_booking(
    booking_id: int,
    response: Response,
    expected_version: int | None = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = complete_booking(
        db=db,
        booking_id=booking_id,
        actor=current_user,
        notifier=notifier,
        expected_version=expected_version,
    )
    return _with_etag(response, booking)


@router.patch("/{booking_id}/no-show", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def mark_existing_booking_no_show(
    booking_id: int,
    response: Response,
    expected_version: int | None = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = mark_booking_no_show(
        db=db,
        booking_id=booking_id,
        actor=current_user,
        notifier=notifier,
        expected_version=expected_version,
    )
    return _with_etag(response, booking)


@router.patch("/{booking_id}/reschedule", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def reschedule_existing_booking(
    booking_id: int,
    payload: BookingRescheduleRequest,
    response: Response,
    expected_version: int | None = Depends(get_expected_version),
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = reschedule_booking(
        db=db,
        booking_id=booking_id,
        actor=current_user,
        new_date=payload.appointment_date,
        new_time=payload.appointment_time,
        notifier=notifier,
        expected_version=expected_version,
    )
    return _with_etag(response, booking)


@router.post("/{booking_id}/review", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def review_booking(
    booking_id: int,
    payload: ReviewCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    review = rate_booking(db=db, booking_id=booking_id, actor=current_user, payload=payload)
    return ReviewResponse.model_validate(review)
