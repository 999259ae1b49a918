import logging
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shop_bookings.core.exceptions import (
    AlreadyRated,
    AppointmentInPast,
    BookingNotFound,
    NotAuthorized,
    TransitionRejected,
    VersionConflict,
)
from shop_bookings.core.metrics import BOOKING_TRANSITIONS
from shop_bookings.db.models import (
    ACTIVE_STATUSES,
    MANAGING_STAFF_ROLES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    Review,
    Shop,
    ShopStaff,
    StaffRole,
    User,
)
from shop_bookings.schemas.booking import BookingCreateRequest, BookingScope, ReviewCreateRequest
from shop_bookings.services.booking_state_machine import (
    ActorRole,
    BookingAction,
    TRANSITIONS,
    authorize,
    available_actions,
    check_transition,
    normalize_cancellation_reason,
    rejection_note,
    resolve_actor_role,
)
from shop_bookings.services.notification_service import (
    BookingNotification,
    NotificationDispatcher,
    NotificationType,
)

logger = logging.getLogger(__name__)

SHOP_NOT_FOUND_DETAIL = "Shop not found"
PROVIDER_NOT_IN_SHOP_DETAIL = "Provider does not work at this shop"


def _now() -> datetime:
    return datetime.now(UTC)


def ensure_appointment_in_future(appointment_date: date, appointment_time: time, now: datetime | None = None) -> None:
    # Appointments are shop-local wall-clock values, compared the same way the jobs compare them.
    current = (now or _now()).replace(tzinfo=None)
    if datetime.combine(appointment_date, appointment_time.replace(tzinfo=None)) < current:
        raise AppointmentInPast()


def get_staff_role(db: Session, shop_id: int, user_id: int) -> str | None:
    return db.scalar(
        select(ShopStaff.role).where(
            ShopStaff.shop_id == shop_id,
            ShopStaff.user_id == user_id,
            ShopStaff.is_active.is_(True),
        )
    )


def _get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.scalar(select(Booking).where(Booking.id == booking_id))
    if not booking:
        raise BookingNotFound()
    return booking


def resolve_role_for_booking(db: Session, actor: User, booking: Booking) -> ActorRole | None:
    return resolve_actor_role(
        actor_id=actor.id,
        platform_role=actor.platform_role,
        staff_role=get_staff_role(db, shop_id=booking.shop_id, user_id=actor.id),
        customer_id=booking.customer_id,
    )


def _can_read(db: Session, actor: User, booking: Booking) -> bool:
    if actor.is_super_admin or booking.customer_id == actor.id:
        return True
    return get_staff_role(db, shop_id=booking.shop_id, user_id=actor.id) is not None


def get_booking_for_actor(db: Session, booking_id: int, actor: User) -> Booking:
    booking = _get_booking(db, booking_id)
    if not _can_read(db, actor, booking):
        # Unrelated callers must not learn that the booking exists.
        raise BookingNotFound()
    return booking


def list_booking_actions(
    db: Session,
    booking_id: int,
    actor: User,
) -> tuple[Booking, ActorRole | None, list[BookingAction]]:
    booking = get_booking_for_actor(db, booking_id, actor)
    role = resolve_role_for_booking(db, actor, booking)
    already_rated = db.scalar(select(Review.id).where(Review.booking_id == booking.id)) is not None
    return booking, role, available_actions(role, booking.status, already_rated=already_rated)


def _shop_manager_ids(db: Session, shop_id: int) -> list[int]:
    return list(
        db.scalars(
            select(ShopStaff.user_id)
            .where(
                ShopStaff.shop_id == shop_id,
                ShopStaff.is_active.is_(True),
                ShopStaff.role.in_(MANAGING_STAFF_ROLES),
            )
            .order_by(ShopStaff.user_id)
        ).all()
    )


def _counterparty_ids(db: Session, booking: Booking, role: ActorRole | None) -> list[int]:
    if role != ActorRole.CUSTOMER:
        return [booking.customer_id]
    if booking.provider_id is not None:
        return [booking.provider_id]
    return [user_id for user_id in _shop_manager_ids(db, booking.shop_id) if user_id != booking.customer_id]


def build_notifications(
    db: Session,
    booking: Booking,
    notification_type: NotificationType,
    recipient_ids: list[int],
    reason: str | None = None,
) -> list[BookingNotification]:
    shop_name = db.scalar(select(Shop.name).where(Shop.id == booking.shop_id))
    service_name = ", ".join(item.get("name", "") for item in booking.services or []) or None
    return [
        BookingNotification(
            type=notification_type,
            recipient_user_id=recipient_id,
            booking_id=booking.id,
            shop_name=shop_name,
            service_name=service_name,
            date=booking.appointment_date.isoformat(),
            time=booking.appointment_time.strftime("%H:%M"),
            reason=reason,
        )
        for recipient_id in recipient_ids
    ]


def _write_transition(
    db: Session,
    booking: Booking,
    action: BookingAction,
    values: dict[str, Any],
    expected_version: int | None = None,
) -> Booking:
    """Apply a transition with a single conditional UPDATE.

    The status precondition is part of the WHERE clause so a concurrent writer
    that got there first makes this update match zero rows.
    """
    transition = TRANSITIONS[action]
    previous_status = booking.status
    query = update(Booking).where(
        Booking.id == booking.id,
        Booking.status.in_([source.value for source in transition.sources]),
    )
    if expected_version is not None:
        query = query.where(Booking.version == expected_version)

    row_values = {**values, "version": Booking.version + 1, "updated_at": _now()}
    if transition.target is not None:
        row_values["status"] = transition.target.value

    result = db.execute(query.values(**row_values).execution_options(synchronize_session=False))
    if result.rowcount != 1:
        db.rollback()
        db.refresh(booking)
        BOOKING_TRANSITIONS.labels(action=action.value, outcome="rejected").inc()
        logger.warning(
            "booking_transition_rejected action=%s booking_id=%s status=%s version=%s expected_version=%s",
            action.value,
            booking.id,
            booking.status,
            booking.version,
            expected_version,
        )
        if expected_version is not None and booking.version != expected_version:
            raise VersionConflict()
        raise TransitionRejected(f"Cannot {action.value} a booking that is {booking.status}")

    db.commit()
    db.refresh(booking)
    BOOKING_TRANSITIONS.labels(action=action.value, outcome="applied").inc()
    logger.info(
        "booking_transition action=%s booking_id=%s from=%s to=%s version=%s",
        action.value,
        booking.id,
        previous_status,
        booking.status,
        booking.version,
    )
    return booking


def _prepare(
    db: Session,
    booking_id: int,
    actor: User,
    action: BookingAction,
) -> tuple[Booking, ActorRole | None]:
    booking = get_booking_for_actor(db, booking_id, actor)
    role = resolve_role_for_booking(db, actor, booking)
    try:
        authorize(role, action)
    except NotAuthorized:
        BOOKING_TRANSITIONS.labels(action=action.value, outcome="forbidden").inc()
        raise
    return booking, role


def _check_status(booking: Booking, action: BookingAction) -> None:
    try:
        check_transition(booking.status, action)
    except TransitionRejected:
        BOOKING_TRANSITIONS.labels(action=action.value, outcome="rejected").inc()
        raise


def create_booking(
    db: Session,
    customer: User,
    shop_id: int,
    payload: BookingCreateRequest,
    notifier: NotificationDispatcher,
) -> Booking:
    shop = db.scalar(select(Shop).where(Shop.id == shop_id))
    if not shop:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SHOP_NOT_FOUND_DETAIL)
    ensure_appointment_in_future(payload.appointment_date, payload.appointment_time)

    if payload.provider_id is not None:
        provider_role = get_staff_role(db, shop_id=shop_id, user_id=payload.provider_id)
        if provider_role is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=PROVIDER_NOT_IN_SHOP_DETAIL,
            )

    total_amount = sum((item.price for item in payload.services), Decimal("0"))
    booking = Booking(
        shop_id=shop_id,
        customer_id=customer.id,
        provider_id=payload.provider_id,
        appointment_date=payload.appointment_date,
        appointment_time=payload.appointment_time,
        services=[item.model_dump(mode="json") for item in payload.services],
        total_amount=total_amount,
        status=BookingStatus.PENDING.value,
        customer_notes=payload.customer_notes or None,
        version=1,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(
        "booking_created booking_id=%s shop_id=%s customer_id=%s total_amount=%s",
        booking.id,
        shop_id,
        customer.id,
        booking.total_amount,
    )

    recipients = [booking.provider_id] if booking.provider_id else _shop_manager_ids(db, shop_id)
    notifier.dispatch(build_notifications(db, booking, NotificationType.NEW_BOOKING, recipients))
    return booking


def confirm_booking(
    db: Session,
    booking_id: int,
    actor: User,
    notifier: NotificationDispatcher,
    expected_version: int | None = None,
) -> Booking:
    booking, role = _prepare(db, booking_id, actor, BookingAction.CONFIRM)
    _check_status(booking, BookingAction.CONFIRM)
    booking = _write_transition(
        db,
        booking,
        BookingAction.CONFIRM,
        {"confirmed_at": _now()},
        expected_version=expected_version,
    )
    notifier.dispatch(
        build_notifications(db, booking, NotificationType.BOOKING_CONFIRMED, _counterparty_ids(db, booking, role))
    )
    return booking


def reject_booking(
    db: Session,
    booking_id: int,
    actor: User,
    reason: str | None,
    notifier: NotificationDispatcher,
    expected_version: int | None = None,
) -> Booking:
    booking, role = _prepare(db, booking_id, actor, BookingAction.REJECT)
    note = rejection_note(reason)
    _check_status(booking, BookingAction.REJECT)
    booking = _write_transition(
        db,
        booking,
        BookingAction.REJECT,
        {"customer_notes": note, "cancelled_at": _now()},
        expected_version=expected_version,
    )
    notifier.dispatch(
        build_notifications(
            db,
            booking,
            NotificationType.BOOKING_CANCELLED,
            _counterparty_ids(db, booking, role),
            reason=note,
        )
    )
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    actor: User,
    reason: str | None,
    notifier: NotificationDispatcher,
    expected_version: int | None = None,
) -> Booking:
    booking, role = _prepare(db, booking_id, actor, BookingAction.CANCEL)
    note = normalize_cancellation_reason(role, reason)
    _check_status(booking, BookingAction.CANCEL)
    # The cancellation reason replaces whatever note the customer left at booking time.
    booking = _write_transition(
        db,
        booking,
        BookingAction.CANCEL,
        {"customer_notes": note, "cancelled_at": _now()},
        expected_version=expected_version,
    )
    notifier.dispatch(
        build_notifications(
            db,
            booking,
            NotificationType.BOOKING_CANCELLED,
            _counterparty_ids(db, booking, role),
            reason=note,
        )
    )
    return booking


def complete_booking(
    db: Session,
    booking_id: int,
    actor: User,
    notifier: NotificationDispatcher,
    expected_version: int | None = None,
) -> Booking:
    booking, role = _prepare(db, booking_id, actor, BookingAction.COMPLETE)
    _check_status(booking, BookingAction.COMPLETE)
    booking = _write_transition(
        db,
        booking,
        BookingAction.COMPLETE,
        {"completed_by": actor.id, "completed_at": _now()},
        expected_version=expected_version,
    )
    notifier.dispatch(
        build_notifications(db, booking, NotificationType.BOOKING_COMPLETED, _counterparty_ids(db, booking, role))
    )
    return booking


def mark_booking_no_show(
    db: Session,
    booking_id: int,
    actor: User,
    notifier: NotificationDispatcher,
    expected_version: int | None = None,
) -> Booking:
    booking, role = _prepare(db, booking_id, actor, BookingAction.MARK_NO_SHOW)
    _check_status(booking, BookingAction.MARK_NO_SHOW)
    booking = _write_transition(db, booking, BookingAction.MARK_NO_SHOW, {}, expected_version=expected_version)
    notifier.dispatch(
        build_notifications(db, booking, NotificationType.BOOKING_NO_SHOW, _counterparty_ids(db, booking, role))
    )
    return booking


def mark_no_show_by_system(db: Session, booking: Booking, notifier: NotificationDispatcher) -> bool:
    """Time-driven no-show used by the background job; loses quietly to any concurrent transition."""
    try:
        _write_transition(db, booking, BookingAction.MARK_NO_SHOW, {})
    except TransitionRejected:
        return False
    notifier.dispatch(
        build_notifications(db, booking, NotificationType.BOOKING_NO_SHOW, [booking.customer_id])
    )
    return True


def reschedule_booking(
    db: Session,
    booking_id: int,
    actor: User,
    new_date: date,
    new_time: time,
    notifier: NotificationDispatcher,
    expected_version: int | None = None,
) -> Booking:
    booking, role = _prepare(db, booking_id, actor, BookingAction.RESCHEDULE)
    _check_status(booking, BookingAction.RESCHEDULE)
    ensure_appointment_in_future(new_date, new_time)
    booking = _write_transition(
        db,
        booking,
        BookingAction.RESCHEDULE,
        {
            "appointment_date": new_date,
            "appointment_time": new_time,
            "confirmed_at": None,
            "reminder_sent_at": None,
        },
        expected_version=expected_version,
    )
    notifier.dispatch(
        build_notifications(db, booking, NotificationType.BOOKING_RESCHEDULED, _counterparty_ids(db, booking, role))
    )
    return booking


def rate_booking(db: Session, booking_id: int, actor: User, payload: ReviewCreateRequest) -> Review:
    booking, _ = _prepare(db, booking_id, actor, BookingAction.RATE)
    _check_status(booking, BookingAction.RATE)

    existing = db.scalar(select(Review.id).where(Review.booking_id == booking.id))
    if existing is not None:
        BOOKING_TRANSITIONS.labels(action=BookingAction.RATE.value, outcome="rejected").inc()
        raise AlreadyRated()

    review = Review(
        shop_id=booking.shop_id,
        booking_id=booking.id,
        customer_id=actor.id,
        provider_id=booking.provider_id,
        rating=payload.rating,
        provider_rating=payload.provider_rating if booking.provider_id else None,
        review_text=payload.review_text,
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyRated() from None

    db.refresh(review)
    BOOKING_TRANSITIONS.labels(action=BookingAction.RATE.value, outcome="applied").inc()
    logger.info("booking_rated booking_id=%s rating=%s", booking.id, review.rating)
    return review


def fetch_user_bookings(
    db: Session,
    actor: User,
    scope: BookingScope = BookingScope.UPCOMING,
    shop_id: int | None = None,
    today: date | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Booking]:
    current_day = today or _now().date()
    query = select(Booking)

    staff_role = get_staff_role(db, shop_id=shop_id, user_id=actor.id) if shop_id is not None else None
    if staff_role == StaffRole.BARBER.value:
        query = query.where(Booking.shop_id == shop_id, Booking.provider_id == actor.id)
    elif staff_role in MANAGING_STAFF_ROLES:
        query = query.where(Booking.shop_id == shop_id)
    else:
        query = query.where(Booking.customer_id == actor.id)
        if shop_id is not None:
            query = query.where(Booking.shop_id == shop_id)

    newest_first = (Booking.appointment_date.desc(), Booking.appointment_time.desc(), Booking.id.desc())
    if scope == BookingScope.UPCOMING:
        query = query.where(
            Booking.appointment_date >= current_day,
            Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
        ).order_by(Booking.appointment_date, Booking.appointment_time, Booking.id)
    elif scope == BookingScope.PAST:
        query = query.where(
            or_(
                Booking.appointment_date < current_day,
                Booking.status.in_([s.value for s in TERMINAL_STATUSES]),
            )
        ).order_by(*newest_first)
    elif scope == BookingScope.CANCELLED:
        query = query.where(Booking.status == BookingStatus.CANCELLED.value).order_by(*newest_first)
    else:
        query = query.order_by(*newest_first)

    return list(db.scalars(query.limit(limit).offset(offset)).all())


def find_stale_active_bookings(db: Session, cutoff: datetime) -> list[Booking]:
    cutoff_date = cutoff.date()
    cutoff_time = cutoff.time().replace(tzinfo=None)
    return list(
        db.scalars(
            select(Booking)
            .where(
                Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
                or_(
                    Booking.appointment_date < cutoff_date,
                    and_(Booking.appointment_date == cutoff_date, Booking.appointment_time <= cutoff_time),
                ),
            )
            .order_by(Booking.id)
        ).all()
    )
