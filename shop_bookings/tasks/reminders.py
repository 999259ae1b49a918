import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from shop_bookings.core.config import settings
from shop_bookings.db.models import Booking, BookingStatus
from shop_bookings.db.session import SessionLocal
from shop_bookings.services.booking_service import build_notifications
from shop_bookings.services.notification_service import (
    NotificationDispatcher,
    NotificationType,
    get_notification_dispatcher,
)
from shop_bookings.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def find_bookings_due_for_reminder(db: Session, now: datetime) -> list[Booking]:
    window_end = now + timedelta(minutes=settings.reminder_lookahead_minutes)
    start_date, start_time = now.date(), now.time().replace(tzinfo=None)
    end_date, end_time = window_end.date(), window_end.time().replace(tzinfo=None)

    after_start = or_(
        Booking.appointment_date > start_date,
        and_(Booking.appointment_date == start_date, Booking.appointment_time >= start_time),
    )
    before_end = or_(
        Booking.appointment_date < end_date,
        and_(Booking.appointment_date == end_date, Booking.appointment_time < end_time),
    )
    return list(
        db.scalars(
            select(Booking)
            .where(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.reminder_sent_at.is_(None),
                after_start,
                before_end,
            )
            .order_by(Booking.appointment_date, Booking.appointment_time, Booking.id)
        ).all()
    )


def _stamp_reminder(db: Session, booking: Booking, now: datetime) -> bool:
    # Conditional so a booking cancelled or rescheduled since it was selected is skipped.
    result = db.execute(
        update(Booking)
        .where(
            Booking.id == booking.id,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.reminder_sent_at.is_(None),
        )
        .values(reminder_sent_at=now, version=Booking.version + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def send_upcoming_reminders(db: Session, notifier: NotificationDispatcher, now: datetime | None = None) -> int:
    current_time = now or datetime.now(UTC)
    due = find_bookings_due_for_reminder(db, now=current_time)
    if not due:
        return 0

    # Reminders are best-effort: mark first so a slow gateway never causes duplicates.
    stamped = [booking for booking in due if _stamp_reminder(db, booking, current_time)]
    db.commit()

    for booking in stamped:
        db.refresh(booking)
        notifier.dispatch(build_notifications(db, booking, NotificationType.BOOKING_REMINDER, [booking.customer_id]))

    logger.info("booking_reminders_sent count=%s skipped=%s", len(stamped), len(due) - len(stamped))
    return len(stamped)


@celery_app.task(name="bookings.remind_upcoming")
def remind_upcoming_bookings_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        reminded = send_upcoming_reminders(db=db, notifier=get_notification_dispatcher())
        return {"reminded": reminded}
    finally:
        db.close()
