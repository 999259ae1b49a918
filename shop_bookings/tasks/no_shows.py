import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from shop_bookings.core.config import settings
from shop_bookings.db.session import SessionLocal
from shop_bookings.services.booking_service import find_stale_active_bookings, mark_no_show_by_system
from shop_bookings.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from shop_bookings.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def mark_no_shows(db: Session, notifier: NotificationDispatcher, now: datetime | None = None) -> int:
    # Appointment slots are stored as shop-local wall clock values, compared as-is.
    current_time = now or datetime.now(UTC)
    cutoff = current_time - timedelta(minutes=settings.no_show_grace_minutes)

    marked = 0
    for booking in find_stale_active_bookings(db, cutoff=cutoff):
        if mark_no_show_by_system(db, booking, notifier):
            marked += 1

    if marked:
        logger.info("no_shows_marked count=%s cutoff=%s", marked, cutoff.isoformat())
    return marked


@celery_app.task(name="bookings.mark_no_shows")
def mark_no_shows_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        marked = mark_no_shows(db=db, notifier=get_notification_dispatcher())
        return {"no_show": marked}
    finally:
        db.close()
