from datetime import timedelta

from celery import Celery

from shop_bookings.core.config import settings

celery_app = Celery(
    "shop_bookings",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["shop_bookings.tasks.no_shows", "shop_bookings.tasks.reminders", "shop_bookings.tasks.notifications"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "mark-no-show-bookings": {
            "task": "bookings.mark_no_shows",
            "schedule": timedelta(minutes=settings.celery_no_show_interval_minutes),
        },
        "remind-upcoming-bookings": {
            "task": "bookings.remind_upcoming",
            "schedule": timedelta(minutes=settings.celery_reminder_interval_minutes),
        },
    },
)
