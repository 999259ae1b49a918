import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel

from shop_bookings.core.config import settings
from shop_bookings.core.metrics import NOTIFICATIONS_DISPATCHED

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    NEW_BOOKING = "new_booking"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_RESCHEDULED = "booking_rescheduled"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_NO_SHOW = "booking_no_show"
    BOOKING_REMINDER = "booking_reminder"


class BookingNotification(BaseModel):
    type: NotificationType
    recipient_user_id: int
    booking_id: int
    shop_name: str | None = None
    service_name: str | None = None
    date: str | None = None
    time: str | None = None
    reason: str | None = None


class NotificationDispatcher(ABC):
    @abstractmethod
    def send(self, notification: BookingNotification) -> None:
        raise NotImplementedError

    def dispatch(self, notifications: list[BookingNotification]) -> int:
        """Hand notifications off without letting a delivery failure escape."""
        sent = 0
        for notification in notifications:
            try:
                self.send(notification)
            except Exception:
                NOTIFICATIONS_DISPATCHED.labels(type=notification.type.value, outcome="failed").inc()
                logger.exception(
                    "notification_dispatch_failed type=%s booking_id=%s recipient=%s",
                    notification.type.value,
                    notification.booking_id,
                    notification.recipient_user_id,
                )
                continue
            NOTIFICATIONS_DISPATCHED.labels(type=notification.type.value, outcome="sent").inc()
            sent += 1
        return sent


class InMemoryNotificationDispatcher(NotificationDispatcher):
    def __init__(self) -> None:
        self._sent: list[BookingNotification] = []
        self._lock = threading.Lock()

    def send(self, notification: BookingNotification) -> None:
        with self._lock:
            self._sent.append(notification)

    @property
    def sent(self) -> list[BookingNotification]:
        with self._lock:
            return list(self._sent)

    def reset(self) -> None:
        with self._lock:
            self._sent.clear()


class CeleryNotificationDispatcher(NotificationDispatcher):
    def send(self, notification: BookingNotification) -> None:
        from shop_bookings.tasks.notifications import send_push_notification_task

        send_push_notification_task.delay(notification.model_dump(mode="json"))


class PushGatewayClient:
    """Posts notification payloads to the push gateway.

    Without a configured URL the payload is only logged, which is what local
    development and the test suite rely on.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = base_url if base_url is not None else settings.push_gateway_url
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        auth_token = token if token is not None else settings.push_gateway_token
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._client = httpx.Client(
            timeout=timeout if timeout is not None else settings.push_gateway_timeout_seconds,
            headers=headers,
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def push(self, payload: dict[str, Any]) -> dict[str, Any]:
        if not self._url:
            logger.info(
                "push_gateway_disabled type=%s booking_id=%s recipient=%s",
                payload.get("type"),
                payload.get("booking_id"),
                payload.get("recipient_user_id"),
            )
            return {"delivered": False}

        response = self._client.post(self._url, json=payload)
        response.raise_for_status()
        logger.info(
            "push_gateway_delivered type=%s booking_id=%s status=%s",
            payload.get("type"),
            payload.get("booking_id"),
            response.status_code,
        )
        return {"delivered": True, "status_code": response.status_code}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PushGatewayClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _build_dispatcher() -> NotificationDispatcher:
    backend = settings.notification_backend.strip().lower()
    if backend == "celery":
        return CeleryNotificationDispatcher()
    return InMemoryNotificationDispatcher()


notification_dispatcher: NotificationDispatcher = _build_dispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    return notification_dispatcher
