from typing import Any

from shop_bookings.services.notification_service import PushGatewayClient
from shop_bookings.tasks.celery_app import celery_app


@celery_app.task(name="notifications.send_push")
def send_push_notification_task(payload: dict[str, Any]) -> dict[str, Any]:
    with PushGatewayClient() as push_gateway:
        return push_gateway.push(payload)
