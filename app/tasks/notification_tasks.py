"""Celery tasks for chat notifications."""

import logging
from typing import Any

from app.celery_app import celery_app
from app.services.email_service import email_service

logger = logging.getLogger(__name__)


class ChatNotificationError(Exception):
    """Raised inside the task when the email could not be sent, to trigger a retry."""


@celery_app.task(
    name="app.tasks.notification_tasks.send_chat_notification_task",
    bind=True,
    max_retries=3,
)
def send_chat_notification_task(
    self,
    to_address: str,
    to_display_name: str,
    from_display_name: str,
    product_name: str,
    body: str,
    conversation_id: int,
    recipient_role: str,
) -> dict[str, Any]:
    """Email a chat participant about a new message.

    Returns:
        Dictionary with the delivery result
    """
    logger.info(f"📧 Sending chat notification to {to_address} for chat #{conversation_id}")

    success = email_service.send_chat_notification(
        to_email=to_address,
        to_name=to_display_name,
        from_name=from_display_name,
        product_name=product_name,
        message_content=body,
        conversation_id=conversation_id,
        recipient_role=recipient_role,
    )

    if not success:
        logger.error(
            f"❌ Chat notification to {to_address} failed "
            f"(attempt {self.request.retries + 1}/{self.max_retries + 1})"
        )
        raise self.retry(
            exc=ChatNotificationError(f"Email to {to_address} failed"),
            countdown=60 * (self.request.retries + 1),
        )

    logger.info(f"✅ Chat notification sent to {to_address}")
    return {"success": True, "email": to_address, "conversation_id": conversation_id}
