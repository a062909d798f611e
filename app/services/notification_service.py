"""Notification sink for chat messages."""

import logging

from app.tasks.notification_tasks import send_chat_notification_task

logger = logging.getLogger(__name__)


class ChatNotificationSink:
    """Queues chat notifications for out-of-band delivery.

    Submission is fire-and-forget: the Celery task owns retries, and the
    caller never waits for the email itself.
    """

    def __init__(self, task=send_chat_notification_task):
        """Initialize the sink.

        Args:
            task: Celery task used to deliver the notification
        """
        self.task = task

    def notify(
        self,
        to_address: str,
        to_display_name: str,
        from_display_name: str,
        product_name: str,
        body: str,
        conversation_id: int,
        recipient_role: str,
    ) -> str:
        """Queue a notification and return the task id."""
        result = self.task.delay(
            to_address=to_address,
            to_display_name=to_display_name,
            from_display_name=from_display_name,
            product_name=product_name,
            body=body,
            conversation_id=conversation_id,
            recipient_role=recipient_role,
        )
        logger.debug(f"Queued chat notification task {result.id} for {to_address}")
        return result.id
