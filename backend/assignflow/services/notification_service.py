# services/notification_service.py
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from uuid import uuid4

from assignflow.core.events import EventSink
from assignflow.models.notification_model import Notification
from assignflow.services.directory import admin_ids
from assignflow.tasks.email_tasks import enqueue_notification_email
from assignflow.utils.firebase import firestore_run

logger = logging.getLogger("assignflow.notifications")

EmailEnqueuer = Callable[[str, str, str, Optional[str]], None]


class NotificationService:
    """
    Persists in-app notifications, pushes them to live sockets and hands an
    email copy to Celery. Only the Firestore write can fail the call; the
    push and the email are fire-and-forget.
    """

    def __init__(self, db, events: EventSink, enqueue_email: Optional[EmailEnqueuer] = None):
        self.db = db
        self.events = events
        self.enqueue_email = enqueue_email or enqueue_notification_email

    async def create(self, user_id: str, message: str, type: str = "general", link: str = None) -> Notification:
        notification = Notification(
            _id=uuid4().hex,
            user_id=user_id,
            message=message,
            type=type,
            link=link,
            created_at=datetime.now(timezone.utc),
        )
        await firestore_run(
            self.db.collection("notifications").document(notification.id).set,
            notification.model_dump(by_alias=True),
        )

        try:
            await self.events.notify(user_id, "newNotification", notification.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Socket push failed for notification {notification.id}: {e}")

        try:
            self.enqueue_email(user_id, message, type, link)
        except Exception as e:
            logger.warning(f"Could not queue email for notification {notification.id}: {e}")

        return notification

    async def create_many(self, user_ids: Iterable[str], message: str, type: str = "general", link: str = None):
        return [await self.create(uid, message, type, link) for uid in user_ids]

    async def notify_admins(self, message: str, type: str = "assignment", link: str = None):
        return await self.create_many(await admin_ids(self.db), message, type, link)
