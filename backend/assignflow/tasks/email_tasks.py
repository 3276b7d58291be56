import logging
from assignflow.core.celery_app import celery_app

from assignflow.core.firebase import get_db
from assignflow.services.email_service import notification_email, send_email

logger = logging.getLogger("assignflow")


@celery_app.task(
    bind=True,
    max_retries=3,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_jitter=True,
)
def send_notification_email(self, user_id: str, message: str, type: str = "general", link: str = None):
    """
    Email copy of an in-app notification.
    Retries a few times, then gives up; the in-app notification already exists.
    """
    doc = get_db().collection("users").document(user_id).get()
    if not doc.exists:
        logger.warning(f"Notification email skipped, no user {user_id}")
        return False

    user = doc.to_dict()
    if not user.get("email"):
        return False

    return send_email(notification_email(user["email"], user.get("name"), message, type, link))


def enqueue_notification_email(user_id: str, message: str, type: str, link: str = None):
    """Hands the email to the worker without waiting for delivery."""
    send_notification_email.delay(user_id, message, type, link)
