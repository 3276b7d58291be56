# core/dependencies.py
"""FastAPI providers for the services. Tests override get_db, get_event_sink and get_email_enqueuer."""
from fastapi import Depends

from assignflow.core.events import EventSink, get_event_sink
from assignflow.core.firebase import get_db
from assignflow.services.chat_service import ChatService
from assignflow.services.ledger import PaysheetLedger
from assignflow.services.lifecycle import AssignmentLifecycle
from assignflow.services.notification_service import NotificationService
from assignflow.tasks.email_tasks import enqueue_notification_email


def get_email_enqueuer():
    return enqueue_notification_email


def get_notifier(
    db=Depends(get_db),
    events: EventSink = Depends(get_event_sink),
    enqueue_email=Depends(get_email_enqueuer),
) -> NotificationService:
    return NotificationService(db, events, enqueue_email)


def get_chats(
    db=Depends(get_db),
    events: EventSink = Depends(get_event_sink),
    notifier: NotificationService = Depends(get_notifier),
) -> ChatService:
    return ChatService(db, events, notifier)


def get_ledger(
    db=Depends(get_db),
    events: EventSink = Depends(get_event_sink),
    notifier: NotificationService = Depends(get_notifier),
) -> PaysheetLedger:
    return PaysheetLedger(db, events, notifier)


def get_lifecycle(
    db=Depends(get_db),
    events: EventSink = Depends(get_event_sink),
    notifier: NotificationService = Depends(get_notifier),
    ledger: PaysheetLedger = Depends(get_ledger),
    chats: ChatService = Depends(get_chats),
) -> AssignmentLifecycle:
    return AssignmentLifecycle(db, notifier, events, ledger, chats)
