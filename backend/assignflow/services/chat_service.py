# services/chat_service.py
import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from assignflow.core.effects import SideEffects
from assignflow.core.errors import Forbidden, NotFound, ValidationFailed
from assignflow.core.events import EventSink
from assignflow.models.chat_model import Conversation, Message
from assignflow.models.user_model import User
from assignflow.services.directory import load_users
from assignflow.utils.contact_validation import find_contact_info
from assignflow.utils.firebase import firestore_run, get_doc, stream_docs

logger = logging.getLogger("assignflow.chat")


class ChatService:
    def __init__(self, db, events: EventSink, notifier=None):
        self.db = db
        self.events = events
        self.notifier = notifier

    @property
    def conversations(self):
        return self.db.collection("conversations")

    @property
    def messages(self):
        return self.db.collection("messages")

    async def ensure_conversation(self, assignment_id: str, participants: List[str]) -> Conversation:
        """Find the assignment's thread or open one; missing participants are added."""
        rows = await stream_docs(self.conversations.where("assignment_id", "==", assignment_id))
        if rows:
            conversation = Conversation(**rows[0][1])
            missing = [p for p in participants if p not in conversation.participants]
            if missing:
                conversation.participants = conversation.participants + missing
                await firestore_run(
                    self.conversations.document(conversation.id).update,
                    {"participants": conversation.participants, "updated_at": datetime.now(timezone.utc)},
                )
            return conversation

        now = datetime.now(timezone.utc)
        conversation = Conversation(
            _id=uuid4().hex,
            participants=list(dict.fromkeys(participants)),
            assignment_id=assignment_id,
            created_at=now,
            updated_at=now,
        )
        await firestore_run(self.conversations.document(conversation.id).set, conversation.model_dump(by_alias=True))
        logger.info(f"Opened conversation {conversation.id} for assignment {assignment_id}")
        return conversation

    async def get_conversation(self, conversation_id: str, user: User) -> Conversation:
        data = await get_doc(self.conversations.document(conversation_id))
        if not data:
            raise NotFound("Conversation")
        conversation = Conversation(**data)
        if user.role != "admin" and user.id not in conversation.participants:
            raise Forbidden("Not a participant in this conversation")
        return conversation

    async def list_conversations(self, user: User) -> List[dict]:
        if user.role == "admin":
            rows = await stream_docs(self.conversations)
        else:
            rows = await stream_docs(self.conversations.where("participants", "array_contains", user.id))
        conversations = [Conversation(**data) for _, data in rows]
        conversations.sort(key=lambda c: c.updated_at, reverse=True)

        people = await load_users(self.db, [p for c in conversations for p in c.participants])
        result = []
        for c in conversations:
            result.append({
                "id": c.id,
                "assignment_id": c.assignment_id,
                "participants": [
                    {"id": p, "name": people[p].name if p in people else "", "role": people[p].role if p in people else None}
                    for p in c.participants
                ],
                "last_message": c.last_message_text,
                "updated_at": c.updated_at,
                "unread_count": await self._unread(c, user.id),
            })
        return result

    async def get_messages(self, conversation_id: str, user: User) -> List[dict]:
        await self.get_conversation(conversation_id, user)
        rows = await stream_docs(self.messages.where("conversation_id", "==", conversation_id))
        messages = sorted((Message(**data) for _, data in rows), key=lambda m: m.created_at)
        return [m.model_dump() for m in messages]

    async def send_message(self, conversation_id: str, user: User, text: str) -> Message:
        conversation = await self.get_conversation(conversation_id, user)
        text = text.strip()
        if not text:
            raise ValidationFailed("Message text is required")

        # Client and writer may not swap contact details unless an admin is in the thread
        people = await load_users(self.db, conversation.participants)
        roles = {people[p].role for p in conversation.participants if p in people}
        if user.role != "admin" and "admin" not in roles:
            reason = find_contact_info(text)
            if reason:
                raise ValidationFailed(reason)

        now = datetime.now(timezone.utc)
        message = Message(_id=uuid4().hex, conversation_id=conversation.id, sender_id=user.id, text=text, created_at=now)
        await firestore_run(self.messages.document(message.id).set, message.model_dump(by_alias=True))
        await firestore_run(self.conversations.document(conversation.id).update, {
            "last_message_id": message.id,
            "last_message_text": text[:200],
            "last_viewed_by": {**conversation.last_viewed_by, user.id: now},
            "updated_at": now,
        })

        effects = SideEffects(context=f"conversation {conversation.id}")
        payload = message.model_dump(mode="json")
        for participant in conversation.participants:
            if participant == user.id:
                continue
            await effects.run(f"push to {participant}", self.events.notify(participant, "receiveMessage", payload))
            await effects.run(
                f"conversation refresh {participant}",
                self.events.notify(participant, "updateConversation", {"conversation_id": conversation.id}),
            )
            if conversation.assignment_id:
                await effects.run(
                    f"unread refresh {participant}",
                    self.events.notify(participant, "assignmentUnreadUpdated", {"assignment_id": conversation.assignment_id}),
                )
            if self.notifier:
                sender = people.get(user.id)
                await effects.run(
                    f"notify {participant}",
                    self.notifier.create(
                        participant,
                        f"New message from {sender.name if sender else 'a user'}",
                        "message",
                        f"/chat/{conversation.id}",
                    ),
                )
        return message

    async def mark_read(self, conversation_id: str, user: User) -> None:
        conversation = await self.get_conversation(conversation_id, user)
        await firestore_run(
            self.conversations.document(conversation.id).update,
            {"last_viewed_by": {**conversation.last_viewed_by, user.id: datetime.now(timezone.utc)}},
        )

    async def _unread(self, conversation: Conversation, user_id: str) -> int:
        rows = await stream_docs(self.messages.where("conversation_id", "==", conversation.id))
        seen: Optional[datetime] = conversation.last_viewed_by.get(user_id)
        count = 0
        for _, data in rows:
            message = Message(**data)
            if message.sender_id == user_id:
                continue
            if seen is None or message.created_at > seen:
                count += 1
        return count

    async def unread_count(self, assignment_id: str, user_id: str) -> int:
        rows = await stream_docs(self.conversations.where("assignment_id", "==", assignment_id))
        if not rows:
            return 0
        return await self._unread(Conversation(**rows[0][1]), user_id)
