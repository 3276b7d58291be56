from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime, timezone


class Conversation(BaseModel):
    """Per-assignment chat thread."""
    id: str = Field(..., alias="_id")
    participants: List[str]
    assignment_id: Optional[str] = None
    last_message_id: Optional[str] = None
    last_message_text: Optional[str] = None
    # user id -> last time that user opened the thread
    last_viewed_by: Dict[str, datetime] = {}
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True, "populate_by_name": True}


class Message(BaseModel):
    id: str = Field(..., alias="_id")
    conversation_id: str
    sender_id: str
    text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True, "populate_by_name": True}


class SendMessageRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
