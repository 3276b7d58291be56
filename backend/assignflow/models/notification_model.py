from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime, timezone

NotificationType = Literal["message", "assignment", "general", "report"]


class Notification(BaseModel):
    id: str = Field(..., alias="_id")
    user_id: str
    message: str
    type: NotificationType = "general"
    link: Optional[str] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True, "populate_by_name": True}
