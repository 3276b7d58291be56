from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime, timezone

Role = Literal["admin", "writer", "client"]


class User(BaseModel):
    """Platform account: clients submit work, writers deliver it, admins run the desk."""

    # ---------------- Profile ----------------
    id: str = Field(..., alias="_id")
    name: str = ""
    email: str = ""
    role: Role = "client"
    avatar: Optional[str] = None
    phone: Optional[str] = None

    # ---------------- Writer profile ----------------
    specialty: Optional[str] = None
    status: Literal["Available", "Busy", "On Vacation"] = "Available"
    rating: float = 0.0
    completed: int = 0

    # ---------------- Metadata ----------------
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True, "populate_by_name": True}


class UserPublic(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    avatar: Optional[str] = None
    specialty: Optional[str] = None
    status: Optional[str] = None
    rating: float = 0.0
    completed: int = 0


def public_user(user: User) -> dict:
    return UserPublic(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        avatar=user.avatar,
        specialty=user.specialty,
        status=user.status,
        rating=user.rating,
        completed=user.completed,
    ).model_dump()
