"""Users and the agents that service listings."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import Field, PlainSerializer

from .base import CamelModel, PatchModel, UtcDatetime, utcnow

Role = Literal["user", "agent", "admin"]

# numeric(2,1) in storage, a plain number in JSON
Rating = Annotated[
    Decimal,
    Field(ge=0, le=5, max_digits=2, decimal_places=1),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class UserCreate(CamelModel):
    email: str = Field(..., min_length=3)
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Role = "user"


class User(UserCreate):
    id: str
    created_at: UtcDatetime = Field(default_factory=utcnow)


class UserUpdate(PatchModel):
    full_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[Role] = None


class AgentCreate(CamelModel):
    user_id: Optional[str] = None
    bio: Optional[str] = None
    specialization: Optional[str] = None
    years_experience: Optional[int] = Field(None, ge=0)
    license_number: Optional[str] = None
    location: Optional[str] = None
    properties_count: int = Field(0, ge=0)
    rating: Optional[Rating] = None
    is_active: bool = True


class Agent(AgentCreate):
    id: str


class AgentUpdate(PatchModel):
    bio: Optional[str] = None
    specialization: Optional[str] = None
    years_experience: Optional[int] = Field(None, ge=0)
    license_number: Optional[str] = None
    location: Optional[str] = None
    properties_count: Optional[int] = Field(None, ge=0)
    rating: Optional[Rating] = None
    is_active: Optional[bool] = None


class AgentWithUser(Agent):
    user: Optional[User] = None
