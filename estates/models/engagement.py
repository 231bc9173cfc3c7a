"""Favorites, inquiries, recently viewed listings and contact messages."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel, PatchModel, UtcDatetime, utcnow

InquiryStatus = Literal["pending", "responded"]
ContactStatus = Literal["unread", "read"]


class FavoriteCreate(CamelModel):
    user_id: str = Field(..., min_length=1)
    property_id: str = Field(..., min_length=1)


class Favorite(FavoriteCreate):
    id: str
    created_at: UtcDatetime = Field(default_factory=utcnow)


class InquiryCreate(CamelModel):
    property_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    agent_id: Optional[str] = None
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    message: str = Field(..., min_length=1)


class Inquiry(InquiryCreate):
    id: str
    status: InquiryStatus = "pending"
    created_at: UtcDatetime = Field(default_factory=utcnow)


class InquiryStatusUpdate(PatchModel):
    status: InquiryStatus


class RecentlyViewed(CamelModel):
    id: str
    user_id: str
    property_id: str
    viewed_at: UtcDatetime = Field(default_factory=utcnow)


class ContactMessageCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    message: str = Field(..., min_length=1)


class ContactMessage(ContactMessageCreate):
    id: str
    status: ContactStatus = "unread"
    created_at: UtcDatetime = Field(default_factory=utcnow)
