"""Blog post models."""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from .base import CamelModel, UtcDatetime, utcnow
from .user import User


class BlogPostCreate(CamelModel):
    title: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    excerpt: str
    content: str
    featured_image: Optional[str] = None
    category: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    author_id: Optional[str] = None
    is_published: bool = False
    published_at: Optional[UtcDatetime] = None


class BlogPost(BlogPostCreate):
    id: str
    created_at: UtcDatetime = Field(default_factory=utcnow)


class BlogPostWithAuthor(BlogPost):
    author: Optional[User] = None
