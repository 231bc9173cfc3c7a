"""Entity store interface.

The query engine and the API only talk to this interface, so a relational
implementation can replace :class:`~estates.db.memory_store.MemoryStore`
without touching the filter/sort/pagination contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel

from ..models.blog import BlogPost, BlogPostCreate
from ..models.engagement import (
    ContactMessage,
    ContactMessageCreate,
    Favorite,
    Inquiry,
    InquiryCreate,
    RecentlyViewed,
)
from ..models.property import Property, PropertyCreate, PropertyUpdate
from ..models.user import Agent, AgentCreate, AgentUpdate, User, UserCreate, UserUpdate

Payload = Union[BaseModel, Mapping[str, Any]]


class EntityStore(ABC):
    """Keyed CRUD over every domain record type.

    ``get_*`` returns ``None`` for unknown ids; callers decide whether that is
    a 404. ``create_*`` accepts a payload model or a plain mapping, assigns an
    id when none is given and raises ``ValidationError`` on missing or
    malformed fields. ``update_*`` merges only the settable fields and returns
    ``None`` for unknown ids. Hard deletes exist for properties and favorites
    only.
    """

    # Users
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def list_users(self) -> List[User]: ...

    @abstractmethod
    def create_user(self, payload: Union[UserCreate, Payload], user_id: Optional[str] = None) -> User: ...

    @abstractmethod
    def update_user(self, user_id: str, changes: Union[UserUpdate, Payload]) -> Optional[User]: ...

    # Agents
    @abstractmethod
    def get_agent(self, agent_id: str) -> Optional[Agent]: ...

    @abstractmethod
    def get_agent_by_user_id(self, user_id: str) -> Optional[Agent]: ...

    @abstractmethod
    def list_agents(self) -> List[Agent]: ...

    @abstractmethod
    def create_agent(self, payload: Union[AgentCreate, Payload], agent_id: Optional[str] = None) -> Agent: ...

    @abstractmethod
    def update_agent(self, agent_id: str, changes: Union[AgentUpdate, Payload]) -> Optional[Agent]: ...

    # Properties
    @abstractmethod
    def get_property(self, property_id: str) -> Optional[Property]: ...

    @abstractmethod
    def list_properties(self) -> List[Property]:
        """All properties in insertion order."""

    @abstractmethod
    def list_agent_properties(self, agent_id: str) -> List[Property]: ...

    @abstractmethod
    def create_property(
        self, payload: Union[PropertyCreate, Payload], property_id: Optional[str] = None
    ) -> Property: ...

    @abstractmethod
    def update_property(self, property_id: str, changes: Union[PropertyUpdate, Payload]) -> Optional[Property]: ...

    @abstractmethod
    def delete_property(self, property_id: str) -> bool: ...

    @abstractmethod
    def fetch_and_increment_views(self, property_id: str) -> Optional[Property]:
        """Atomically bump ``view_count`` by one and return the updated record.

        This is the only path that changes the counter; it must be used for
        the single-listing detail read and never for list or search reads.
        """

    # Favorites
    @abstractmethod
    def add_favorite(self, user_id: str, property_id: str, favorite_id: Optional[str] = None) -> Favorite:
        """Idempotent: a second add for the same pair returns the existing row.

        Raises ``NotFound`` when the property does not exist.
        """

    @abstractmethod
    def remove_favorite(self, user_id: str, property_id: str) -> bool: ...

    @abstractmethod
    def delete_favorite(self, favorite_id: str) -> bool: ...

    @abstractmethod
    def list_favorites(self, user_id: str) -> List[Favorite]: ...

    # Inquiries
    @abstractmethod
    def get_inquiry(self, inquiry_id: str) -> Optional[Inquiry]: ...

    @abstractmethod
    def create_inquiry(self, payload: Union[InquiryCreate, Payload], inquiry_id: Optional[str] = None) -> Inquiry: ...

    @abstractmethod
    def list_inquiries(self, user_id: Optional[str] = None, agent_id: Optional[str] = None) -> List[Inquiry]: ...

    @abstractmethod
    def update_inquiry_status(self, inquiry_id: str, status: str) -> Optional[Inquiry]: ...

    # Recently viewed
    @abstractmethod
    def record_view(self, user_id: str, property_id: str) -> RecentlyViewed:
        """Insert or refresh the pair; ``NotFound`` if the property is gone."""

    @abstractmethod
    def list_recently_viewed(self, user_id: str, limit: int = 10) -> List[RecentlyViewed]: ...

    # Blog
    @abstractmethod
    def get_blog_post(self, post_id: str) -> Optional[BlogPost]: ...

    @abstractmethod
    def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPost]: ...

    @abstractmethod
    def list_blog_posts(self) -> List[BlogPost]: ...

    @abstractmethod
    def create_blog_post(self, payload: Union[BlogPostCreate, Payload], post_id: Optional[str] = None) -> BlogPost:
        """Raises ``Conflict`` when the slug is already taken."""

    # Contact messages
    @abstractmethod
    def create_contact_message(
        self, payload: Union[ContactMessageCreate, Payload], message_id: Optional[str] = None
    ) -> ContactMessage: ...

    @abstractmethod
    def list_contact_messages(self) -> List[ContactMessage]: ...

    @abstractmethod
    def mark_contact_message_read(self, message_id: str) -> Optional[ContactMessage]: ...

    # Fixtures
    @abstractmethod
    def bulk_insert(self, records: Iterable[BaseModel]) -> int:
        """Insert fully-formed records (ids and timestamps included) as-is."""

    @abstractmethod
    def counts(self) -> Mapping[str, int]: ...
