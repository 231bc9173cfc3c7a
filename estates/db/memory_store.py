"""In-process entity store backed by dictionaries."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, Generic, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..models.base import utcnow
from ..models.blog import BlogPost, BlogPostCreate
from ..models.engagement import (
    ContactMessage,
    ContactMessageCreate,
    Favorite,
    FavoriteCreate,
    Inquiry,
    InquiryCreate,
    InquiryStatusUpdate,
    RecentlyViewed,
)
from ..models.property import Property, PropertyCreate, PropertyUpdate
from ..models.user import Agent, AgentCreate, AgentUpdate, User, UserCreate, UserUpdate
from ..utils.errors import Conflict, NotFound, ValidationError, describe_validation_errors
from ..utils.logging import get_logger
from .store import EntityStore

LOGGER = get_logger("db.memory")

M = TypeVar("M", bound=BaseModel)


def new_id() -> str:
    return str(uuid.uuid4())


def validate_payload(model: Type[M], data, entity: str) -> M:
    """Coerce a payload model or mapping into ``model``, raising our ValidationError."""

    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {entity}: {describe_validation_errors(exc.errors())}", entity=entity) from exc


def _fields(payload: BaseModel, model: Type[BaseModel]) -> dict:
    return payload.model_dump(include=set(model.model_fields))


def _merge(model: Type[M], row: M, changes: Mapping, entity: str) -> M:
    data = row.model_dump()
    data.update(changes)
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {entity}: {describe_validation_errors(exc.errors())}", entity=entity) from exc


class _Table(Generic[M]):
    """One entity map and the lock that serialises every access to it.

    Rows handed out are deep copies, so nothing outside the store can mutate
    a stored record in place.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.rows: Dict[str, M] = {}
        self.lock = threading.RLock()

    def __len__(self) -> int:
        with self.lock:
            return len(self.rows)

    def get(self, key: Optional[str]) -> Optional[M]:
        if not key:
            return None
        with self.lock:
            row = self.rows.get(key)
            return row.model_copy(deep=True) if row is not None else None

    def all(self) -> List[M]:
        with self.lock:
            return [row.model_copy(deep=True) for row in self.rows.values()]

    def put_new(self, row: M) -> M:
        key = row.id  # type: ignore[attr-defined]
        with self.lock:
            if key in self.rows:
                raise Conflict(f"{self.name} {key} already exists", entity=self.name)
            self.rows[key] = row
            return row.model_copy(deep=True)

    def put(self, row: M) -> M:
        with self.lock:
            self.rows[row.id] = row  # type: ignore[attr-defined]
            return row.model_copy(deep=True)

    def pop(self, key: str) -> Optional[M]:
        with self.lock:
            return self.rows.pop(key, None)


class MemoryStore(EntityStore):
    """Dictionary-backed :class:`EntityStore` for a single process.

    Each entity map has its own re-entrant lock and every read-modify-write
    runs while holding it. Iteration order is insertion order, which the query
    engine relies on as the final tie-break of its stable sorts.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or utcnow
        self._users: _Table[User] = _Table("User")
        self._agents: _Table[Agent] = _Table("Agent")
        self._properties: _Table[Property] = _Table("Property")
        self._favorites: _Table[Favorite] = _Table("Favorite")
        self._inquiries: _Table[Inquiry] = _Table("Inquiry")
        self._views: _Table[RecentlyViewed] = _Table("RecentlyViewed")
        self._blog_posts: _Table[BlogPost] = _Table("BlogPost")
        self._contact_messages: _Table[ContactMessage] = _Table("ContactMessage")

        # secondary indexes, guarded by the lock of the table they index
        self._user_emails: Dict[str, str] = {}
        self._blog_slugs: Dict[str, str] = {}
        self._favorite_pairs: Dict[Tuple[str, str], str] = {}
        self._view_pairs: Dict[Tuple[str, str], str] = {}

    # ------------------------------------------------------------------
    # Users
    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        with self._users.lock:
            return self._users.get(self._user_emails.get(email.strip().lower()))

    def list_users(self) -> List[User]:
        return self._users.all()

    def create_user(self, payload, user_id: Optional[str] = None) -> User:
        data = validate_payload(UserCreate, payload, "User")
        user = User(**_fields(data, UserCreate), id=user_id or new_id(), created_at=self._clock())
        with self._users.lock:
            self._index_user(user)
            stored = self._users.put_new(user)
        LOGGER.info("user_created id=%s role=%s", user.id, user.role)
        return stored

    def update_user(self, user_id: str, changes) -> Optional[User]:
        patch = validate_payload(UserUpdate, changes, "User")
        with self._users.lock:
            current = self._users.rows.get(user_id)
            if current is None:
                return None
            return self._users.put(_merge(User, current, patch.changes(), "User"))

    def _index_user(self, user: User) -> None:
        key = user.email.strip().lower()
        owner = self._user_emails.get(key)
        if owner is not None and owner != user.id:
            raise Conflict("A user with this email already exists", entity="User")
        if user.id in self._users.rows:
            raise Conflict(f"User {user.id} already exists", entity="User")
        self._user_emails[key] = user.id

    # ------------------------------------------------------------------
    # Agents
    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def get_agent_by_user_id(self, user_id: str) -> Optional[Agent]:
        if not user_id:
            return None
        for agent in self._agents.all():
            if agent.user_id == user_id:
                return agent
        return None

    def list_agents(self) -> List[Agent]:
        return self._agents.all()

    def create_agent(self, payload, agent_id: Optional[str] = None) -> Agent:
        data = validate_payload(AgentCreate, payload, "Agent")
        agent = Agent(**_fields(data, AgentCreate), id=agent_id or new_id())
        stored = self._agents.put_new(agent)
        LOGGER.info("agent_created id=%s user_id=%s", agent.id, agent.user_id)
        return stored

    def update_agent(self, agent_id: str, changes) -> Optional[Agent]:
        patch = validate_payload(AgentUpdate, changes, "Agent")
        with self._agents.lock:
            current = self._agents.rows.get(agent_id)
            if current is None:
                return None
            return self._agents.put(_merge(Agent, current, patch.changes(), "Agent"))

    # ------------------------------------------------------------------
    # Properties
    def get_property(self, property_id: str) -> Optional[Property]:
        return self._properties.get(property_id)

    def list_properties(self) -> List[Property]:
        return self._properties.all()

    def list_agent_properties(self, agent_id: str) -> List[Property]:
        return [prop for prop in self._properties.all() if prop.agent_id == agent_id]

    def create_property(self, payload, property_id: Optional[str] = None) -> Property:
        data = validate_payload(PropertyCreate, payload, "Property")
        now = self._clock()
        prop = Property(
            **_fields(data, PropertyCreate),
            id=property_id or new_id(),
            view_count=0,
            created_at=now,
            updated_at=now,
        )
        stored = self._properties.put_new(prop)
        LOGGER.info("property_created id=%s type=%s city=%s", prop.id, prop.property_type, prop.city)
        return stored

    def update_property(self, property_id: str, changes) -> Optional[Property]:
        patch = validate_payload(PropertyUpdate, changes, "Property")
        updates = patch.changes()
        with self._properties.lock:
            current = self._properties.rows.get(property_id)
            if current is None:
                return None
            updates["updated_at"] = self._clock()
            stored = self._properties.put(_merge(Property, current, updates, "Property"))
        LOGGER.info("property_updated id=%s fields=%s", property_id, ",".join(sorted(updates)))
        return stored

    def delete_property(self, property_id: str) -> bool:
        # lock order is properties before favorites and views
        with self._properties.lock:
            removed = self._properties.pop(property_id)
            if removed is None:
                return False
            favorites = self._drop_favorites_for(property_id)
            views = self._drop_views_for(property_id)
        LOGGER.info("property_deleted id=%s favorites=%d views=%d", property_id, favorites, views)
        return True

    def fetch_and_increment_views(self, property_id: str) -> Optional[Property]:
        with self._properties.lock:
            current = self._properties.rows.get(property_id)
            if current is None:
                return None
            bumped = current.model_copy(update={"view_count": current.view_count + 1})
            return self._properties.put(bumped)

    def _require_property(self, property_id: str) -> None:
        if property_id not in self._properties.rows:
            raise NotFound.for_entity("Property")

    def _drop_favorites_for(self, property_id: str) -> int:
        with self._favorites.lock:
            doomed = [fav for fav in self._favorites.rows.values() if fav.property_id == property_id]
            for fav in doomed:
                self._favorites.pop(fav.id)
                self._favorite_pairs.pop((fav.user_id, fav.property_id), None)
        return len(doomed)

    def _drop_views_for(self, property_id: str) -> int:
        with self._views.lock:
            doomed = [view for view in self._views.rows.values() if view.property_id == property_id]
            for view in doomed:
                self._views.pop(view.id)
                self._view_pairs.pop((view.user_id, view.property_id), None)
        return len(doomed)

    # ------------------------------------------------------------------
    # Favorites
    def add_favorite(self, user_id: str, property_id: str, favorite_id: Optional[str] = None) -> Favorite:
        data = validate_payload(FavoriteCreate, {"user_id": user_id, "property_id": property_id}, "Favorite")
        pair = (data.user_id, data.property_id)
        with self._properties.lock, self._favorites.lock:
            self._require_property(data.property_id)
            existing = self._favorite_pairs.get(pair)
            if existing is not None:
                return self._favorites.get(existing)
            favorite = Favorite(**_fields(data, FavoriteCreate), id=favorite_id or new_id(), created_at=self._clock())
            stored = self._favorites.put_new(favorite)
            self._favorite_pairs[pair] = favorite.id
        LOGGER.info("favorite_added user_id=%s property_id=%s", user_id, property_id)
        return stored

    def remove_favorite(self, user_id: str, property_id: str) -> bool:
        with self._favorites.lock:
            favorite_id = self._favorite_pairs.pop((user_id, property_id), None)
            if favorite_id is None:
                return False
            self._favorites.pop(favorite_id)
        return True

    def delete_favorite(self, favorite_id: str) -> bool:
        with self._favorites.lock:
            removed = self._favorites.pop(favorite_id)
            if removed is None:
                return False
            self._favorite_pairs.pop((removed.user_id, removed.property_id), None)
        return True

    def list_favorites(self, user_id: str) -> List[Favorite]:
        return [fav for fav in self._favorites.all() if fav.user_id == user_id]

    # ------------------------------------------------------------------
    # Inquiries
    def get_inquiry(self, inquiry_id: str) -> Optional[Inquiry]:
        return self._inquiries.get(inquiry_id)

    def create_inquiry(self, payload, inquiry_id: Optional[str] = None) -> Inquiry:
        data = validate_payload(InquiryCreate, payload, "Inquiry")
        fields = _fields(data, InquiryCreate)
        if not fields.get("agent_id"):
            prop = self._properties.get(data.property_id)
            fields["agent_id"] = prop.agent_id if prop else None
        inquiry = Inquiry(**fields, id=inquiry_id or new_id(), status="pending", created_at=self._clock())
        stored = self._inquiries.put_new(inquiry)
        LOGGER.info("inquiry_created id=%s property_id=%s agent_id=%s", inquiry.id, inquiry.property_id, inquiry.agent_id)
        return stored

    def list_inquiries(self, user_id: Optional[str] = None, agent_id: Optional[str] = None) -> List[Inquiry]:
        rows = self._inquiries.all()
        if user_id is not None:
            rows = [row for row in rows if row.user_id == user_id]
        if agent_id is not None:
            rows = [row for row in rows if row.agent_id == agent_id]
        return rows

    def update_inquiry_status(self, inquiry_id: str, status: str) -> Optional[Inquiry]:
        patch = validate_payload(InquiryStatusUpdate, {"status": status}, "Inquiry")
        with self._inquiries.lock:
            current = self._inquiries.rows.get(inquiry_id)
            if current is None:
                return None
            stored = self._inquiries.put(current.model_copy(update={"status": patch.status}))
        LOGGER.info("inquiry_status id=%s status=%s", inquiry_id, patch.status)
        return stored

    # ------------------------------------------------------------------
    # Recently viewed
    def record_view(self, user_id: str, property_id: str) -> RecentlyViewed:
        pair = (user_id, property_id)
        with self._properties.lock, self._views.lock:
            self._require_property(property_id)
            existing = self._view_pairs.get(pair)
            if existing is not None:
                current = self._views.rows[existing]
                return self._views.put(current.model_copy(update={"viewed_at": self._clock()}))
            view = RecentlyViewed(id=new_id(), user_id=user_id, property_id=property_id, viewed_at=self._clock())
            self._view_pairs[pair] = view.id
            return self._views.put_new(view)

    def list_recently_viewed(self, user_id: str, limit: int = 10) -> List[RecentlyViewed]:
        rows = [view for view in self._views.all() if view.user_id == user_id]
        # latest insert wins a timestamp tie
        rows.reverse()
        rows.sort(key=lambda view: view.viewed_at, reverse=True)
        return rows[:limit]

    # ------------------------------------------------------------------
    # Blog
    def get_blog_post(self, post_id: str) -> Optional[BlogPost]:
        return self._blog_posts.get(post_id)

    def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        with self._blog_posts.lock:
            return self._blog_posts.get(self._blog_slugs.get(slug))

    def list_blog_posts(self) -> List[BlogPost]:
        return self._blog_posts.all()

    def create_blog_post(self, payload, post_id: Optional[str] = None) -> BlogPost:
        data = validate_payload(BlogPostCreate, payload, "BlogPost")
        post = BlogPost(**_fields(data, BlogPostCreate), id=post_id or new_id(), created_at=self._clock())
        with self._blog_posts.lock:
            self._index_blog_post(post)
            stored = self._blog_posts.put_new(post)
        LOGGER.info("blog_post_created id=%s slug=%s published=%s", post.id, post.slug, post.is_published)
        return stored

    def _index_blog_post(self, post: BlogPost) -> None:
        if post.slug in self._blog_slugs:
            raise Conflict(f"Slug '{post.slug}' is already in use", entity="BlogPost")
        if post.id in self._blog_posts.rows:
            raise Conflict(f"BlogPost {post.id} already exists", entity="BlogPost")
        self._blog_slugs[post.slug] = post.id

    # ------------------------------------------------------------------
    # Contact messages
    def create_contact_message(self, payload, message_id: Optional[str] = None) -> ContactMessage:
        data = validate_payload(ContactMessageCreate, payload, "ContactMessage")
        message = ContactMessage(
            **_fields(data, ContactMessageCreate),
            id=message_id or new_id(),
            status="unread",
            created_at=self._clock(),
        )
        stored = self._contact_messages.put_new(message)
        LOGGER.info("contact_message_received id=%s", message.id)
        return stored

    def list_contact_messages(self) -> List[ContactMessage]:
        return self._contact_messages.all()

    def mark_contact_message_read(self, message_id: str) -> Optional[ContactMessage]:
        with self._contact_messages.lock:
            current = self._contact_messages.rows.get(message_id)
            if current is None:
                return None
            return self._contact_messages.put(current.model_copy(update={"status": "read"}))

    # ------------------------------------------------------------------
    # Fixtures
    def bulk_insert(self, records: Iterable[BaseModel]) -> int:
        inserted = 0
        for record in records:
            if self._insert_record(record):
                inserted += 1
        return inserted

    def _insert_record(self, record: BaseModel) -> bool:
        if isinstance(record, User):
            with self._users.lock:
                self._index_user(record)
                self._users.put_new(record)
        elif isinstance(record, Agent):
            self._agents.put_new(record)
        elif isinstance(record, Property):
            self._properties.put_new(record)
        elif isinstance(record, Favorite):
            with self._properties.lock, self._favorites.lock:
                self._require_property(record.property_id)
                pair = (record.user_id, record.property_id)
                if pair in self._favorite_pairs:
                    return False
                self._favorites.put_new(record)
                self._favorite_pairs[pair] = record.id
        elif isinstance(record, Inquiry):
            self._inquiries.put_new(record)
        elif isinstance(record, BlogPost):
            with self._blog_posts.lock:
                self._index_blog_post(record)
                self._blog_posts.put_new(record)
        elif isinstance(record, ContactMessage):
            self._contact_messages.put_new(record)
        else:
            raise ValidationError(f"Unsupported record type: {type(record).__name__}")
        return True

    def counts(self) -> Dict[str, int]:
        return {
            "users": len(self._users),
            "agents": len(self._agents),
            "properties": len(self._properties),
            "favorites": len(self._favorites),
            "inquiries": len(self._inquiries),
            "blog_posts": len(self._blog_posts),
            "contact_messages": len(self._contact_messages),
        }
