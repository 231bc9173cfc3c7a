"""Listing search, joins and the read paths the API serves."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..db.store import EntityStore
from ..models.blog import BlogPost, BlogPostWithAuthor
from ..models.property import Property, PropertyFilters, PropertyPage, PropertyWithAgent
from ..models.user import Agent, AgentWithUser
from ..utils.errors import NotFound, ValidationError
from ..utils.logging import get_logger

LOGGER = get_logger("services.query")

PAGE_SIZE = int(os.getenv("PAGE_SIZE", "9"))
ADMIN_PAGE_SIZE = int(os.getenv("ADMIN_PAGE_SIZE", "100"))
SIMILAR_LIMIT = 3
BLOG_PREVIEW_LIMIT = 3

Predicate = Callable[[Property], bool]

# sort key -> (row key, descending)
SORTS: Dict[str, Tuple[Callable[[Property], object], bool]] = {
    "newest": (lambda prop: prop.created_at, True),
    "price-low": (lambda prop: prop.price, False),
    "price-high": (lambda prop: prop.price, True),
    "popular": (lambda prop: prop.view_count, True),
}

_ROOMS = re.compile(r"^(\d+)(\+?)$")


@dataclass(frozen=True)
class RoomCount:
    """A bedroom/bathroom filter: ``3`` is exact, ``3+`` is a lower bound."""

    count: int
    at_least: bool = False

    def matches(self, value: int) -> bool:
        if self.at_least:
            return value >= self.count
        return value == self.count


def parse_room_filter(raw: Optional[str], name: str) -> Optional[RoomCount]:
    if raw is None:
        return None
    text = str(raw).strip().replace(" ", "")
    if not text or text.lower() == "any":
        return None
    match = _ROOMS.match(text)
    if match is None:
        raise ValidationError(f"{name} must be a whole number, optionally followed by '+'")
    return RoomCount(int(match.group(1)), bool(match.group(2)))


def category_slug(category: str) -> str:
    return re.sub(r"\s+", "-", category.strip().lower())


def build_predicates(filters: PropertyFilters) -> List[Predicate]:
    """Translate a filter set into row predicates that are ANDed together."""

    predicates: List[Predicate] = []

    if filters.location and filters.location.strip():
        needle = filters.location.strip().lower()
        predicates.append(lambda p: needle in p.location.lower() or needle in p.city.lower())

    kind = (filters.property_type or "").strip().lower()
    if kind and kind != "any":
        predicates.append(lambda p: p.property_type == kind)

    if filters.min_price is not None:
        low_price = filters.min_price
        predicates.append(lambda p: p.price >= low_price)
    if filters.max_price is not None:
        high_price = filters.max_price
        predicates.append(lambda p: p.price <= high_price)

    if filters.min_area is not None:
        low_area = filters.min_area
        predicates.append(lambda p: p.area >= low_area)
    if filters.max_area is not None:
        high_area = filters.max_area
        predicates.append(lambda p: p.area <= high_area)

    bedrooms = parse_room_filter(filters.bedrooms, "bedrooms")
    if bedrooms is not None:
        predicates.append(lambda p: bedrooms.matches(p.bedrooms))
    bathrooms = parse_room_filter(filters.bathrooms, "bathrooms")
    if bathrooms is not None:
        predicates.append(lambda p: bathrooms.matches(p.bathrooms))

    wanted = {item.strip().lower() for item in filters.amenities if item and item.strip()}
    if wanted:
        predicates.append(lambda p: wanted <= {item.lower() for item in p.amenities})

    return predicates


def sort_properties(rows: List[Property], sort: Optional[str]) -> List[Property]:
    name = (sort or "newest").strip().lower() or "newest"
    if name not in SORTS:
        raise ValidationError(f"Unknown sort '{sort}'; expected one of {', '.join(SORTS)}")
    key, descending = SORTS[name]
    # sorted() is stable in both directions, so ties keep store order
    return sorted(rows, key=key, reverse=descending)


class QueryEngine:
    """Read-side operations over an :class:`EntityStore`.

    The engine owns no state of its own; every call reads a fresh snapshot
    from the store, so results reflect all writes that completed before it.
    """

    def __init__(self, store: EntityStore, page_size: int = PAGE_SIZE):
        self.store = store
        self.page_size = page_size

    # listings
    def search(self, filters: Optional[PropertyFilters] = None) -> PropertyPage:
        filters = filters or PropertyFilters()
        predicates = build_predicates(filters)
        rows = [prop for prop in self.store.list_properties() if all(check(prop) for check in predicates)]
        rows = sort_properties(rows, filters.sort)

        limit = filters.limit or self.page_size
        start = (filters.page - 1) * limit
        window = rows[start : start + limit]
        LOGGER.debug(
            "search filters=%d sort=%s page=%d total=%d returned=%d",
            len(predicates),
            filters.sort,
            filters.page,
            len(rows),
            len(window),
        )
        return PropertyPage(properties=window, total=len(rows), page=filters.page, limit=limit)

    def admin_properties(self, limit: int = ADMIN_PAGE_SIZE) -> List[Property]:
        return self.search(PropertyFilters(limit=limit)).properties

    def featured(self) -> List[Property]:
        return [prop for prop in self.store.list_properties() if prop.is_featured]

    def property_detail(self, property_id: str, viewer_id: Optional[str] = None) -> PropertyWithAgent:
        """Fetch one listing with its agent and count the view."""

        prop = self.store.fetch_and_increment_views(property_id)
        if prop is None:
            raise NotFound.for_entity("Property")
        if viewer_id:
            self.store.record_view(viewer_id, property_id)
        return self.with_agent(prop)

    def property_with_agent(self, property_id: str) -> PropertyWithAgent:
        prop = self.store.get_property(property_id)
        if prop is None:
            raise NotFound.for_entity("Property")
        return self.with_agent(prop)

    def with_agent(self, prop: Property) -> PropertyWithAgent:
        agent = self.store.get_agent(prop.agent_id) if prop.agent_id else None
        return PropertyWithAgent(
            **prop.model_dump(exclude={"cover_image"}),
            agent=self.agent_with_user(agent) if agent else None,
        )

    def similar(self, property_id: str, limit: int = SIMILAR_LIMIT) -> List[Property]:
        source = self.store.get_property(property_id)
        if source is None:
            return []
        rows = [
            prop
            for prop in self.store.list_properties()
            if prop.id != source.id and (prop.property_type == source.property_type or prop.city == source.city)
        ]
        rows.sort(key=lambda prop: prop.id)
        rows.sort(key=lambda prop: prop.created_at, reverse=True)
        return rows[:limit]

    # agents
    def agent_with_user(self, agent: Agent) -> AgentWithUser:
        user = self.store.get_user(agent.user_id) if agent.user_id else None
        return AgentWithUser(**agent.model_dump(), user=user)

    def agents(self) -> List[AgentWithUser]:
        return [self.agent_with_user(agent) for agent in self.store.list_agents()]

    def agent(self, agent_id: str) -> AgentWithUser:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            raise NotFound.for_entity("Agent")
        return self.agent_with_user(agent)

    def agent_properties(self, agent_id: str) -> List[Property]:
        if self.store.get_agent(agent_id) is None:
            raise NotFound.for_entity("Agent")
        return self.store.list_agent_properties(agent_id)

    # per-user collections
    def favorite_properties(self, user_id: str) -> List[Property]:
        rows = []
        for favorite in self.store.list_favorites(user_id):
            prop = self.store.get_property(favorite.property_id)
            if prop is not None:
                rows.append(prop)
        return rows

    def recently_viewed(self, user_id: str, limit: int = 10) -> List[Property]:
        rows = []
        for view in self.store.list_recently_viewed(user_id, limit=limit):
            prop = self.store.get_property(view.property_id)
            if prop is not None:
                rows.append(prop)
        return rows

    # blog
    def with_author(self, post: BlogPost) -> BlogPostWithAuthor:
        author = self.store.get_user(post.author_id) if post.author_id else None
        return BlogPostWithAuthor(**post.model_dump(), author=author)

    def blog_posts(self, category: Optional[str] = None, limit: Optional[int] = None) -> List[BlogPostWithAuthor]:
        wanted = category_slug(category) if category else ""
        posts = [post for post in self.store.list_blog_posts() if post.is_published]
        if wanted and wanted != "all":
            posts = [post for post in posts if category_slug(post.category) == wanted]
        posts.sort(key=lambda post: post.published_at or post.created_at, reverse=True)
        if limit is not None:
            posts = posts[:limit]
        return [self.with_author(post) for post in posts]

    def blog_preview(self) -> List[BlogPostWithAuthor]:
        return self.blog_posts(limit=BLOG_PREVIEW_LIMIT)

    def blog_post(self, slug: str) -> BlogPostWithAuthor:
        post = self.store.get_blog_post_by_slug(slug)
        if post is None or not post.is_published:
            raise NotFound.for_entity("Blog post")
        return self.with_author(post)
