"""Map flat fixture rows (CSV text) onto domain records."""

from typing import Any, Dict

from ..models.blog import BlogPost
from ..models.property import Property
from ..models.user import Agent, User
from ..utils.coerce import to_bool, to_int, to_list, to_opt_str, to_str


def map_user_row(r: Dict[str, Any]) -> User:
    return User(
        id=to_str(r.get("id")),
        email=to_str(r.get("email")),
        full_name=to_str(r.get("full_name")),
        phone=to_opt_str(r.get("phone")),
        avatar_url=to_opt_str(r.get("avatar_url")),
        role=to_str(r.get("role")) or "user",
        created_at=to_str(r.get("created_at")),
    )


def map_agent_row(r: Dict[str, Any]) -> Agent:
    return Agent(
        id=to_str(r.get("id")),
        user_id=to_opt_str(r.get("user_id")),
        bio=to_opt_str(r.get("bio")),
        specialization=to_opt_str(r.get("specialization")),
        years_experience=to_int(r.get("years_experience")),
        license_number=to_opt_str(r.get("license_number")),
        location=to_opt_str(r.get("location")),
        properties_count=to_int(r.get("properties_count")) or 0,
        rating=to_opt_str(r.get("rating")),
        is_active=to_bool(r.get("is_active"), default=True),
    )


def map_property_row(r: Dict[str, Any]) -> Property:
    created = to_str(r.get("created_at"))
    return Property(
        id=to_str(r.get("id")),
        title=to_str(r.get("title")),
        description=to_str(r.get("description")),
        price=to_int(r.get("price")),
        property_type=to_str(r.get("property_type")).lower(),
        status=to_str(r.get("status")) or "available",
        location=to_str(r.get("location")),
        address=to_str(r.get("address")),
        city=to_str(r.get("city")),
        state=to_opt_str(r.get("state")),
        zip_code=to_opt_str(r.get("zip_code")),
        area=to_int(r.get("area")),
        bedrooms=to_int(r.get("bedrooms")),
        bathrooms=to_int(r.get("bathrooms")),
        floor_number=to_int(r.get("floor_number")),
        built_up_area=to_int(r.get("built_up_area")),
        carpet_area=to_int(r.get("carpet_area")),
        year_built=to_int(r.get("year_built")),
        amenities=to_list(r.get("amenities")),
        features=to_list(r.get("features")),
        images=to_list(r.get("images")),
        agent_id=to_opt_str(r.get("agent_id")),
        is_featured=to_bool(r.get("is_featured")),
        view_count=to_int(r.get("view_count")) or 0,
        created_at=created,
        updated_at=to_str(r.get("updated_at")) or created,
    )


def map_blog_post_row(r: Dict[str, Any]) -> BlogPost:
    return BlogPost(
        id=to_str(r.get("id")),
        title=to_str(r.get("title")),
        slug=to_str(r.get("slug")),
        excerpt=to_str(r.get("excerpt")),
        content=to_str(r.get("content")),
        featured_image=to_opt_str(r.get("featured_image")),
        category=to_str(r.get("category")),
        tags=to_list(r.get("tags")),
        author_id=to_opt_str(r.get("author_id")),
        is_published=to_bool(r.get("is_published")),
        published_at=to_opt_str(r.get("published_at")),
        created_at=to_str(r.get("created_at")),
    )
