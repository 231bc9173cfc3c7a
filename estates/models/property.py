"""Pydantic models representing listings and listing queries."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field, computed_field

from .base import CamelModel, PatchModel, UtcDatetime, utcnow
from .user import AgentWithUser

PropertyType = Literal["apartment", "villa", "penthouse", "townhouse", "condo", "house"]


class PropertyCreate(CamelModel):
    title: str = Field(..., min_length=1)
    description: str
    price: int = Field(..., ge=0)
    property_type: PropertyType
    status: str = "available"
    location: str
    address: str
    city: str
    state: Optional[str] = None
    zip_code: Optional[str] = None
    area: int = Field(..., ge=0)
    bedrooms: int = Field(..., ge=0)
    bathrooms: int = Field(..., ge=0)
    floor_number: Optional[int] = None
    built_up_area: Optional[int] = Field(None, ge=0)
    carpet_area: Optional[int] = Field(None, ge=0)
    year_built: Optional[int] = None
    amenities: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    agent_id: Optional[str] = None
    is_featured: bool = False


class Property(PropertyCreate):
    id: str
    view_count: int = Field(0, ge=0)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @computed_field(alias="coverImage")  # type: ignore[misc]
    @property
    def cover_image(self) -> Optional[str]:
        return self.images[0] if self.images else None


class PropertyUpdate(PatchModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    property_type: Optional[PropertyType] = None
    status: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    area: Optional[int] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    floor_number: Optional[int] = None
    built_up_area: Optional[int] = Field(None, ge=0)
    carpet_area: Optional[int] = Field(None, ge=0)
    year_built: Optional[int] = None
    amenities: Optional[List[str]] = None
    features: Optional[List[str]] = None
    images: Optional[List[str]] = None
    agent_id: Optional[str] = None
    is_featured: Optional[bool] = None


class PropertyWithAgent(Property):
    agent: Optional[AgentWithUser] = None


class PropertyFilters(CamelModel):
    """Listing query. Every filter is optional and they combine with AND."""

    location: Optional[str] = None
    property_type: Optional[str] = Field(None, alias="type")
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_area: Optional[int] = None
    max_area: Optional[int] = None
    bedrooms: Optional[str] = None
    bathrooms: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    sort: str = "newest"
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1)


class PropertyPage(CamelModel):
    properties: List[Property]
    total: int
    page: int = 1
    limit: int = 9
