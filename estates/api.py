import os
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, File, Header, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)

from .db.repo import build_store  # noqa: E402
from .db.store import EntityStore  # noqa: E402
from .db.supabase_client import create_supabase_client  # noqa: E402
from .models.blog import BlogPost, BlogPostCreate, BlogPostWithAuthor  # noqa: E402
from .models.engagement import (  # noqa: E402
    ContactMessage,
    ContactMessageCreate,
    Favorite,
    FavoriteCreate,
    Inquiry,
    InquiryCreate,
    InquiryStatusUpdate,
)
from .models.property import (  # noqa: E402
    Property,
    PropertyCreate,
    PropertyFilters,
    PropertyPage,
    PropertyUpdate,
    PropertyWithAgent,
)
from .models.user import AgentWithUser, User, UserCreate  # noqa: E402
from .services.blob_store import MAX_UPLOAD_BYTES, SupabaseBlobStore  # noqa: E402
from .services.identity import SupabaseIdentityProvider, provision_user  # noqa: E402
from .services.query_engine import PAGE_SIZE, QueryEngine  # noqa: E402
from .utils.errors import (  # noqa: E402
    AuthenticationError,
    EstatesError,
    NotFound,
    PermissionDenied,
    ServiceUnavailable,
    ValidationError,
    describe_validation_errors,
)
from .utils.logging import get_logger  # noqa: E402

LOGGER = get_logger("api")

router = APIRouter(prefix="/api")


def cors_origins() -> List[str]:
    raw = (os.getenv("CORS_ORIGINS") or "").strip()
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return ["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"]


# ----------------------------------------------------------------------
# dependencies


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_engine(request: Request) -> QueryEngine:
    return request.app.state.engine


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def get_current_user(
    request: Request,
    store: EntityStore = Depends(get_store),
    authorization: Optional[str] = Header(None),
) -> User:
    token = bearer_token(authorization)
    if not token:
        raise AuthenticationError("Authentication required")
    identity = request.app.state.identity
    if identity is None:
        raise ServiceUnavailable("Authentication is not configured")
    return provision_user(store, identity.resolve(token))


def get_optional_user(
    request: Request,
    store: EntityStore = Depends(get_store),
    authorization: Optional[str] = Header(None),
) -> Optional[User]:
    token = bearer_token(authorization)
    identity = request.app.state.identity
    if not token or identity is None:
        return None
    try:
        return provision_user(store, identity.resolve(token))
    except AuthenticationError:
        return None


def require_role(*roles: str):
    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDenied(f"Requires role: {' or '.join(roles)}")
        return user

    return dependency


require_staff = require_role("agent", "admin")
require_admin = require_role("admin")


def get_blobs(request: Request) -> SupabaseBlobStore:
    blobs = request.app.state.blobs
    if blobs is None:
        raise ServiceUnavailable("Image storage is not configured")
    return blobs


# ----------------------------------------------------------------------
# listings


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/properties", response_model=PropertyPage)
def list_properties(
    location: Optional[str] = Query(None),
    property_type: Optional[str] = Query(None, alias="type"),
    min_price: Optional[int] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[int] = Query(None, alias="maxPrice", ge=0),
    min_area: Optional[int] = Query(None, alias="minArea", ge=0),
    max_area: Optional[int] = Query(None, alias="maxArea", ge=0),
    bedrooms: Optional[str] = Query(None),
    bathrooms: Optional[str] = Query(None),
    amenities: Optional[str] = Query(None, description="comma separated"),
    sort: str = Query("newest"),
    page: int = Query(1, ge=1),
    engine: QueryEngine = Depends(get_engine),
):
    filters = PropertyFilters(
        location=location,
        property_type=property_type,
        min_price=min_price,
        max_price=max_price,
        min_area=min_area,
        max_area=max_area,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        amenities=[item.strip() for item in (amenities or "").split(",") if item.strip()],
        sort=sort,
        page=page,
    )
    return engine.search(filters)


@router.get("/properties/featured", response_model=List[Property])
def featured_properties(engine: QueryEngine = Depends(get_engine)):
    return engine.featured()


@router.get("/properties/{property_id}", response_model=PropertyWithAgent)
def property_detail(
    property_id: str,
    engine: QueryEngine = Depends(get_engine),
    viewer: Optional[User] = Depends(get_optional_user),
):
    return engine.property_detail(property_id, viewer_id=viewer.id if viewer else None)


@router.get("/properties/{property_id}/similar", response_model=List[Property])
def similar_properties(property_id: str, engine: QueryEngine = Depends(get_engine)):
    return engine.similar(property_id)


@router.post("/properties", response_model=Property, status_code=201)
def create_property(
    payload: PropertyCreate,
    store: EntityStore = Depends(get_store),
    user: User = Depends(require_staff),
):
    if payload.agent_id is None and user.role == "agent":
        agent = store.get_agent_by_user_id(user.id)
        if agent is not None:
            payload = payload.model_copy(update={"agent_id": agent.id})
    return store.create_property(payload)


@router.patch("/properties/{property_id}", response_model=Property)
def update_property(
    property_id: str,
    payload: PropertyUpdate,
    store: EntityStore = Depends(get_store),
    user: User = Depends(require_staff),
):
    updated = store.update_property(property_id, payload)
    if updated is None:
        raise NotFound.for_entity("Property")
    return updated


@router.delete("/properties/{property_id}", status_code=204)
def delete_property(
    property_id: str,
    store: EntityStore = Depends(get_store),
    user: User = Depends(require_staff),
):
    if not store.delete_property(property_id):
        raise NotFound.for_entity("Property")
    LOGGER.info("property_removed id=%s by=%s", property_id, user.id)
    return Response(status_code=204)


# ----------------------------------------------------------------------
# agents and users


@router.get("/agents", response_model=List[AgentWithUser])
def list_agents(engine: QueryEngine = Depends(get_engine)):
    return engine.agents()


@router.get("/agents/{agent_id}", response_model=AgentWithUser)
def get_agent(agent_id: str, engine: QueryEngine = Depends(get_engine)):
    return engine.agent(agent_id)


@router.get("/agents/{agent_id}/properties", response_model=List[Property])
def agent_properties(agent_id: str, engine: QueryEngine = Depends(get_engine)):
    return engine.agent_properties(agent_id)


@router.get("/auth/me", response_model=User)
def whoami(user: User = Depends(get_current_user)):
    return user


@router.get("/users/{user_id}", response_model=User)
def get_user(user_id: str, store: EntityStore = Depends(get_store)):
    user = store.get_user(user_id)
    if user is None:
        raise NotFound.for_entity("User")
    return user


@router.post("/users", response_model=User, status_code=201)
def create_user(
    payload: UserCreate,
    store: EntityStore = Depends(get_store),
    caller: Optional[User] = Depends(get_optional_user),
):
    if payload.role != "user" and (caller is None or caller.role != "admin"):
        raise PermissionDenied("Only admins can assign elevated roles")
    return store.create_user(payload)


@router.get("/users/{user_id}/favorites", response_model=List[Property])
def user_favorite_properties(user_id: str, engine: QueryEngine = Depends(get_engine)):
    return engine.favorite_properties(user_id)


@router.get("/users/{user_id}/recently-viewed", response_model=List[Property])
def user_recently_viewed(
    user_id: str,
    limit: int = Query(10, ge=1, le=50),
    engine: QueryEngine = Depends(get_engine),
):
    return engine.recently_viewed(user_id, limit=limit)


@router.get("/users/{user_id}/inquiries", response_model=List[Inquiry])
def user_inquiries(user_id: str, store: EntityStore = Depends(get_store)):
    return store.list_inquiries(user_id=user_id)


# ----------------------------------------------------------------------
# favorites and inquiries


@router.get("/favorites", response_model=List[Favorite])
def list_favorites(user_id: str = Query(..., alias="userId"), store: EntityStore = Depends(get_store)):
    return store.list_favorites(user_id)


@router.post("/favorites", response_model=Favorite, status_code=201)
def add_favorite(payload: FavoriteCreate, store: EntityStore = Depends(get_store)):
    return store.add_favorite(payload.user_id, payload.property_id)


@router.delete("/favorites", status_code=204)
def remove_favorite(payload: FavoriteCreate, store: EntityStore = Depends(get_store)):
    if not store.remove_favorite(payload.user_id, payload.property_id):
        raise NotFound.for_entity("Favorite")
    return Response(status_code=204)


@router.post("/inquiries", response_model=Inquiry, status_code=201)
def create_inquiry(payload: InquiryCreate, store: EntityStore = Depends(get_store)):
    if store.get_property(payload.property_id) is None:
        raise NotFound.for_entity("Property")
    return store.create_inquiry(payload)


# ----------------------------------------------------------------------
# admin dashboard


@router.get("/admin/properties", response_model=List[Property])
def admin_properties(engine: QueryEngine = Depends(get_engine), user: User = Depends(require_staff)):
    return engine.admin_properties()


@router.get("/admin/inquiries", response_model=List[Inquiry])
def admin_inquiries(store: EntityStore = Depends(get_store), user: User = Depends(require_staff)):
    if user.role == "admin":
        rows = store.list_inquiries()
    else:
        agent = store.get_agent_by_user_id(user.id)
        rows = store.list_inquiries(agent_id=agent.id) if agent else []
    return sorted(rows, key=lambda row: row.created_at, reverse=True)


@router.patch("/admin/inquiries/{inquiry_id}", response_model=Inquiry)
def update_inquiry(
    inquiry_id: str,
    payload: InquiryStatusUpdate,
    store: EntityStore = Depends(get_store),
    user: User = Depends(require_staff),
):
    inquiry = store.get_inquiry(inquiry_id)
    if inquiry is None:
        raise NotFound.for_entity("Inquiry")
    if user.role != "admin":
        agent = store.get_agent_by_user_id(user.id)
        if agent is None or inquiry.agent_id != agent.id:
            raise PermissionDenied("Inquiry belongs to another agent")
    updated = store.update_inquiry_status(inquiry_id, payload.status)
    if updated is None:
        raise NotFound.for_entity("Inquiry")
    return updated


# ----------------------------------------------------------------------
# blog and contact


@router.get("/blog", response_model=List[BlogPostWithAuthor])
def list_blog_posts(category: Optional[str] = Query(None), engine: QueryEngine = Depends(get_engine)):
    return engine.blog_posts(category)


@router.get("/blog/preview", response_model=List[BlogPostWithAuthor])
def blog_preview(engine: QueryEngine = Depends(get_engine)):
    return engine.blog_preview()


@router.get("/blog/{slug}", response_model=BlogPostWithAuthor)
def get_blog_post(slug: str, engine: QueryEngine = Depends(get_engine)):
    return engine.blog_post(slug)


@router.post("/blog", response_model=BlogPost, status_code=201)
def create_blog_post(
    payload: BlogPostCreate,
    store: EntityStore = Depends(get_store),
    user: User = Depends(require_admin),
):
    if payload.author_id is None:
        payload = payload.model_copy(update={"author_id": user.id})
    return store.create_blog_post(payload)


@router.post("/contact", response_model=ContactMessage, status_code=201)
def contact(payload: ContactMessageCreate, store: EntityStore = Depends(get_store)):
    return store.create_contact_message(payload)


# ----------------------------------------------------------------------
# uploads


@router.post("/uploads", status_code=201)
def upload_image(
    file: UploadFile = File(...),
    blobs: SupabaseBlobStore = Depends(get_blobs),
    user: User = Depends(require_staff),
):
    content = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"Image exceeds {MAX_UPLOAD_BYTES} bytes")
    url = blobs.upload(content, file.filename or "", (file.content_type or "").lower())
    return {"url": url}


@router.delete("/uploads", status_code=204)
def delete_image(
    url: str = Query(...),
    blobs: SupabaseBlobStore = Depends(get_blobs),
    user: User = Depends(require_staff),
):
    if not blobs.delete_by_url(url):
        raise NotFound.for_entity("Image")
    return Response(status_code=204)


# ----------------------------------------------------------------------
# application


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(EstatesError)
    async def estates_error(request: Request, exc: EstatesError):
        if exc.status_code >= 500:
            LOGGER.warning("error status=%d path=%s message=%s", exc.status_code, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return _error(400, describe_validation_errors(exc.errors()))

    @app.exception_handler(PydanticValidationError)
    async def model_validation_error(request: Request, exc: PydanticValidationError):
        return _error(400, describe_validation_errors(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        LOGGER.exception("unhandled method=%s path=%s", request.method, request.url.path)
        return _error(500, "Internal server error")


def create_app(
    store: Optional[EntityStore] = None,
    identity: Optional[SupabaseIdentityProvider] = None,
    blobs: Optional[SupabaseBlobStore] = None,
    page_size: int = PAGE_SIZE,
) -> FastAPI:
    """Assemble the API around an explicit store and optional collaborators."""

    app = FastAPI(title="Luxe Estates API")
    app.state.store = store if store is not None else build_store()
    app.state.engine = QueryEngine(app.state.store, page_size=page_size)
    app.state.identity = identity
    app.state.blobs = blobs

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        status = 500  # an exception escaping call_next becomes a 500 further out
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            if request.url.path.startswith("/api"):
                LOGGER.info(
                    "request method=%s path=%s status=%d duration_ms=%.1f",
                    request.method,
                    request.url.path,
                    status,
                    (time.perf_counter() - started) * 1000,
                )

    install_error_handlers(app)
    app.include_router(router)
    return app


def build_default_app() -> FastAPI:  # pragma: no cover - reads live credentials
    client = create_supabase_client()
    identity = SupabaseIdentityProvider(client) if client is not None else None
    blobs = SupabaseBlobStore(client) if client is not None else None
    return create_app(build_store(), identity=identity, blobs=blobs)


app = build_default_app()
