"""Bridge between the hosted identity provider and local User records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..db.store import EntityStore
from ..models.user import User, UserCreate
from ..utils.errors import AuthenticationError, Conflict
from ..utils.logging import get_logger

LOGGER = get_logger("services.identity")


@dataclass(frozen=True)
class Identity:
    """Who the provider says the bearer of a token is."""

    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    email_confirmed: bool = False


class SupabaseIdentityProvider:
    """Resolves access tokens through ``client.auth.get_user``."""

    def __init__(self, client: Any):
        self.client = client

    def resolve(self, token: str) -> Identity:
        if not token:
            raise AuthenticationError("Authentication required")
        try:
            response = self.client.auth.get_user(token)
        except Exception as exc:
            LOGGER.warning("token_rejected reason=%s", exc)
            raise AuthenticationError("Invalid or expired session") from exc

        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise AuthenticationError("Invalid or expired session")

        metadata = getattr(user, "user_metadata", None) or {}
        return Identity(
            id=str(user.id),
            email=getattr(user, "email", None) or "",
            full_name=metadata.get("full_name") or metadata.get("name"),
            avatar_url=metadata.get("avatar_url"),
            email_confirmed=bool(getattr(user, "email_confirmed_at", None)),
        )


def provision_user(store: EntityStore, identity: Identity) -> User:
    """Return the local user for ``identity``, creating it on first login.

    Lookup goes by provider id first. A local account with the same email
    is adopted only when the provider has confirmed that email; otherwise
    the login is refused instead of creating a duplicate address.

    Raises ``AuthenticationError`` when the identity carries no usable
    email, since no local user can be created for it.
    """

    existing = store.get_user(identity.id)
    if existing is not None:
        return existing

    email = (identity.email or "").strip()
    if not email:
        raise AuthenticationError("Account has no email address")

    by_email = store.get_user_by_email(email)
    if by_email is not None:
        if identity.email_confirmed:
            return by_email
        LOGGER.warning("adoption_refused id=%s reason=unconfirmed_email", identity.id)
        raise AuthenticationError("Email address is not confirmed")

    try:
        payload = UserCreate(
            email=email,
            full_name=identity.full_name or email.split("@")[0] or "Member",
            avatar_url=identity.avatar_url,
        )
    except PydanticValidationError as exc:
        LOGGER.warning("provision_rejected id=%s errors=%d", identity.id, len(exc.errors()))
        raise AuthenticationError("Account profile is not usable") from exc

    try:
        user = store.create_user(payload, user_id=identity.id)
    except Conflict:
        # a concurrent first request for the same identity won the insert
        winner = store.get_user(identity.id)
        if winner is None:
            raise
        return winner
    LOGGER.info("user_provisioned id=%s", user.id)
    return user
