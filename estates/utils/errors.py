"""Error taxonomy shared by the store, the query engine and the API layer."""

from typing import Iterable, Optional


class EstatesError(Exception):
    """Base exception for the listings backend."""

    status_code = 500

    def __init__(self, message: str, *, entity: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.entity = entity


class NotFound(EstatesError):
    """An id-keyed lookup did not resolve."""

    status_code = 404

    @classmethod
    def for_entity(cls, entity: str) -> "NotFound":
        return cls(f"{entity} not found", entity=entity)


class ValidationError(EstatesError):
    """A required field is missing or malformed."""

    status_code = 400


class Conflict(EstatesError):
    """A uniqueness constraint would be violated."""

    status_code = 409


class AuthenticationError(EstatesError):
    status_code = 401


class PermissionDenied(EstatesError):
    status_code = 403


class ServiceUnavailable(EstatesError):
    """An external collaborator is not configured."""

    status_code = 503


class BlobStoreError(EstatesError):
    status_code = 502


def describe_validation_errors(errors: Iterable[dict]) -> str:
    """Flatten pydantic/FastAPI error dicts into ``loc: msg; loc: msg``."""

    parts = []
    for err in errors:
        loc = ".".join(str(part) for part in err.get("loc", ())) or "body"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)
