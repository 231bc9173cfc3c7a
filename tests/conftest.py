from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from estates.api import create_app
from estates.db.memory_store import MemoryStore
from estates.db.repo import build_store
from estates.services.identity import Identity
from estates.services.query_engine import QueryEngine
from estates.utils.errors import AuthenticationError, ValidationError

TOKENS = {
    "admin-token": Identity(id="user-5", email="admin@luxeestates.com", full_name="Admin User"),
    "agent-token": Identity(id="user-1", email="john@luxeestates.com", full_name="John Anderson"),
    "agent2-token": Identity(id="user-2", email="sarah@luxeestates.com", full_name="Sarah Mitchell"),
    "member-token": Identity(id="member-1", email="dana@example.com", full_name="Dana Buyer"),
    "phone-token": Identity(id="phone-user", email=""),
}


class FakeIdentityProvider:
    def __init__(self, tokens):
        self.tokens = dict(tokens)

    def resolve(self, token):
        if token not in self.tokens:
            raise AuthenticationError("Invalid or expired session")
        return self.tokens[token]


class FakeBlobStore:
    base_url = "https://cdn.test/property-images/"

    def __init__(self):
        self.objects = {}

    def upload(self, content, filename, content_type):
        if not content_type.startswith("image/"):
            raise ValidationError(f"Unsupported image type '{content_type}'")
        url = self.base_url + filename
        self.objects[url] = content
        return url

    def delete_by_url(self, url):
        return self.objects.pop(url, None) is not None


class StepClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start=datetime(2024, 6, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def store():
    return build_store(seed=True)


@pytest.fixture
def empty_store():
    return MemoryStore(clock=StepClock())


@pytest.fixture
def engine(store):
    return QueryEngine(store)


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def identity():
    return FakeIdentityProvider(TOKENS)


@pytest.fixture
def app(store, identity, blobs):
    return create_app(store, identity=identity, blobs=blobs)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth():
    def headers(token):
        return {"Authorization": f"Bearer {token}"}

    return headers


@pytest.fixture
def listing():
    def build(**overrides):
        payload = {
            "title": "Sunny Corner Condo",
            "description": "Two bedroom corner unit with river views.",
            "price": 875000,
            "property_type": "condo",
            "location": "Astoria",
            "address": "12-01 27th Avenue",
            "city": "Queens",
            "state": "NY",
            "zip_code": "11102",
            "area": 1100,
            "bedrooms": 2,
            "bathrooms": 1,
            "amenities": ["Gym", "Elevator"],
            "images": ["https://img.test/a.jpg", "https://img.test/b.jpg"],
        }
        payload.update(overrides)
        return payload

    return build
