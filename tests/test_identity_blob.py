from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from estates.services.blob_store import SupabaseBlobStore, object_key
from estates.services.identity import Identity, SupabaseIdentityProvider, provision_user
from estates.utils.errors import AuthenticationError, BlobStoreError, ValidationError


def _auth_client(user):
    client = MagicMock()
    client.auth.get_user.return_value = SimpleNamespace(user=user)
    return client


def test_identity_resolves_provider_user():
    user = SimpleNamespace(id="abc-123", email="dana@example.com", user_metadata={"full_name": "Dana Buyer"})
    client = _auth_client(user)
    identity = SupabaseIdentityProvider(client).resolve("token-1")
    client.auth.get_user.assert_called_once_with("token-1")
    assert identity == Identity(id="abc-123", email="dana@example.com", full_name="Dana Buyer")


def test_identity_reports_email_confirmation():
    user = SimpleNamespace(id="abc-123", email="dana@example.com", email_confirmed_at="2024-03-01T12:00:00Z")
    identity = SupabaseIdentityProvider(_auth_client(user)).resolve("token-1")
    assert identity.email_confirmed is True
    assert identity.full_name is None


def test_identity_rejects_bad_tokens():
    client = MagicMock()
    client.auth.get_user.side_effect = RuntimeError("jwt expired")
    with pytest.raises(AuthenticationError):
        SupabaseIdentityProvider(client).resolve("stale")

    with pytest.raises(AuthenticationError):
        SupabaseIdentityProvider(_auth_client(None)).resolve("orphan")

    with pytest.raises(AuthenticationError):
        SupabaseIdentityProvider(MagicMock()).resolve("")


def test_provision_creates_user_once(store):
    identity = Identity(id="sb-1", email="new@example.com")
    user = provision_user(store, identity)
    assert user.id == "sb-1"
    assert user.full_name == "new"
    assert user.role == "user"
    assert provision_user(store, identity).created_at == user.created_at


def test_provision_adopts_existing_confirmed_email(store):
    identity = Identity(id="sb-9", email="John@LuxeEstates.com", email_confirmed=True)
    user = provision_user(store, identity)
    assert user.id == "user-1"
    assert store.get_user("sb-9") is None


def test_provision_refuses_unconfirmed_email_match(store):
    with pytest.raises(AuthenticationError):
        provision_user(store, Identity(id="sb-9", email="john@luxeestates.com"))
    assert store.get_user("sb-9") is None
    assert store.counts()["users"] == 5


def test_provision_rejects_identity_without_email(store):
    for email in ("", "   "):
        with pytest.raises(AuthenticationError):
            provision_user(store, Identity(id="phone-user", email=email))
    assert store.get_user("phone-user") is None


def test_provision_rejects_unusable_email(store):
    with pytest.raises(AuthenticationError):
        provision_user(store, Identity(id="odd-user", email="@"))
    assert store.get_user("odd-user") is None


def test_concurrent_first_logins_share_one_user(store):
    identity = Identity(id="sb-2", email="rush@example.com", full_name="Rush")
    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = set(pool.map(lambda _: provision_user(store, identity).id, range(24)))
    assert ids == {"sb-2"}
    assert store.counts()["users"] == 6


def _storage_client(public_url="https://x.supabase.co/storage/v1/object/public/property-images/k.png"):
    client = MagicMock()
    bucket = client.storage.from_.return_value
    bucket.get_public_url.return_value = public_url
    return client, bucket


def test_upload_stores_under_generated_key():
    client, bucket = _storage_client()
    url = SupabaseBlobStore(client, bucket="listing-media").upload(b"\x89PNG", "Front Door.PNG", "image/png")
    assert url.endswith("/k.png")
    client.storage.from_.assert_called_with("listing-media")
    key, content, options = bucket.upload.call_args[0]
    assert key.endswith(".png")
    assert " " not in key
    assert content == b"\x89PNG"
    assert options == {"content-type": "image/png"}


def test_upload_validation():
    client, bucket = _storage_client()
    blobs = SupabaseBlobStore(client)
    with pytest.raises(ValidationError):
        blobs.upload(b"plain", "notes.txt", "text/plain")
    with pytest.raises(ValidationError):
        blobs.upload(b"", "empty.jpg", "image/jpeg")
    bucket.upload.assert_not_called()


def test_upload_failure_is_a_blob_store_error():
    client, bucket = _storage_client()
    bucket.upload.side_effect = RuntimeError("bucket not found")
    with pytest.raises(BlobStoreError):
        SupabaseBlobStore(client).upload(b"jpeg", "a.jpg", "image/jpeg")


def test_delete_by_url():
    client, bucket = _storage_client()
    blobs = SupabaseBlobStore(client)
    bucket.remove.return_value = [{"name": "1700000000000-abc.jpg"}]
    assert blobs.delete_by_url("https://x.supabase.co/storage/v1/object/public/property-images/1700000000000-abc.jpg?t=1")
    bucket.remove.assert_called_once_with(["1700000000000-abc.jpg"])

    bucket.remove.return_value = []
    assert blobs.delete_by_url("https://x.supabase.co/storage/v1/object/public/property-images/gone.jpg") is False
    assert blobs.delete_by_url("") is False


def test_object_key():
    assert object_key("https://cdn.test/a/b/photo%201.jpg") == "photo 1.jpg"
    assert object_key("https://cdn.test/") is None
