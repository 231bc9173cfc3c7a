"""Supabase connection settings and client factory.

Auth (token lookup) and storage (listing images) both run through the one
client; without credentials the API starts with both features disabled.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from ..utils.logging import get_logger

LOGGER = get_logger("db.supabase")


@dataclass(frozen=True)
class SupabaseSettings:
    url: Optional[str]
    key: Optional[str]
    key_kind: str

    @classmethod
    def from_env(cls) -> "SupabaseSettings":
        service_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if service_key:
            return cls(os.getenv("SUPABASE_URL"), service_key, "service_role")
        return cls(os.getenv("SUPABASE_URL"), os.getenv("SUPABASE_ANON_KEY"), "anon")

    @property
    def configured(self) -> bool:
        return bool(self.url and self.key)


def create_supabase_client(settings: Optional[SupabaseSettings] = None) -> Optional[Any]:  # pragma: no cover - live service
    settings = settings or SupabaseSettings.from_env()
    if not settings.configured:
        LOGGER.info("supabase_disabled reason=missing_credentials identity=off uploads=off")
        return None

    from supabase import create_client

    try:
        client = create_client(settings.url, settings.key)
    except Exception as exc:
        LOGGER.error("supabase_client_failed url=%s error=%s", settings.url, exc)
        return None
    LOGGER.info("supabase_ready url=%s key=%s", settings.url, settings.key_kind)
    return client
