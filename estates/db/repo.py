"""Construction of the entity store used by the API."""

from __future__ import annotations

import os
from typing import Optional

from ..utils.coerce import to_bool
from ..utils.logging import get_logger
from .memory_store import MemoryStore
from .seed import seed_store
from .store import EntityStore

LOGGER = get_logger("db.repo")

SEED_DATA = to_bool(os.getenv("SEED_DATA"), default=True)


def build_store(seed: bool = SEED_DATA, data_dir: Optional[str] = None) -> EntityStore:
    """Create the process-wide store; the caller owns it and passes it on."""

    store = MemoryStore()
    if seed:
        seed_store(store, data_dir=data_dir)
    counts = " ".join(f"{name}={count}" for name, count in store.counts().items())
    LOGGER.info("Store ready backend=memory %s", counts)
    return store
