"""Seed an entity store with the demo fixtures under ``data/``."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..utils.errors import ValidationError
from ..utils.io import load_csv
from ..utils.logging import get_logger
from .mappers import map_agent_row, map_blog_post_row, map_property_row, map_user_row
from .store import EntityStore

LOGGER = get_logger("db.seed")

# users before agents before properties so references resolve on first read
FIXTURES: List[tuple[str, Callable[[Dict], BaseModel]]] = [
    ("users.csv", map_user_row),
    ("agents.csv", map_agent_row),
    ("properties.csv", map_property_row),
    ("blog_posts.csv", map_blog_post_row),
]


def load_fixture(name: str, mapper: Callable[[Dict], BaseModel], data_dir: Optional[str] = None) -> List[BaseModel]:
    df = load_csv(name, data_dir=data_dir, required=("id",))
    records = []
    for index, row in enumerate(df.to_dict(orient="records"), start=2):
        try:
            records.append(mapper(row))
        except PydanticValidationError as exc:
            raise ValidationError(f"{name} line {index}: {exc.error_count()} invalid field(s)") from exc
    return records


def seed_store(store: EntityStore, data_dir: Optional[str] = None) -> Dict[str, int]:
    """Insert every fixture file into ``store`` and return per-file counts."""

    counts: Dict[str, int] = {}
    for name, mapper in FIXTURES:
        records = load_fixture(name, mapper, data_dir=data_dir)
        counts[name] = store.bulk_insert(records)
        LOGGER.info("seeded file=%s rows=%d", name, counts[name])
    LOGGER.info("Seed complete")
    return counts
