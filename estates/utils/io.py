"""Fixture CSV loading."""

from __future__ import annotations

import os
from typing import Iterable, Optional

import pandas as pd

from .errors import ValidationError
from .logging import get_logger

LOGGER = get_logger("utils.io")

DATA_DIR = os.getenv("DATA_DIR", os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "data"))


def fixture_path(name: str, data_dir: Optional[str] = None) -> str:
    return name if os.path.isabs(name) else os.path.join(data_dir or DATA_DIR, name)


def load_csv(name: str, data_dir: Optional[str] = None, required: Iterable[str] = ()) -> pd.DataFrame:
    """Read a fixture file with every column as text.

    Typing happens in the row mappers, so zip codes like ``01002`` keep their
    leading zeros and empty cells stay ``""`` rather than NaN.
    """

    path = fixture_path(name, data_dir)
    if not os.path.exists(path):
        raise FileNotFoundError(f"CSV not found: {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = [column for column in required if column not in df.columns]
    if missing:
        raise ValidationError(f"{name} is missing column(s): {', '.join(missing)}")
    LOGGER.debug("loaded_csv path=%s rows=%d", path, len(df))
    return df


__all__ = ["DATA_DIR", "fixture_path", "load_csv"]
