from typing import List, Optional

LIST_SEPARATOR = "|"


def _blank(v) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and v != v:
        return True
    return str(v).strip() == "" or str(v).strip().lower() in {"null", "nan", "none"}


def to_int(v) -> Optional[int]:
    try:
        if _blank(v):
            return None
        return int(float(v))
    except (TypeError, ValueError):
        return None


def to_float(v) -> Optional[float]:
    try:
        if _blank(v):
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


def to_str(v) -> str:
    return "" if _blank(v) else str(v).strip()


def to_opt_str(v) -> Optional[str]:
    return to_str(v) or None


def to_bool(v, default: bool = False) -> bool:
    if _blank(v):
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "t"}


def to_list(v, sep: str = LIST_SEPARATOR) -> List[str]:
    if _blank(v):
        return []
    if isinstance(v, (list, tuple)):
        return [str(item).strip() for item in v if str(item).strip()]
    return [part.strip() for part in str(v).split(sep) if part.strip()]
