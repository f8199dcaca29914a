# scholarcast/engine/normalizers.py
from __future__ import annotations

import math
import re
from typing import Any, Callable, Iterable, Optional

# UP grading scale: 1.0 is the best grade, 5.0 is failing
GWA_BEST = 1.0
GWA_WORST = 5.0

YEAR_LEVEL_ALIASES = {
    "1STYEAR": "Freshman",
    "2NDYEAR": "Sophomore",
    "3RDYEAR": "Junior",
    "4THYEAR": "Senior",
    "5THYEAR": "Senior",
    "INCOMINGFRESHMAN": "Incoming Freshman",
    "FRESHMAN": "Freshman",
    "SOPHOMORE": "Sophomore",
    "JUNIOR": "Junior",
    "SENIOR": "Senior",
    "GRADUATE": "Graduate",
}

ST_BRACKET_ALIASES = {
    "FDS": "Full Discount with Stipend",
    "FULLDISCOUNTWITHSTIPEND": "Full Discount with Stipend",
    "FD": "Full Discount",
    "FULLDISCOUNT": "Full Discount",
    "PD80": "PD80",
    "80%PARTIALDISCOUNT": "PD80",
    "PD60": "PD60",
    "60%PARTIALDISCOUNT": "PD60",
    "PD40": "PD40",
    "40%PARTIALDISCOUNT": "PD40",
    "PD20": "PD20",
    "20%PARTIALDISCOUNT": "PD20",
    "ND": "No Discount",
    "NODISCOUNT": "No Discount",
}

_SPACES = re.compile(r"\s+")


def _key(value: str) -> str:
    return _SPACES.sub("", value).upper()


def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def normalize_year_level(value: Any) -> Optional[str]:
    s = clean_text(value)
    if s is None:
        return None
    return YEAR_LEVEL_ALIASES.get(_key(s), s)


def normalize_st_bracket(value: Any) -> Optional[str]:
    s = clean_text(value)
    if s is None:
        return None
    return ST_BRACKET_ALIASES.get(_key(s), s)


def as_number(value: Any) -> Optional[float]:
    """Lenient numeric read; anything unusable becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def as_list(value: Any) -> list:
    if not value:
        return []
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if clean_text(v) is not None]
    return [value] if clean_text(value) is not None else []


def list_contains(
    value: Any,
    options: Iterable[Any],
    *,
    fuzzy: bool = False,
    mapper: Callable[[Any], Optional[str]] = clean_text,
) -> bool:
    """Case-insensitive membership. Fuzzy also accepts substring matches either way."""
    v = mapper(value)
    if v is None:
        return False
    v = v.lower()
    for option in options:
        o = mapper(option)
        if o is None:
            continue
        o = o.lower()
        if v == o:
            return True
        if fuzzy and (o in v or v in o):
            return True
    return False


def clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))
