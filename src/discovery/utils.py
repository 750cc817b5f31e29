"""Utility helpers for the restaurant discovery engine."""

from __future__ import annotations

import json
import math
from typing import Any, Iterable, List, Optional


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers."""
    R = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c


def normalize_tags(values: Optional[Iterable[Any]]) -> List[str]:
    """Lower-case, strip and dedupe tag values while preserving order.

    Accepts plain strings, ``{"name": ...}``/``{"slug": ...}`` dicts or a single
    pipe-delimited string.
    """
    if not values:
        return []
    if isinstance(values, str):
        values = values.split("|")
    out: list[str] = []
    for raw in values:
        if isinstance(raw, dict):
            raw = raw.get("slug") or raw.get("name") or ""
        text = str(raw).strip().lower()
        if text and text not in out:
            out.append(text)
    return out


def parse_jsonish(value: Any) -> Any:
    """Decode JSON-encoded string columns; return anything else unchanged."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None
