"""Static palate-region table and region -> leaf palate expansion."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple


# region key -> (label, leaf palate keys)
PALATE_REGIONS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "east-asian": ("East Asian", ("japanese", "korean", "chinese", "taiwanese")),
    "south-asian": (
        "South Asian",
        ("nepalese", "bangladesh", "sri-lankan", "maldivian", "indian", "pakistani"),
    ),
    "south-east-asian": (
        "South East Asian",
        ("malaysian", "filipino", "singaporean", "indonesian"),
    ),
    "middle-eastern": (
        "Middle Eastern",
        ("armenian", "east-arabian", "lebanese", "caucasian", "iranian", "turkish"),
    ),
    "african": (
        "African",
        (
            "angolan",
            "congolese",
            "ethiopian",
            "kenyan",
            "zimbabwean",
            "egyptian",
            "algerian",
            "ghanaian",
            "nigerian",
        ),
    ),
    "north-american": ("North American", ("canadian", "mexican", "american")),
    "european": (
        "European",
        (
            "british",
            "spanish",
            "italian",
            "french",
            "german",
            "russian",
            "danish",
            "finnish",
            "swedish",
            "romanian",
            "greek",
            "portuguese",
        ),
    ),
    "oceanic": ("Oceanic", ("australian", "polynesian")),
}


def _slug(value: str) -> str:
    return "-".join(value.strip().lower().split())


def _resolve_region(value: str) -> Optional[str]:
    key = _slug(value)
    if key in PALATE_REGIONS:
        return key
    for region_key, (label, _children) in PALATE_REGIONS.items():
        if _slug(label) == key:
            return region_key
    return None


def is_region(value: str) -> bool:
    return _resolve_region(value) is not None


def children_of(region_key: str) -> List[str]:
    """Leaf palates of a region (by key or label); empty for unknown or leaf values."""
    key = _resolve_region(region_key)
    if key is None:
        return []
    return list(PALATE_REGIONS[key][1])


def region_of(palate: str) -> Optional[str]:
    leaf = _slug(palate)
    for region_key, (_label, children) in PALATE_REGIONS.items():
        if leaf in children:
            return region_key
    return None


def expand_palates(selected: Iterable[str]) -> List[str]:
    """Substitute region names with their leaf palates; leaves pass through. Order-preserving dedupe."""
    out: list[str] = []
    for raw in selected:
        if not raw or not raw.strip():
            continue
        children = children_of(raw)
        values = children if children else [raw.strip()]
        for value in values:
            if value not in out:
                out.append(value)
    return out
