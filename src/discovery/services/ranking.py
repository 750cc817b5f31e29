from __future__ import annotations

from dataclasses import replace
from functools import cmp_to_key
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from discovery.models import FilterState, PalateStats, RestaurantRecord, SortOption
from discovery.services.location import LocationRelevanceService, default_location_service


TIERED_EPSILON = 0.01
SMART_EPSILON = 0.1
MISSING_AVG = -1.0


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _desc_with_epsilon(a: float, b: float, epsilon: float) -> int:
    """Descending comparison treating differences below epsilon as a tie."""
    diff = b - a
    if abs(diff) < epsilon:
        return 0
    return _sign(diff)


def _is_tier_one(stats: Optional[PalateStats]) -> bool:
    return stats is not None and stats.count > 0 and stats.avg > 0


# --- Stage A: personalization overlay ----------------------------------------


def overlay_preference_stats(
    candidates: Iterable[RestaurantRecord],
    preference_stats: Mapping[str, PalateStats],
) -> List[RestaurantRecord]:
    out: list[RestaurantRecord] = []
    for rec in candidates:
        stats = preference_stats.get(rec.id)
        out.append(replace(rec, search_palate_stats=stats) if stats is not None else rec)
    return out


# --- Stage B: filters ---------------------------------------------------------


def _match_category(rec: RestaurantRecord, cuisine: Optional[Iterable[str]]) -> bool:
    wanted = {c.strip().lower() for c in (cuisine or []) if c and c.strip()}
    if not wanted:
        return True
    return bool(rec.category_slugs & wanted)


def _match_price(rec: RestaurantRecord, price: Optional[str]) -> bool:
    if not price:
        return True
    return price.lower() in (rec.price_range or "").lower()


def _match_rating(rec: RestaurantRecord, threshold: Optional[float]) -> bool:
    if threshold is None:
        return True
    return rec.rating >= threshold


def apply_filters(
    candidates: Sequence[RestaurantRecord],
    state: FilterState,
    *,
    location: LocationRelevanceService = default_location_service,
    region_radius_km: float = 100.0,
) -> List[RestaurantRecord]:
    keyword = (state.address_keyword or "").strip()
    filtered = [
        rec
        for rec in candidates
        if _match_category(rec, state.cuisine)
        and _match_price(rec, state.price)
        and _match_rating(rec, state.rating)
        and (not keyword or location.score(rec, keyword) > 0)
    ]
    region = state.selected_region
    if region is not None:
        filtered = [rec for rec in filtered if location.matches_region(rec, region, region_radius_km)]
        filtered = location.sort_by_region(filtered, region)
    return filtered


# --- Stage C: comparators -----------------------------------------------------


def _my_preference_key(rec: RestaurantRecord) -> Tuple[float, int, float, int]:
    stats = rec.search_palate_stats
    avg = stats.avg if stats is not None else MISSING_AVG
    count = stats.count if stats is not None else 0
    return (-avg, -count, -rec.rating, -rec.ratings_count)


def _compare_tiered(a: RestaurantRecord, b: RestaurantRecord) -> int:
    sa, sb = a.search_palate_stats, b.search_palate_stats
    a_tier_one = _is_tier_one(sa)
    b_tier_one = _is_tier_one(sb)
    if a_tier_one != b_tier_one:
        return -1 if a_tier_one else 1

    if sa is not None and sb is not None and a_tier_one:
        result = _desc_with_epsilon(sa.avg, sb.avg, TIERED_EPSILON)
        if result:
            return result
        if sa.count != sb.count:
            return _sign(sb.count - sa.count)
        return _sign(b.rating - a.rating)

    result = _desc_with_epsilon(a.rating, b.rating, TIERED_EPSILON)
    if result:
        return result
    return _sign(b.ratings_count - a.ratings_count)


def _compare_smart(a: RestaurantRecord, b: RestaurantRecord) -> int:
    result = _desc_with_epsilon(a.rating, b.rating, SMART_EPSILON)
    if result:
        return result
    if a.ratings_count != b.ratings_count:
        return _sign(b.ratings_count - a.ratings_count)
    return _sign((b.recognition_count or 0) - (a.recognition_count or 0))


def _sort_newest(records: List[RestaurantRecord]) -> List[RestaurantRecord]:
    # database_id is only a recency proxy; use real timestamps when every record has one.
    if records and all(r.created_at is not None for r in records):
        return sorted(records, key=lambda r: (r.created_at, r.database_id), reverse=True)
    return sorted(records, key=lambda r: r.database_id, reverse=True)


def sort_candidates(records: List[RestaurantRecord], sort: SortOption, palates_active: bool) -> List[RestaurantRecord]:
    if sort == SortOption.MY_PREFERENCE:
        return sorted(records, key=_my_preference_key)
    if palates_active:
        return sorted(records, key=cmp_to_key(_compare_tiered))
    if sort == SortOption.ASC:
        return sorted(records, key=lambda r: r.rating)
    if sort == SortOption.DESC:
        return sorted(records, key=lambda r: r.rating, reverse=True)
    if sort == SortOption.NEWEST:
        return _sort_newest(records)
    return sorted(records, key=cmp_to_key(_compare_smart))


def rank(
    candidates: Iterable[RestaurantRecord],
    state: FilterState,
    preference_stats: Optional[Mapping[str, PalateStats]] = None,
    *,
    location: LocationRelevanceService = default_location_service,
    user_palates: Sequence[str] = (),
    region_radius_km: float = 100.0,
) -> List[RestaurantRecord]:
    """Order and filter an already-fetched candidate set.

    Pure: neither the records, the filter state nor the stats map are mutated.
    Python's sort is stable, so ties that exhaust every key keep candidate-set
    insertion order, which makes the output deterministic.
    """
    sort = state.effective_sort(tuple(user_palates))
    records = list(candidates)

    if sort == SortOption.MY_PREFERENCE and preference_stats:
        records = overlay_preference_stats(records, preference_stats)

    records = apply_filters(records, state, location=location, region_radius_km=region_radius_km)

    keyword = (state.address_keyword or "").strip()
    if keyword:
        records = location.sort_by_keyword(records, keyword)

    return sort_candidates(records, sort, state.palates_active)
