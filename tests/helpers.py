"""Record builders and in-memory service fakes shared by the tests."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from discovery.errors import FetchError
from discovery.models import (
    ListingCategory,
    Location,
    PageResult,
    PaginationCursor,
    PalateStats,
    RestaurantRecord,
)


def make_record(
    record_id: str,
    *,
    rating: float = 0.0,
    ratings_count: int = 0,
    database_id: int = 0,
    price_range: str = "",
    palates: Sequence[str] = (),
    categories: Sequence[str] = (),
    city: Optional[str] = None,
    country: Optional[str] = None,
    country_short: Optional[str] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    stats: Optional[PalateStats] = None,
    recognition_count: Optional[int] = None,
    name: Optional[str] = None,
    created_at=None,
) -> RestaurantRecord:
    return RestaurantRecord(
        id=record_id,
        database_id=database_id,
        name=name or record_id,
        rating=rating,
        ratings_count=ratings_count,
        price_range=price_range,
        palates_names=frozenset(palates),
        listing_categories=tuple(
            ListingCategory(id=i, name=c.title(), slug=c) for i, c in enumerate(categories, start=1)
        ),
        location=Location(
            city=city,
            country=country,
            country_short=country_short,
            latitude=lat,
            longitude=lon,
        ),
        recognition_count=recognition_count,
        search_palate_stats=stats,
        created_at=created_at,
    )


class FakeListing:
    """Serves fixed pages keyed by offset and records every call."""

    def __init__(self, pages: Optional[Dict[int, List[RestaurantRecord]]] = None, has_more_after: int = 1 << 30) -> None:
        self.pages = pages or {}
        self.has_more_after = has_more_after
        self.calls: List[dict] = []
        self.fail = False

    def fetch_page(self, search_term, page_size, cursor, **kwargs) -> PageResult:
        self.calls.append({"search_term": search_term, "page_size": page_size, "offset": cursor.offset, **kwargs})
        if self.fail:
            raise FetchError("upstream 503")
        records = list(self.pages.get(cursor.offset, []))
        next_offset = cursor.offset + len(records)
        has_more = bool(records) and next_offset < self.has_more_after
        return PageResult(
            records=records,
            next_cursor=PaginationCursor(offset=next_offset, has_more=has_more),
            has_more=has_more,
        )


class FakeStats:
    def __init__(self, data: Optional[Dict[str, PalateStats]] = None) -> None:
        self.data = data or {}
        self.calls: List[List[str]] = []
        self.fail = False

    def fetch(self, palates, token=None) -> Dict[str, PalateStats]:
        self.calls.append(list(palates))
        if self.fail:
            raise RuntimeError("boom")
        return dict(self.data)
