"""Data models for the restaurant discovery engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class SortOption(str, Enum):
    MY_PREFERENCE = "my_preference"
    SMART = "smart"
    ASC = "asc"
    DESC = "desc"
    NEWEST = "newest"


@dataclass(frozen=True)
class PalateStats:
    avg: float
    count: int


@dataclass(frozen=True)
class ListingCategory:
    id: int
    name: str
    slug: str


@dataclass(frozen=True)
class Location:
    street_address: Optional[str] = None
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    state_short: Optional[str] = None
    country: Optional[str] = None
    country_short: Optional[str] = None
    post_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    place_id: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def best_address(self, listing_street: Optional[str] = None) -> str:
        """Street address if present, else the composed address, else the listing street."""
        if self.street_address and self.street_address.strip():
            return self.street_address
        street = " ".join(filter(None, [self.street_number, self.street_name]))
        parts = [
            street,
            self.city,
            self.state_short or self.state,
            self.country_short or self.country,
            self.post_code,
        ]
        composed = ", ".join(p for p in parts if p)
        if composed:
            return composed
        return (listing_street or "").strip()


@dataclass(frozen=True)
class RestaurantRecord:
    id: str
    database_id: int
    name: str
    rating: float = 0.0
    ratings_count: int = 0
    price_range: str = ""
    palates_names: FrozenSet[str] = frozenset()
    listing_categories: Tuple[ListingCategory, ...] = ()
    location: Location = field(default_factory=Location)
    recognition_count: Optional[int] = None
    # None means "no personalization data yet", distinct from zero relevance.
    search_palate_stats: Optional[PalateStats] = None
    slug: str = ""
    status: Optional[str] = None
    listing_street: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def category_slugs(self) -> FrozenSet[str]:
        return frozenset(c.slug.lower() for c in self.listing_categories if c.slug)

    @property
    def address(self) -> str:
        return self.location.best_address(self.listing_street)


PreferenceStatsMap = Dict[str, PalateStats]


@dataclass(frozen=True)
class RegionSelector:
    key: str
    label: str
    type: str = "city"  # "city" or "country"
    short_label: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class FilterState:
    search_term: str = ""
    cuisine: Optional[FrozenSet[str]] = None
    palates: Tuple[str, ...] = ()
    price: Optional[str] = None
    rating: Optional[float] = None
    badge: Optional[str] = None
    sort_option: Optional[SortOption] = None
    address_keyword: str = ""
    selected_region: Optional[RegionSelector] = None

    def effective_sort(self, user_palates: Optional[Tuple[str, ...]] = None) -> SortOption:
        if self.sort_option is not None:
            return self.sort_option
        return SortOption.MY_PREFERENCE if user_palates else SortOption.SMART

    @property
    def palates_active(self) -> bool:
        return bool(self.palates)


@dataclass(frozen=True)
class PaginationCursor:
    offset: int = 0
    has_more: bool = True


@dataclass
class PageResult:
    records: List[RestaurantRecord]
    next_cursor: PaginationCursor
    has_more: bool
