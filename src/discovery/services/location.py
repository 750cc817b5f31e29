"""Address-keyword and geographic relevance scoring.

The ranking pipeline only uses ``score``, ``matches_region``, ``sort_by_region``
and ``sort_by_keyword``; callers may pass their own implementation.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from discovery.models import RegionSelector, RestaurantRecord
from discovery.utils import haversine_km


def _lower(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _distance_km(record: RestaurantRecord, region: RegionSelector) -> Optional[float]:
    loc = record.location
    if not (loc.has_coordinates and region.has_coordinates):
        return None
    return haversine_km(region.latitude, region.longitude, loc.latitude, loc.longitude)  # type: ignore[arg-type]


def matches_location_in_address(address: str, location_name: str) -> bool:
    address_lower = address.lower()
    location_lower = location_name.lower()
    if location_lower in address_lower:
        return True
    return any(len(word) > 2 and word in address_lower for word in location_lower.split())


class LocationRelevanceService:
    def score(self, record: RestaurantRecord, keyword: str) -> float:
        """Relevance (0-1) of a record's address to a free-text keyword."""
        kw = _lower(keyword)
        if not kw:
            return 0.0
        loc = record.location
        city = _lower(loc.city)
        score = 0.0
        if city == kw:
            score = 1.0
        elif city and kw in city:
            score = 0.8
        if kw in (_lower(loc.state), _lower(loc.state_short), _lower(loc.country), _lower(loc.country_short)):
            score = max(score, 0.7)
        address = record.address
        if address and kw in address.lower():
            score = max(score, 0.6)
        if _lower(loc.post_code) and _lower(loc.post_code) == kw:
            score = max(score, 0.6)
        if score == 0.0 and address and matches_location_in_address(address, kw):
            score = 0.3
        return score

    def matches_region(self, record: RestaurantRecord, region: RegionSelector, radius_km: float = 100.0) -> bool:
        loc = record.location
        label = _lower(region.label)
        address = record.address.lower()

        if region.type == "country":
            if region.short_label and loc.country_short == region.short_label:
                return True
            country = _lower(loc.country)
            if country and label and (country == label or label in country or country in label):
                return True
            return bool(label) and label in address

        distance = _distance_km(record, region)
        if distance is not None and distance <= radius_km:
            return True
        city = _lower(loc.city)
        if city and label and (city == label or label in city or city in label):
            return True
        if label and label in address:
            return True
        return False

    def region_relevance(self, record: RestaurantRecord, region: RegionSelector) -> float:
        loc = record.location
        label = _lower(region.label)
        address = record.address.lower()
        score = 0.0

        if region.type == "country":
            if region.short_label and loc.country_short == region.short_label:
                score = 1.0
            country = _lower(loc.country)
            if country == label:
                score = max(score, 0.9)
            elif country and label and label in country:
                score = max(score, 0.7)
            if label and label in address:
                score = max(score, 0.5)
            return score

        distance = _distance_km(record, region)
        if distance is not None:
            if distance <= 10:
                score = 1.0
            elif distance <= 50:
                score = 0.8
            elif distance <= 100:
                score = 0.6
            elif distance <= 200:
                score = 0.4
        city = _lower(loc.city)
        if city == label:
            score = max(score, 0.9)
        elif city and label and label in city:
            score = max(score, 0.7)
        if label and label in address:
            score = max(score, 0.5)
        return score

    def sort_by_region(self, records: Sequence[RestaurantRecord], region: RegionSelector) -> List[RestaurantRecord]:
        return sorted(records, key=lambda r: self.region_relevance(r, region), reverse=True)

    def sort_by_keyword(self, records: Sequence[RestaurantRecord], keyword: str) -> List[RestaurantRecord]:
        return sorted(records, key=lambda r: self.score(r, keyword), reverse=True)


default_location_service = LocationRelevanceService()
