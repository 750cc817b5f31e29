from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests
from loguru import logger

from discovery.config import Configuration
from discovery.errors import FetchError, PreferenceStatsError
from discovery.models import (
    ListingCategory,
    Location,
    PageResult,
    PaginationCursor,
    PalateStats,
    RestaurantRecord,
)
from discovery.services.cancellation import CancelToken
from discovery.services.candidates import dedupe_records
from discovery.utils import normalize_tags, parse_jsonish, safe_float, safe_int


class ListingService(Protocol):
    def fetch_page(
        self,
        search_term: str,
        page_size: int,
        cursor: PaginationCursor,
        *,
        cuisine: Optional[Sequence[str]] = None,
        palates: Optional[Sequence[str]] = None,
        price: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        recognition: Optional[str] = None,
    ) -> PageResult: ...


class PreferenceStatsService(Protocol):
    def fetch(self, palates: Sequence[str], token: Optional[CancelToken] = None) -> Dict[str, PalateStats]: ...


@dataclass
class _RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_location(row: Dict[str, Any]) -> Location:
    addr = parse_jsonish(row.get("address"))
    if not isinstance(addr, dict):
        addr = {}

    def pick(*keys: str) -> Optional[str]:
        for key in keys:
            value = addr.get(key)
            if value not in (None, ""):
                return str(value)
        return None

    lat = safe_float(addr.get("latitude"))
    lon = safe_float(addr.get("longitude"))
    if lat is None or lon is None:
        lat, lon = safe_float(row.get("latitude")), safe_float(row.get("longitude"))

    return Location(
        street_address=pick("street_address", "streetAddress"),
        street_number=pick("street_number", "streetNumber"),
        street_name=pick("street_name", "streetName"),
        city=pick("city"),
        state=pick("state"),
        state_short=pick("state_short", "stateShort"),
        country=pick("country"),
        country_short=pick("country_short", "countryShort"),
        post_code=pick("post_code", "postCode"),
        latitude=lat,
        longitude=lon,
        place_id=pick("place_id", "placeId"),
    )


def _parse_categories(raw: Any) -> tuple[ListingCategory, ...]:
    raw = parse_jsonish(raw)
    if not isinstance(raw, list):
        return ()
    out: list[ListingCategory] = []
    for item in raw:
        if isinstance(item, str):
            name = item.strip()
            if name:
                out.append(ListingCategory(id=0, name=name, slug="-".join(name.lower().split())))
            continue
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        slug = str(item.get("slug") or "-".join(name.lower().split())).strip()
        if not (name or slug):
            continue
        out.append(ListingCategory(id=safe_int(item.get("id")) or 0, name=name or slug, slug=slug))
    return tuple(out)


def _parse_stats(raw: Any) -> Optional[PalateStats]:
    if not isinstance(raw, dict):
        return None
    avg = safe_float(raw.get("avg"))
    count = safe_int(raw.get("count"))
    if avg is None or count is None:
        return None
    return PalateStats(avg=avg, count=count)


def parse_record(row: Dict[str, Any]) -> Optional[RestaurantRecord]:
    """Map one listing row (snake_case v2 shape) onto a RestaurantRecord."""
    record_id = row.get("uuid") or row.get("id")
    if record_id in (None, ""):
        return None
    price = (row.get("restaurant_price_range") or {}).get("display_name") or row.get("price_range") or ""
    return RestaurantRecord(
        id=str(record_id),
        database_id=safe_int(row.get("id")) or 0,
        name=str(row.get("title") or row.get("name") or ""),
        rating=safe_float(row.get("average_rating")) or 0.0,
        ratings_count=safe_int(row.get("ratings_count")) or 0,
        price_range=str(price),
        palates_names=frozenset(normalize_tags(parse_jsonish(row.get("palates")))),
        listing_categories=_parse_categories(row.get("categories")),
        location=_parse_location(row),
        recognition_count=safe_int(row.get("recognition_count")),
        search_palate_stats=_parse_stats(row.get("search_palate_stats")),
        slug=str(row.get("slug") or ""),
        status=row.get("status"),
        listing_street=row.get("listing_street"),
        created_at=_parse_datetime(row.get("created_at")),
    )


class ListingClient:
    """HTTP adapter for the restaurant listing and preference-stats endpoints."""

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.listing_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.policy = _RetryPolicy(retries=cfg.fetch_retries, base_delay=cfg.fetch_retry_delay)

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        if self.cfg.listing_api_key:
            headers["Authorization"] = f"Bearer {self.cfg.listing_api_key}"
        params = {k: v for k, v in params.items() if v not in (None, "")}
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.listing_timeout)
            except requests.RequestException as exc:  # network error or timeout
                if attempt <= self.policy.retries:
                    logger.warning("listing request failed (attempt {}): {}", attempt, exc)
                    time.sleep(self.policy.base_delay * attempt)
                    continue
                raise FetchError(f"request error: {exc}") from exc

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= self.policy.retries:
                    logger.warning("listing upstream {} (attempt {})", resp.status_code, attempt)
                    time.sleep(self.policy.base_delay * attempt)
                    continue
                raise FetchError(f"upstream {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise FetchError(f"upstream {resp.status_code}: {resp.text[:300]}")

            try:
                payload = resp.json()
            except ValueError as exc:
                raise FetchError("invalid json response") from exc
            if not isinstance(payload, dict):
                raise FetchError("unexpected response shape")
            return payload

    def fetch_page(
        self,
        search_term: str,
        page_size: int,
        cursor: PaginationCursor,
        *,
        cuisine: Optional[Sequence[str]] = None,
        palates: Optional[Sequence[str]] = None,
        price: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        recognition: Optional[str] = None,
    ) -> PageResult:
        params = {
            "limit": page_size,
            "offset": cursor.offset,
            "search": (search_term or "").strip(),
            "status": status or self.cfg.listing_status,
            "cuisines": ",".join(cuisine) if cuisine else None,
            "palates": ",".join(palates) if palates else None,
            "price": price,
            "user_id": user_id,
            "recognition": recognition,
        }
        payload = self._get("/get-restaurants", params)
        rows = payload.get("data")
        if not isinstance(rows, list):
            raise FetchError("listing response missing data list")

        records: List[RestaurantRecord] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            rec = parse_record(row)
            if rec is not None:
                records.append(rec)

        meta = payload.get("meta") or {}
        next_offset = cursor.offset + len(rows)
        if "hasMore" in meta:
            has_more = bool(meta["hasMore"])
        elif safe_int(meta.get("total")) is not None:
            has_more = next_offset < (safe_int(meta.get("total")) or 0)
        else:
            has_more = len(rows) >= page_size
        if not rows:
            has_more = False

        logger.debug("listing page offset={} rows={} has_more={}", cursor.offset, len(rows), has_more)
        return PageResult(
            records=dedupe_records(records),
            next_cursor=PaginationCursor(offset=next_offset, has_more=has_more),
            has_more=has_more,
        )

    def fetch(self, palates: Sequence[str], token: Optional[CancelToken] = None) -> Dict[str, PalateStats]:
        key = ",".join(sorted(normalize_tags(palates)))
        if not key:
            return {}
        if token is not None:
            token.raise_if_cancelled()
        try:
            payload = self._get("/get-preference-stats", {"palates": key})
        except FetchError as exc:
            raise PreferenceStatsError(str(exc)) from exc
        if token is not None:
            token.raise_if_cancelled()
        if payload.get("success") is False:
            raise PreferenceStatsError(str(payload.get("error") or "preference stats request failed"))

        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise PreferenceStatsError("preference stats response missing data map")
        out: Dict[str, PalateStats] = {}
        for record_id, raw in data.items():
            stats = _parse_stats(raw)
            if stats is not None:
                out[str(record_id)] = stats
        return out
