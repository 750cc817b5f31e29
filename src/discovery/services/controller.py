from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from loguru import logger

from discovery.config import Configuration
from discovery.errors import FetchError
from discovery.models import FilterState, PreferenceStatsMap, RestaurantRecord
from discovery.services.filters import FilterChange, FilterStore
from discovery.services.listing import ListingClient, ListingService, PreferenceStatsService
from discovery.services.location import LocationRelevanceService, default_location_service
from discovery.services.page_fetcher import PageFetcher, QueryParams
from discovery.services.preference_stats import PreferenceStatsCache, palate_key, should_load, stats_palates
from discovery.services.ranking import rank
from discovery.services.regions import expand_palates
from discovery.services.scroll_loader import ScrollLoader
from discovery.services.suggestions import SuggestionFallback
from discovery.utils import normalize_tags


FETCH_NOTICE = "We couldn't load more restaurants right now. Please try again."


@dataclass(frozen=True)
class ControllerStatus:
    loading: bool
    has_more: bool
    notice: Optional[str]


class DiscoveryController:
    """One discovery session: filters in, ranked results out.

    Owns the page fetcher, the preference-stats cache, the suggestion
    fallback and the filter store, and recomputes the ranked view on read.
    """

    def __init__(
        self,
        cfg: Configuration,
        listing: ListingService,
        stats_service: PreferenceStatsService,
        *,
        user_palates: Sequence[str] = (),
        user_id: Optional[str] = None,
        location: LocationRelevanceService = default_location_service,
    ) -> None:
        self.cfg = cfg
        self.user_palates = tuple(normalize_tags(user_palates))
        self.user_id = user_id
        self.location = location
        self.fetcher = PageFetcher(listing, page_size=cfg.page_size, initial_page_size=cfg.initial_page_size)
        self.stats_cache = PreferenceStatsCache(stats_service, ttl_sec=cfg.stats_cache_ttl)
        self.suggestion_fallback = SuggestionFallback(
            listing,
            threshold=cfg.suggestion_threshold,
            count=cfg.suggested_results_count,
        )
        self.filters = FilterStore(on_change=self.apply_change, debounce_sec=cfg.debounce_seconds)
        self.scroll = ScrollLoader(self.fetcher)
        self.notice: Optional[str] = None
        self.started = False

    @classmethod
    def from_config(cls, cfg: Configuration, client: Optional[ListingClient] = None, **kwargs: Any) -> "DiscoveryController":
        client = client or ListingClient(cfg)
        return cls(cfg, client, client, **kwargs)

    @property
    def state(self) -> FilterState:
        return self.filters.state

    @property
    def preference_stats(self) -> PreferenceStatsMap:
        state = self.state
        if not should_load(state, self.user_palates):
            return {}
        if self.stats_cache.key != palate_key(stats_palates(state, self.user_palates)):
            return {}
        return self.stats_cache.stats

    @property
    def results(self) -> List[RestaurantRecord]:
        return rank(
            self.fetcher.candidates.snapshot(),
            self.state,
            self.preference_stats,
            location=self.location,
            user_palates=self.user_palates,
            region_radius_km=self.cfg.region_radius_km,
        )

    @property
    def suggestions(self) -> List[RestaurantRecord]:
        return list(self.suggestion_fallback.items)

    @property
    def status(self) -> ControllerStatus:
        return ControllerStatus(
            loading=self.fetcher.loading or self.filters.pending,
            has_more=self.fetcher.has_more,
            notice=self.notice,
        )

    def query_params(self, state: Optional[FilterState] = None) -> QueryParams:
        state = state or self.state
        return QueryParams(
            search_term=state.search_term,
            palates=tuple(expand_palates(state.palates)),
            recognition=state.badge,
            user_id=self.user_id,
        )

    async def start(self) -> None:
        """Load the first page for the current filters."""
        self.started = True
        self.fetcher.begin_epoch(self.query_params())
        await asyncio.gather(self._reload(), self._refresh_stats())
        await self.refresh_suggestions()

    async def update_filters(self, **partial: Any) -> FilterChange:
        """Apply a filter change now and wait for any re-fetch it needs."""
        change = self.filters.update(**partial)
        await self.apply_change(change)
        return change

    def update_filters_debounced(self, **partial: Any) -> None:
        self.filters.update_debounced(**partial)

    async def apply_filters(self) -> None:
        """Apply debounced edits immediately."""
        await self.filters.flush()

    async def apply_change(self, change: FilterChange) -> None:
        if not change.changed and self.started:
            return
        if change.requires_refetch or not self.started:
            self.started = True
            self.fetcher.begin_epoch(self.query_params(change.current))
            jobs = [self._reload()]
            if change.stats_changed or not self.stats_cache.key:
                jobs.append(self._refresh_stats())
            await asyncio.gather(*jobs)
        elif change.stats_changed:
            await self._refresh_stats()
        await self.refresh_suggestions()

    async def set_preferences(
        self,
        palates: Optional[Sequence[str]] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Replace the user's palate preferences and identity.

        Stats are rebuilt when the preference set changes; a new user id is
        sent upstream, so it also restarts pagination.
        """
        new_palates = self.user_palates if palates is None else tuple(normalize_tags(palates))
        palates_changed = new_palates != self.user_palates
        user_changed = user_id is not None and user_id != self.user_id
        self.user_palates = new_palates
        if user_id is not None:
            self.user_id = user_id
        if not self.started or not (palates_changed or user_changed):
            return

        jobs = [self._refresh_stats()]
        if user_changed:
            self.fetcher.begin_epoch(self.query_params())
            jobs.append(self._reload())
        await asyncio.gather(*jobs)
        await self.refresh_suggestions()

    async def load_more(self) -> bool:
        issued = await self.scroll.on_visible(True)
        if issued:
            self.notice = FETCH_NOTICE if self.fetcher.last_error is not None else None
            await self.refresh_suggestions()
        return issued

    async def refresh_suggestions(self) -> List[RestaurantRecord]:
        state = self.state
        if not self.suggestion_fallback.should_suggest(len(self.results), state.palates_active):
            self.suggestion_fallback.clear()
            return []
        return await self.suggestion_fallback.fetch(state.palates)

    async def _reload(self) -> None:
        try:
            await self.fetcher.fetch(reset=True)
        except FetchError as exc:
            logger.warning("first page failed for {!r}: {}", self.fetcher.query.search_term, exc)
            self.notice = FETCH_NOTICE
            return
        self.notice = None

    async def _refresh_stats(self) -> None:
        state = self.state
        if not should_load(state, self.user_palates):
            self.stats_cache.invalidate()
            return
        await self.stats_cache.load(stats_palates(state, self.user_palates))

    def close(self) -> None:
        self.filters.cancel()
        self.stats_cache.invalidate()
