from __future__ import annotations

import asyncio
from typing import List, Sequence

from loguru import logger

from discovery.errors import SuggestionFetchError
from discovery.models import PaginationCursor, RestaurantRecord
from discovery.services.listing import ListingService
from discovery.services.regions import expand_palates


class SuggestionFallback:
    """Secondary "you might also like" list for sparse palate-filtered results.

    Suggestions are fetched with the palates widened to their regional
    siblings and are shown as-is: they never enter the candidate set and
    are not re-ranked. A fetch that resolves after a newer fetch or a
    ``clear()`` is dropped.
    """

    def __init__(self, service: ListingService, *, threshold: int = 5, count: int = 8) -> None:
        self.service = service
        self.threshold = threshold
        self.count = count
        self.items: List[RestaurantRecord] = []
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def should_suggest(self, result_count: int, palates_active: bool) -> bool:
        return palates_active and result_count < self.threshold

    def clear(self) -> None:
        self._generation += 1
        self.items = []

    async def fetch(self, palates: Sequence[str]) -> List[RestaurantRecord]:
        self._generation += 1
        generation = self._generation
        expanded = expand_palates(palates)
        if not expanded:
            self.items = []
            return []
        try:
            page = await asyncio.to_thread(
                self.service.fetch_page,
                "",
                self.count,
                PaginationCursor(),
                palates=expanded,
            )
            if page is None:
                raise SuggestionFetchError("listing returned no page")
        except Exception as exc:
            logger.warning("suggested restaurants fetch failed for {}: {}", expanded, exc)
            if generation == self._generation:
                self.items = []
            return []

        if generation != self._generation:
            logger.debug("discarding stale suggestions for {}", expanded)
            return []

        self.items = list(page.records[: self.count])
        logger.debug("fetched {} suggestions for {}", len(self.items), expanded)
        return list(self.items)
