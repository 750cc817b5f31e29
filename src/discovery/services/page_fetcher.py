from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from discovery.errors import FetchError
from discovery.models import PageResult, PaginationCursor, RestaurantRecord
from discovery.services.candidates import CandidateSet, dedupe_records
from discovery.services.listing import ListingService


@dataclass(frozen=True)
class QueryParams:
    """Server-side part of the filter state; a change starts a new search epoch."""

    search_term: str = ""
    palates: Sequence[str] = ()
    recognition: Optional[str] = None
    user_id: Optional[str] = None
    status: Optional[str] = None


class PageFetcher:
    """Incremental paginated fetcher feeding a deduplicated CandidateSet."""

    def __init__(self, service: ListingService, *, page_size: int = 8, initial_page_size: int = 16) -> None:
        self.service = service
        self.page_size = page_size
        self.initial_page_size = initial_page_size
        self.candidates = CandidateSet()
        self.cursor = PaginationCursor()
        self.query = QueryParams()
        self.epoch = 0
        self.last_error: Optional[FetchError] = None
        self._lock = asyncio.Lock()
        self._in_flight = 0
        self._reset_in_flight_epoch: Optional[int] = None

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def has_more(self) -> bool:
        return self.cursor.has_more

    def begin_epoch(self, query: QueryParams) -> int:
        """Start a new search epoch: empty candidate set, cursor back to (0, True)."""
        self.epoch += 1
        self.query = query
        self.candidates.clear()
        self.cursor = PaginationCursor()
        self.last_error = None
        logger.debug("search epoch {} started term={!r}", self.epoch, query.search_term)
        return self.epoch

    async def fetch(
        self,
        reset: bool = False,
        cursor: Optional[PaginationCursor] = None,
        page_size: Optional[int] = None,
    ) -> Optional[PageResult]:
        """Fetch one page and merge it into the candidate set.

        Returns ``None`` when a reset for the current epoch is already in flight.
        Raises ``FetchError`` on upstream failure after freezing pagination.
        """
        size = page_size if page_size is not None else (self.initial_page_size if reset else self.page_size)
        if not isinstance(size, int) or size < 1:
            raise ValueError("page_size must be a positive integer")

        epoch = self.epoch
        if reset:
            if self._reset_in_flight_epoch == epoch:
                logger.debug("ignoring duplicate first-page fetch for epoch {}", epoch)
                return None
            self._reset_in_flight_epoch = epoch

        self._in_flight += 1
        try:
            async with self._lock:
                return await self._fetch_locked(epoch, reset, cursor, size)
        finally:
            self._in_flight -= 1
            if reset and self._reset_in_flight_epoch == epoch:
                self._reset_in_flight_epoch = None

    async def _fetch_locked(
        self,
        epoch: int,
        reset: bool,
        cursor: Optional[PaginationCursor],
        size: int,
    ) -> PageResult:
        start = PaginationCursor() if reset else (cursor or self.cursor)
        # a frozen cursor can only be reopened by a reset, whatever cursor the caller passes
        if epoch != self.epoch or (not reset and not (start.has_more and self.cursor.has_more)):
            return PageResult(records=[], next_cursor=start, has_more=False)

        query = self.query
        try:
            page = await asyncio.to_thread(
                self.service.fetch_page,
                query.search_term,
                size,
                start,
                cuisine=None,
                palates=list(query.palates) or None,
                price=None,
                user_id=query.user_id,
                status=query.status,
                recognition=query.recognition,
            )
        except FetchError as exc:
            self._fail(epoch, exc)
            raise
        except Exception as exc:
            err = FetchError(f"listing fetch failed: {exc}")
            self._fail(epoch, err)
            raise err from exc

        if epoch != self.epoch:
            # superseded by a newer search; drop the page
            logger.debug("discarding page for stale epoch {} (now {})", epoch, self.epoch)
            return PageResult(records=[], next_cursor=self.cursor, has_more=self.cursor.has_more)

        records: List[RestaurantRecord] = dedupe_records(page.records)
        next_offset = max(page.next_cursor.offset, start.offset)
        self.cursor = PaginationCursor(offset=next_offset, has_more=page.has_more)
        self.candidates.merge(records, replace=reset)
        self.last_error = None
        logger.debug(
            "merged {} records (reset={}) -> {} candidates, has_more={}",
            len(records),
            reset,
            len(self.candidates),
            page.has_more,
        )
        return PageResult(records=records, next_cursor=self.cursor, has_more=page.has_more)

    def _fail(self, epoch: int, exc: FetchError) -> None:
        logger.warning("listing fetch failed: {}", exc)
        if epoch != self.epoch:
            return
        self.last_error = exc
        self.cursor = PaginationCursor(offset=self.cursor.offset, has_more=False)
