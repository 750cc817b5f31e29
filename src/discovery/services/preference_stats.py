from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Dict, Optional, Sequence, Tuple

from loguru import logger

from discovery.errors import PreferenceStatsError
from discovery.models import FilterState, PalateStats, PreferenceStatsMap, SortOption
from discovery.services.cancellation import CancelToken
from discovery.services.listing import PreferenceStatsService
from discovery.utils import normalize_tags


def palate_key(palates: Sequence[str]) -> str:
    """Identical preference sets share one key regardless of order or case."""
    return ",".join(sorted(normalize_tags(palates)))


def stats_palates(state: FilterState, user_palates: Sequence[str] = ()) -> Tuple[str, ...]:
    """The user's own palate preferences, or the filter palates when the user has none."""
    return tuple(user_palates) or tuple(state.palates)


def should_load(state: FilterState, user_palates: Sequence[str] = ()) -> bool:
    return state.effective_sort(tuple(user_palates)) == SortOption.MY_PREFERENCE and bool(
        stats_palates(state, user_palates)
    )


class PreferenceStatsCache:
    """Per-palate-set relevance stats with cancellation of superseded requests."""

    def __init__(self, service: PreferenceStatsService, *, ttl_sec: int = 600, max_entries: int = 64) -> None:
        self.service = service
        self.stats: PreferenceStatsMap = {}
        self.key: Optional[str] = None
        self._generation = 0
        self._token: Optional[CancelToken] = None
        self._cache_ttl = ttl_sec
        self._cache_max = max_entries
        self._cache: OrderedDict[str, Tuple[float, Dict[str, PalateStats]]] = OrderedDict()

    @property
    def generation(self) -> int:
        return self._generation

    def _cache_get(self, key: str) -> Optional[Dict[str, PalateStats]]:
        entry = self._cache.get(key)
        if not entry:
            return None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            self._cache.pop(key, None)
            return None
        self._cache.move_to_end(key)
        return value

    def _cache_set(self, key: str, value: Dict[str, PalateStats]) -> None:
        if key not in self._cache and len(self._cache) >= self._cache_max:
            self._cache.popitem(last=False)
        self._cache[key] = (time.time(), value)

    def invalidate(self) -> None:
        """Cancel whatever is in flight and drop the current map."""
        self._generation += 1
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self.stats = {}
        self.key = None

    async def load(self, palates: Sequence[str]) -> PreferenceStatsMap:
        """Fetch stats for a palate set. Never raises; failures and cancellations yield ``{}``."""
        if self._token is not None:
            self._token.cancel()
        self._generation += 1
        generation = self._generation
        token = CancelToken()
        self._token = token

        key = palate_key(palates)
        if not key:
            self.stats, self.key = {}, None
            return {}

        cached = self._cache_get(key)
        if cached is not None:
            self.stats, self.key = dict(cached), key
            return dict(cached)

        try:
            result = await asyncio.to_thread(self.service.fetch, key.split(","), token)
            token.raise_if_cancelled()
        except PreferenceStatsError as exc:
            logger.debug("preference stats for {} dropped: {}", key, exc)
            return {}
        except Exception as exc:
            logger.warning("preference stats request failed for {}: {}", key, exc)
            return {}
        finally:
            if self._token is token:
                self._token = None

        if generation != self._generation:
            logger.debug("discarding stale preference stats for {}", key)
            return {}

        result = dict(result or {})
        self._cache_set(key, result)
        self.stats, self.key = result, key
        return dict(result)
