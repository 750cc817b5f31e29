from __future__ import annotations

import inspect
from dataclasses import dataclass, fields, replace
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Union

from loguru import logger

from discovery.models import FilterState, RegionSelector, SortOption
from discovery.services.debounce import Debouncer
from discovery.utils import normalize_tags


# Sent upstream with every page request; changing them restarts pagination.
QUERY_FIELDS = frozenset({"search_term", "palates", "badge"})
STATS_FIELDS = frozenset({"palates", "sort_option"})
_FIELD_NAMES = frozenset(f.name for f in fields(FilterState))


@dataclass(frozen=True)
class FilterChange:
    previous: FilterState
    current: FilterState

    @property
    def changed(self) -> frozenset:
        return frozenset(
            name for name in _FIELD_NAMES if getattr(self.previous, name) != getattr(self.current, name)
        )

    @property
    def requires_refetch(self) -> bool:
        return bool(self.changed & QUERY_FIELDS)

    @property
    def stats_changed(self) -> bool:
        return bool(self.changed & STATS_FIELDS)


OnChange = Callable[[FilterChange], Union[None, Awaitable[None]]]


def _normalize_cuisine(value: Optional[Iterable[str]]) -> Optional[frozenset]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    tags = normalize_tags(value)
    return frozenset(tags) if tags else None


def _normalize_sort(value: Any) -> Optional[SortOption]:
    if value is None or value == "":
        return None
    if isinstance(value, SortOption):
        return value
    return SortOption(str(value).lower())


def _normalize_region(value: Any) -> Optional[RegionSelector]:
    if value is None or isinstance(value, RegionSelector):
        return value
    if isinstance(value, dict):
        return RegionSelector(**value)
    raise TypeError(f"selected_region must be a RegionSelector or dict, got {type(value).__name__}")


def normalize_partial(partial: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(partial) - _FIELD_NAMES
    if unknown:
        raise TypeError(f"unknown filter fields: {', '.join(sorted(unknown))}")

    out = dict(partial)
    if "cuisine" in out:
        out["cuisine"] = _normalize_cuisine(out["cuisine"])
    if "palates" in out:
        palates = out["palates"]
        if isinstance(palates, str):
            palates = [palates]
        out["palates"] = tuple(normalize_tags(palates))
    if "sort_option" in out:
        out["sort_option"] = _normalize_sort(out["sort_option"])
    if "selected_region" in out:
        out["selected_region"] = _normalize_region(out["selected_region"])
    for key in ("search_term", "address_keyword"):
        if key in out:
            out[key] = (out[key] or "").strip()
    for key in ("price", "badge"):
        if key in out:
            out[key] = (out[key] or "").strip() or None
    if "rating" in out and out["rating"] is not None:
        out["rating"] = float(out["rating"])
    return out


class FilterStore:
    """Owns the session's FilterState; every mutation produces a new snapshot."""

    def __init__(
        self,
        initial: Optional[FilterState] = None,
        *,
        on_change: Optional[OnChange] = None,
        debounce_sec: float = 0.3,
    ) -> None:
        self._state = initial or FilterState()
        self.on_change = on_change
        self._pending: Dict[str, Any] = {}
        self._debouncer = Debouncer(self._apply_pending, delay=debounce_sec)

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def update(self, **partial: Any) -> FilterChange:
        values = normalize_partial(partial)
        previous = self._state
        self._state = replace(previous, **values)
        change = FilterChange(previous=previous, current=self._state)
        if change.changed:
            logger.debug("filters changed: {}", sorted(change.changed))
        return change

    def update_debounced(self, **partial: Any) -> None:
        """Coalesce edits; the merged partial is applied once the window elapses."""
        self._pending.update(normalize_partial(partial))
        self._debouncer.trigger()

    async def flush(self) -> None:
        await self._debouncer.flush()

    def cancel(self) -> None:
        self._debouncer.cancel()
        self._pending = {}

    async def _apply_pending(self) -> None:
        pending, self._pending = self._pending, {}
        if not pending:
            return
        change = self.update(**pending)
        if not change.changed or self.on_change is None:
            return
        result = self.on_change(change)
        if inspect.isawaitable(result):
            await result
