from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from discovery.models import RestaurantRecord


def dedupe_records(items: Iterable[RestaurantRecord]) -> List[RestaurantRecord]:
    """Collapse records sharing an id. The last occurrence wins, the first position is kept."""
    by_id: Dict[str, RestaurantRecord] = {}
    for rec in items:
        by_id[rec.id] = rec
    return list(by_id.values())


class CandidateSet:
    """Deduplicated accumulation of the records fetched in one search epoch."""

    def __init__(self, records: Optional[Iterable[RestaurantRecord]] = None) -> None:
        self._by_id: Dict[str, RestaurantRecord] = {}
        if records:
            self.merge(records)

    def merge(self, records: Iterable[RestaurantRecord], *, replace: bool = False) -> None:
        if replace:
            self._by_id = {}
        for rec in records:
            # dict assignment keeps the original insertion slot for known ids
            self._by_id[rec.id] = rec

    def clear(self) -> None:
        self._by_id = {}

    def get(self, record_id: str) -> Optional[RestaurantRecord]:
        return self._by_id.get(record_id)

    def ids(self) -> List[str]:
        return list(self._by_id.keys())

    def snapshot(self) -> List[RestaurantRecord]:
        return list(self._by_id.values())

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._by_id

    def __iter__(self) -> Iterator[RestaurantRecord]:
        return iter(list(self._by_id.values()))

    def __len__(self) -> int:
        return len(self._by_id)
