from __future__ import annotations

import asyncio

from discovery.services.suggestions import SuggestionFallback
from helpers import FakeListing, make_record


def test_trigger_boundary() -> None:
    fallback = SuggestionFallback(FakeListing(), threshold=5)

    assert fallback.should_suggest(4, palates_active=True)
    assert not fallback.should_suggest(5, palates_active=True)
    assert not fallback.should_suggest(0, palates_active=False)


def test_fetch_expands_regions_and_requests_one_page() -> None:
    listing = FakeListing({0: [make_record(f"s{i}") for i in range(10)]})
    fallback = SuggestionFallback(listing, count=8)

    items = asyncio.run(fallback.fetch(["East Asian", "thai"]))

    assert len(items) == 8
    assert fallback.items == items
    call = listing.calls[0]
    assert call["search_term"] == ""
    assert call["offset"] == 0
    assert call["page_size"] == 8
    assert call["palates"] == ["japanese", "korean", "chinese", "taiwanese", "thai"]


def test_fetch_failure_returns_empty_list() -> None:
    listing = FakeListing({0: [make_record("s1")]})
    listing.fail = True
    fallback = SuggestionFallback(listing)
    fallback.items = [make_record("stale")]

    assert asyncio.run(fallback.fetch(["korean"])) == []
    assert fallback.items == []


def test_fetch_without_palates_skips_request() -> None:
    listing = FakeListing()
    fallback = SuggestionFallback(listing)

    assert asyncio.run(fallback.fetch([])) == []
    assert listing.calls == []


def test_clear_during_fetch_drops_late_result() -> None:
    listing = FakeListing({0: [make_record("late")]})
    fallback = SuggestionFallback(listing)

    async def clear_now() -> None:
        fallback.clear()

    async def run():
        return await asyncio.gather(fallback.fetch(["korean"]), clear_now())

    late, _ = asyncio.run(run())
    assert late == []
    assert fallback.items == []


def test_newer_fetch_supersedes_older_one() -> None:
    listing = FakeListing({0: [make_record("s1")]})
    fallback = SuggestionFallback(listing)

    async def run():
        return await asyncio.gather(fallback.fetch(["korean"]), fallback.fetch(["thai"]))

    older, newer = asyncio.run(run())
    assert older == []
    assert [r.id for r in newer] == ["s1"]
    assert fallback.items == newer
