from __future__ import annotations

import asyncio

import pytest

from discovery.config import Configuration
from discovery.models import PalateStats
from discovery.services.controller import FETCH_NOTICE, DiscoveryController
from helpers import FakeListing, FakeStats, make_record


@pytest.fixture
def small_cfg() -> Configuration:
    return Configuration(debounce_ms=10, fetch_retry_delay=0.0, initial_page_size=2, page_size=2)


def _ids(records) -> list[str]:
    return [r.id for r in records]


def _listing() -> FakeListing:
    return FakeListing(
        {
            0: [make_record("A", rating=4.0, price_range="$"), make_record("B", rating=4.8, price_range="$$")],
            2: [make_record("C", rating=4.5, price_range="$$")],
        },
        has_more_after=3,
    )


def test_start_fetches_first_page_and_ranks(small_cfg) -> None:
    listing = _listing()
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    asyncio.run(controller.start())

    assert _ids(controller.results) == ["B", "A"]
    assert controller.status.has_more is True
    assert controller.status.loading is False
    assert controller.status.notice is None
    assert listing.calls[0]["page_size"] == 2


def test_load_more_merges_next_page(small_cfg) -> None:
    listing = _listing()
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    async def run() -> bool:
        await controller.start()
        issued = await controller.load_more()
        assert await controller.load_more() is False
        return issued

    assert asyncio.run(run()) is True
    assert _ids(controller.results) == ["B", "C", "A"]
    assert controller.status.has_more is False
    assert len(listing.calls) == 2


def test_display_filter_does_not_refetch(small_cfg) -> None:
    listing = _listing()
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    async def run():
        await controller.start()
        return await controller.update_filters(price="$$")

    change = asyncio.run(run())
    assert not change.requires_refetch
    assert _ids(controller.results) == ["B"]
    assert len(listing.calls) == 1


def test_search_term_change_starts_new_epoch(small_cfg) -> None:
    listing = _listing()
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    async def run() -> None:
        await controller.start()
        await controller.load_more()
        listing.pages = {0: [make_record("Z", rating=3.0)]}
        await controller.update_filters(search_term="pho")

    asyncio.run(run())
    assert _ids(controller.results) == ["Z"]
    assert listing.calls[-1]["search_term"] == "pho"
    assert listing.calls[-1]["offset"] == 0


def test_fetch_failure_surfaces_notice(small_cfg) -> None:
    listing = _listing()
    listing.fail = True
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    asyncio.run(controller.start())

    assert controller.results == []
    assert controller.status.notice == FETCH_NOTICE
    assert controller.status.has_more is False


def test_my_preference_uses_loaded_stats(small_cfg) -> None:
    stats = FakeStats({"A": PalateStats(avg=4.9, count=6)})
    controller = DiscoveryController(small_cfg, _listing(), stats, user_palates=["Korean"])

    asyncio.run(controller.update_filters(palates=["korean"]))

    assert _ids(controller.results) == ["A", "B"]
    assert controller.results[0].search_palate_stats == PalateStats(avg=4.9, count=6)
    assert stats.calls == [["korean"]]


def test_sparse_palate_results_fetch_suggestions(small_cfg) -> None:
    listing = _listing()
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    asyncio.run(controller.update_filters(palates=["East Asian"]))

    assert len(controller.results) == 2
    assert _ids(controller.suggestions) == ["A", "B"]
    suggestion_call = listing.calls[-1]
    assert suggestion_call["page_size"] == small_cfg.suggested_results_count
    assert suggestion_call["palates"] == ["japanese", "korean", "chinese", "taiwanese"]


def test_no_suggestions_without_palates(small_cfg) -> None:
    listing = _listing()
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    asyncio.run(controller.start())

    assert controller.suggestions == []
    assert len(listing.calls) == 1


def test_debounced_filters_apply_on_flush(small_cfg) -> None:
    listing = _listing()
    controller = DiscoveryController(small_cfg, listing, FakeStats())

    async def run() -> None:
        await controller.start()
        controller.update_filters_debounced(search_term="p")
        controller.update_filters_debounced(search_term="pho")
        assert controller.status.loading
        await controller.apply_filters()

    asyncio.run(run())
    assert controller.state.search_term == "pho"
    assert [c["search_term"] for c in listing.calls] == ["", "pho"]


def test_user_preferences_drive_default_my_preference_sort(small_cfg) -> None:
    listing = FakeListing({0: [make_record("A", rating=4.9), make_record("B", rating=3.0)]})
    stats = FakeStats({"B": PalateStats(avg=4.8, count=6)})
    controller = DiscoveryController(small_cfg, listing, stats, user_palates=["korean"])

    asyncio.run(controller.start())

    assert stats.calls == [["korean"]]
    assert _ids(controller.results) == ["B", "A"]
    assert controller.suggestions == []


def test_set_preferences_rebuilds_stats_and_restarts_for_new_user(small_cfg) -> None:
    listing = FakeListing({0: [make_record("A", rating=4.9), make_record("B", rating=3.0)]})
    stats = FakeStats({"B": PalateStats(avg=4.8, count=6)})
    controller = DiscoveryController(small_cfg, listing, stats)

    async def run() -> None:
        await controller.start()
        assert _ids(controller.results) == ["A", "B"]
        await controller.set_preferences(palates=["Korean", "thai"], user_id="u1")

    asyncio.run(run())
    assert stats.calls == [["korean", "thai"]]
    assert _ids(controller.results) == ["B", "A"]
    assert listing.calls[-1]["user_id"] == "u1"
    assert listing.calls[-1]["offset"] == 0
