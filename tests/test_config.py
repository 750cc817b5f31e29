from __future__ import annotations

import pytest

from discovery.config import Configuration


def test_defaults() -> None:
    cfg = Configuration()
    assert cfg.initial_page_size == 16
    assert cfg.page_size == 8
    assert cfg.debounce_seconds == pytest.approx(0.3)
    assert cfg.suggestion_threshold == 5
    assert cfg.suggested_results_count == 8
    assert cfg.stats_cache_ttl == 600


def test_from_env_reads_and_coerces(monkeypatch) -> None:
    monkeypatch.setenv("LISTING_BASE_URL", "https://example.test/api/v1/restaurants-v2")
    monkeypatch.setenv("PAGE_SIZE", "12")
    monkeypatch.setenv("DEBOUNCE_MS", "150")
    monkeypatch.setenv("REGION_RADIUS_KM", "25.5")

    cfg = Configuration.from_env()
    assert cfg.listing_base_url == "https://example.test/api/v1/restaurants-v2"
    assert cfg.page_size == 12
    assert cfg.debounce_seconds == pytest.approx(0.15)
    assert cfg.region_radius_km == 25.5


def test_overrides_win_over_env(monkeypatch) -> None:
    monkeypatch.setenv("PAGE_SIZE", "12")
    cfg = Configuration.from_env({"page_size": 4, "listing_api_key": None})
    assert cfg.page_size == 4


def test_invalid_page_size_rejected(monkeypatch) -> None:
    monkeypatch.setenv("PAGE_SIZE", "0")
    with pytest.raises(ValueError):
        Configuration.from_env()


def test_log_summary_masks_api_key() -> None:
    cfg = Configuration(listing_api_key="abcd1234efgh5678")
    summary = cfg.log_summary()
    assert "abcd1234efgh5678" not in summary
    assert "abcd...5678" in summary


def test_require_listing() -> None:
    with pytest.raises(ValueError):
        Configuration(listing_base_url="").require_listing()
