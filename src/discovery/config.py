from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from discovery.utils import mask_secret


class Configuration(BaseModel):
    # Listing service
    listing_base_url: str = Field(default="http://localhost:3000/api/v1/restaurants-v2")
    listing_api_key: Optional[str] = Field(default=None)
    listing_timeout: int = Field(default=10)
    listing_status: str = Field(default="publish")
    fetch_retries: int = Field(default=2, ge=0)
    fetch_retry_delay: float = Field(default=0.5, ge=0.0)

    # Pagination
    initial_page_size: int = Field(default=16, ge=1)
    page_size: int = Field(default=8, ge=1)

    # Interaction
    debounce_ms: int = Field(default=300, ge=0)

    # Suggestions
    suggestion_threshold: int = Field(default=5, ge=0)
    suggested_results_count: int = Field(default=8, ge=1)

    # Ranking
    region_radius_km: float = Field(default=100.0)

    # Caches / sessions
    stats_cache_ttl: int = Field(default=600)
    session_ttl_sec: int = Field(default=3600)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "listing_base_url": os.getenv("LISTING_BASE_URL"),
            "listing_api_key": os.getenv("LISTING_API_KEY"),
            "listing_timeout": os.getenv("LISTING_TIMEOUT"),
            "listing_status": os.getenv("LISTING_STATUS"),
            "fetch_retries": os.getenv("FETCH_RETRIES"),
            "fetch_retry_delay": os.getenv("FETCH_RETRY_DELAY"),
            "initial_page_size": os.getenv("INITIAL_PAGE_SIZE"),
            "page_size": os.getenv("PAGE_SIZE"),
            "debounce_ms": os.getenv("DEBOUNCE_MS"),
            "suggestion_threshold": os.getenv("SUGGESTION_THRESHOLD"),
            "suggested_results_count": os.getenv("SUGGESTED_RESULTS_COUNT"),
            "region_radius_km": os.getenv("REGION_RADIUS_KM"),
            "stats_cache_ttl": os.getenv("STATS_CACHE_TTL"),
            "session_ttl_sec": os.getenv("SESSION_TTL_SEC"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def require_listing(self) -> None:
        if not self.listing_base_url:
            raise ValueError("LISTING_BASE_URL is required")

    def log_summary(self) -> str:
        return (
            "listing=%s timeout=%s retries=%s page_size=%s/%s debounce_ms=%s api_key=%s"
            % (
                self.listing_base_url,
                self.listing_timeout,
                self.fetch_retries,
                self.initial_page_size,
                self.page_size,
                self.debounce_ms,
                mask_secret(self.listing_api_key),
            )
        )
