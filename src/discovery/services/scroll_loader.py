from __future__ import annotations

from loguru import logger

from discovery.errors import FetchError
from discovery.services.page_fetcher import PageFetcher


class ScrollLoader:
    """Requests the next page when the end-of-list sentinel becomes visible."""

    def __init__(self, fetcher: PageFetcher) -> None:
        self.fetcher = fetcher

    def can_load(self, visible: bool) -> bool:
        return visible and self.fetcher.has_more and not self.fetcher.loading

    async def on_visible(self, visible: bool) -> bool:
        if not self.can_load(visible):
            return False
        try:
            await self.fetcher.fetch(reset=False)
        except FetchError as exc:
            # already recorded on the fetcher; pagination is frozen until the next reset
            logger.debug("scroll load stopped: {}", exc)
        return True
