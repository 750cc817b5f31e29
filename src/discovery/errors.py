"""Error taxonomy for the discovery engine.

None of these are fatal to a session: callers degrade to fewer or default
results instead of crashing.
"""

from __future__ import annotations


class DiscoveryError(RuntimeError):
    pass


class FetchError(DiscoveryError):
    """The listing source failed, timed out or returned malformed data."""


class PreferenceStatsError(DiscoveryError):
    """Preference stats could not be fetched, or the request was cancelled."""


class SuggestionFetchError(DiscoveryError):
    """The secondary suggestion fetch failed."""
