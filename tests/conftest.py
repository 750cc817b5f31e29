from __future__ import annotations

import pytest

from discovery.config import Configuration


@pytest.fixture
def cfg() -> Configuration:
    return Configuration(debounce_ms=0, fetch_retry_delay=0.0)
