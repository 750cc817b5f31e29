from __future__ import annotations

import time
from typing import Callable, Dict, Optional

from loguru import logger

from discovery.services.controller import DiscoveryController


ControllerFactory = Callable[[], DiscoveryController]


class ControllerRegistry:
    """Simple in-memory registry of discovery sessions."""

    def __init__(self, factory: ControllerFactory, ttl_sec: int = 3600) -> None:
        self.factory = factory
        self.ttl_sec = ttl_sec
        self._controllers: Dict[str, DiscoveryController] = {}
        self._last_access: Dict[str, float] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._controllers

    def __len__(self) -> int:
        return len(self._controllers)

    def get(self, session_id: str) -> Optional[DiscoveryController]:
        self.cleanup()
        controller = self._controllers.get(session_id)
        if controller is not None:
            self._last_access[session_id] = time.time()
        return controller

    def get_or_create(self, session_id: str) -> DiscoveryController:
        if not session_id:
            raise ValueError("session_id is required")
        controller = self.get(session_id)
        if controller is None:
            controller = self.factory()
            self._controllers[session_id] = controller
            self._last_access[session_id] = time.time()
            logger.debug("created discovery session {}", session_id)
        return controller

    def reset(self, session_id: str) -> bool:
        """Drop a session; returns whether it existed."""
        controller = self._controllers.pop(session_id, None)
        self._last_access.pop(session_id, None)
        if controller is None:
            return False
        controller.close()
        return True

    def cleanup(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        expired = [
            sid for sid, last in self._last_access.items()
            if now - last > self.ttl_sec
        ]
        for sid in expired:
            logger.debug("expiring discovery session {}", sid)
            self.reset(sid)
