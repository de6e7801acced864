"""Per-session sliding-window rate limiter for message ingestion."""
from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Deque, Dict, Optional


class RateLimiter:
    """Allow at most ``max_per_window`` attempts within any trailing ``window_ms``.

    Timestamps are milliseconds. Rejected attempts are not recorded, so a
    client hammering the limit does not extend its own penalty.
    """

    def __init__(self, window_ms: int = 1000, max_per_window: int = 5) -> None:
        if window_ms <= 0 or max_per_window <= 0:
            raise ValueError("window_ms and max_per_window must be positive")
        self.window_ms = window_ms
        self.max_per_window = max_per_window
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def now_ms() -> float:
        return time.monotonic() * 1000.0

    async def attempt(self, session_id: str, now: Optional[float] = None) -> bool:
        if now is None:
            now = self.now_ms()
        async with self._lock:
            window = self._windows.setdefault(session_id, deque())
            while window and now - window[0] >= self.window_ms:
                window.popleft()
            if len(window) >= self.max_per_window:
                return False
            window.append(now)
            return True

    async def retry_after_ms(self, session_id: str, now: Optional[float] = None) -> int:
        """Milliseconds until the oldest recorded attempt leaves the window."""
        if now is None:
            now = self.now_ms()
        async with self._lock:
            window = self._windows.get(session_id)
            if not window:
                return 0
            return max(0, int(self.window_ms - (now - window[0])))

    async def release(self, session_id: str) -> None:
        async with self._lock:
            self._windows.pop(session_id, None)
