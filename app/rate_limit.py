import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Request


@dataclass
class _Window:
    started_at: float
    count: int = 1


class FixedWindowRateLimiter:
    """Counts requests per client over fixed windows of ``window_sec``."""

    def __init__(self, max_requests: int, window_sec: float, max_clients: int = 10000):
        self.max_requests = max(1, int(max_requests))
        self.window_sec = max(1.0, float(window_sec))
        self.max_clients = max_clients
        self._lock = asyncio.Lock()
        self._windows: dict[str, _Window] = {}

    @staticmethod
    def client_key(request: Request) -> str:
        forwarded = str(request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        if forwarded:
            return forwarded
        if request.client and request.client.host:
            return str(request.client.host)
        return "unknown"

    async def check(self, key: str, now_ts: Optional[float] = None) -> int:
        """0 when the request may proceed, otherwise seconds until the window resets."""
        now_ts = time.time() if now_ts is None else now_ts
        async with self._lock:
            window = self._windows.get(key)
            if window is None or now_ts - window.started_at >= self.window_sec:
                self._windows[key] = _Window(started_at=now_ts)
                self._prune(now_ts)
                return 0
            if window.count >= self.max_requests:
                return max(1, int(self.window_sec - (now_ts - window.started_at)))
            window.count += 1
            return 0

    def _prune(self, now_ts: float) -> None:
        if len(self._windows) <= self.max_clients:
            return
        stale = [key for key, window in self._windows.items() if now_ts - window.started_at > self.window_sec * 2]
        for key in stale:
            del self._windows[key]
