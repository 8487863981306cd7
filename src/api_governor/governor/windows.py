"""Rolling time windows of admitted call timestamps."""

from collections import deque
from typing import Deque


class RollingWindow:
    """Sliding window of admission timestamps (milliseconds) with a fixed capacity."""

    def __init__(self, name: str, horizon_ms: int, capacity: int):
        self.name = name
        self.horizon_ms = horizon_ms
        self.capacity = capacity
        self._stamps: Deque[float] = deque()

    def __len__(self) -> int:
        return len(self._stamps)

    def prune(self, now_ms: float) -> None:
        """Drop timestamps that are no longer strictly inside the horizon."""
        while self._stamps and now_ms - self._stamps[0] >= self.horizon_ms:
            self._stamps.popleft()

    def active_count(self, now_ms: float) -> int:
        """Count timestamps inside the horizon without pruning."""
        expired = 0
        for stamp in self._stamps:
            if now_ms - stamp < self.horizon_ms:
                break
            expired += 1
        return len(self._stamps) - expired

    def is_full(self) -> bool:
        return len(self._stamps) >= self.capacity

    def record(self, now_ms: float) -> None:
        self._stamps.append(now_ms)
