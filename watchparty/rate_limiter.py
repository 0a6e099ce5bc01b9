"""
Sliding-window rate limiting for chat senders
"""

import time
from collections import deque
from typing import Callable, Deque
from .constants import RATE_LIMIT_MAX_MESSAGES, RATE_LIMIT_WINDOW_MS

def monotonic_ms() -> int:
    """Monotonic clock in milliseconds"""
    return time.monotonic_ns() // 1_000_000

class RateLimiter:
    """
    Allow at most max_messages sends in any rolling window of window_ms.
    
    Not thread-safe: the owning room serializes calls on an instance.
    """
    
    def __init__(self,
                 max_messages: int = RATE_LIMIT_MAX_MESSAGES,
                 window_ms: int = RATE_LIMIT_WINDOW_MS,
                 clock: Callable[[], int] = monotonic_ms):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        if window_ms < 1:
            raise ValueError("window_ms must be at least 1")
        self.max_messages = max_messages
        self.window_ms = window_ms
        self._clock = clock
        # Send timestamps, oldest first
        self._timestamps: Deque[int] = deque()
    
    def _evict(self, now: int):
        while self._timestamps and now - self._timestamps[0] >= self.window_ms:
            self._timestamps.popleft()
    
    def can_send_message(self) -> bool:
        """
        Record a send if the window has room for it
        
        Returns:
            True if the send is admitted, False if the sender must wait
        """
        now = self._clock()
        self._evict(now)
        
        if len(self._timestamps) >= self.max_messages:
            return False
        
        self._timestamps.append(now)
        return True
    
    def get_remaining_time(self) -> int:
        """
        Milliseconds until the next send would be admitted
        
        Returns:
            0 while under the limit, otherwise the time until the oldest
            send leaves the window
        """
        if len(self._timestamps) < self.max_messages:
            return 0
        
        elapsed = self._clock() - self._timestamps[0]
        return max(0, self.window_ms - elapsed)
    
    @property
    def tracked_count(self) -> int:
        return len(self._timestamps)
