"""
Chat channel: sanitize, validate and rate-limit before logging a message
"""

from typing import Callable, Dict, List, Optional, Tuple
from .models import ChatMessage
from .sanitizer import sanitize
from .validators import validate_message
from .rate_limiter import RateLimiter, monotonic_ms
from .constants import (
    RATE_LIMIT_MAX_MESSAGES,
    RATE_LIMIT_WINDOW_MS,
    CHAT_HISTORY_LIMIT,
    SYSTEM_SENDER,
    ERROR_MESSAGES
)
from .logger import log_security_event, log_message_event

class ChatChannel:
    """In-memory message log of one room with a rate limiter per sender"""

    def __init__(self,
                 room_code: str,
                 max_messages: int = RATE_LIMIT_MAX_MESSAGES,
                 window_ms: int = RATE_LIMIT_WINDOW_MS,
                 clock: Callable[[], int] = monotonic_ms):
        self.room_code = room_code
        self.max_messages = max_messages
        self.window_ms = window_ms
        self._clock = clock
        self._messages: List[ChatMessage] = []
        # sender_id -> RateLimiter
        self._limiters: Dict[str, RateLimiter] = {}

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def limiter_for(self, sender_id: str) -> RateLimiter:
        limiter = self._limiters.get(sender_id)
        if limiter is None:
            limiter = RateLimiter(self.max_messages, self.window_ms, self._clock)
            self._limiters[sender_id] = limiter
        return limiter

    def post(self, sender_id: str, username: str, text: str) -> Tuple[bool, str, Optional[ChatMessage]]:
        """
        Accept a user message into the log

        Args:
            sender_id: Participant id, keys the sender's rate window
            username: Sender display name (already validated at join)
            text: Raw message text

        Returns:
            Tuple of (success, error_message, message_object)
        """
        if not validate_message(text):
            return False, ERROR_MESSAGES["invalid_message"], None

        limiter = self.limiter_for(sender_id)
        if not limiter.can_send_message():
            wait_ms = limiter.get_remaining_time()
            log_security_event("rate_limit_exceeded", {
                "room": self.room_code,
                "sender_id": sender_id,
                "retry_after_ms": wait_ms
            })
            return False, f"{ERROR_MESSAGES['rate_limit']} (retry in {wait_ms} ms)", None

        message = ChatMessage(username=sanitize(username), message=sanitize(text))
        self._append(message)
        log_message_event(message.message_id, message.username, self.room_code, "post",
                          f"length={len(message.message)}")
        return True, "", message

    def post_system(self, text: str) -> ChatMessage:
        """Log a system notice; bypasses validation and rate limiting"""
        message = ChatMessage(username=SYSTEM_SENDER, message=sanitize(text), is_system=True)
        self._append(message)
        return message

    def _append(self, message: ChatMessage):
        self._messages.append(message)
        if len(self._messages) > CHAT_HISTORY_LIMIT:
            del self._messages[:len(self._messages) - CHAT_HISTORY_LIMIT]

    def history(self, limit: int = 50) -> List[ChatMessage]:
        """Most recent messages, oldest first"""
        if limit <= 0:
            return []
        return self._messages[-limit:]

    def forget_sender(self, sender_id: str):
        """Drop the rate window of a sender who left"""
        self._limiters.pop(sender_id, None)
