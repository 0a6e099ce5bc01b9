"""
Per-room session owning the roster, the chat channel and the room lock
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from .admission import AdmissionController
from .chat import ChatChannel
from .models import ChatMessage, Participant, utcnow
from .room_codes import generate_room_code
from .validators import validate_url
from .rate_limiter import monotonic_ms
from .constants import RATE_LIMIT_MAX_MESSAGES, RATE_LIMIT_WINDOW_MS, ERROR_MESSAGES
from .logger import log_room_event, log_security_event

class RoomSession:
    """
    Everything that lives and dies with one room.

    The core objects do no locking of their own; callers hold `lock`
    around every operation on the session.
    """

    def __init__(self,
                 room_code: str,
                 max_messages: int = RATE_LIMIT_MAX_MESSAGES,
                 window_ms: int = RATE_LIMIT_WINDOW_MS,
                 clock: Callable[[], int] = monotonic_ms):
        self.room_code = room_code
        self.admission = AdmissionController(room_code)
        self.chat = ChatChannel(room_code, max_messages, window_ms, clock)
        self.video_url: Optional[str] = None
        self.created_at: datetime = utcnow()
        self.last_activity: datetime = self.created_at
        self.lock = asyncio.Lock()

    @classmethod
    def create(cls,
               host_name: str,
               room_code: Optional[str] = None,
               **kwargs) -> Tuple[bool, Optional["RoomSession"], str, str]:
        """
        Open a room with its creator as host

        Args:
            host_name: Creator display name
            room_code: Pre-issued code; a fresh one is generated if omitted
            **kwargs: Rate limit settings passed to the chat channel

        Returns:
            Tuple of (success, session, host_participant_id, error_message)

        Raises:
            EntropyUnavailableError: if no secure code can be generated
        """
        session = cls(room_code or generate_room_code(), **kwargs)
        success, host_id, error_msg = session.admission.request_join(host_name, is_creator=True)
        if not success:
            return False, None, "", error_msg

        session.chat.post_system(f"Welcome to room {session.room_code}!")
        log_room_event("created", session.room_code, f"host={session.admission.host.name}")
        return True, session, host_id, ""

    @property
    def host_token(self) -> Optional[str]:
        return self.admission.host_token

    def touch(self):
        self.last_activity = utcnow()

    def join(self, name: str) -> Tuple[bool, str, str]:
        """Request to join as a guest; the participant starts pending"""
        self.touch()
        return self.admission.request_join(name)

    def admit(self, participant_id: str, host_token: str) -> Tuple[bool, Optional[ChatMessage]]:
        """
        Admit a pending participant and announce it in the chat

        Returns:
            Tuple of (admitted, system_message)
        """
        self.touch()
        if not self.admission.admit(participant_id, host_token):
            return False, None
        participant = self.admission.get(participant_id)
        notice = self.chat.post_system(f"{participant.name} joined the room")
        return True, notice

    def reject(self, participant_id: str, host_token: str) -> bool:
        self.touch()
        return self.admission.reject(participant_id, host_token)

    def leave(self, participant_id: str) -> Tuple[Optional[Participant], Optional[ChatMessage]]:
        """
        Remove a guest; announces the departure if they had been admitted

        Returns:
            Tuple of (removed_participant, system_message)
        """
        self.touch()
        participant = self.admission.leave(participant_id)
        if participant is None:
            return None, None
        self.chat.forget_sender(participant_id)
        if not participant.is_admitted:
            return participant, None
        return participant, self.chat.post_system(f"{participant.name} left the room")

    def send_message(self, participant_id: str, text: str) -> Tuple[bool, str, Optional[ChatMessage]]:
        """
        Post a chat message from an admitted participant

        Returns:
            Tuple of (success, error_message, message_object)
        """
        self.touch()
        participant = self.admission.get(participant_id)
        if participant is None:
            log_security_event("message_from_unknown_participant", {
                "room": self.room_code,
                "participant_id": participant_id
            })
            return False, ERROR_MESSAGES["participant_not_found"], None

        if not participant.is_admitted:
            log_security_event("message_from_pending_participant", {
                "room": self.room_code,
                "participant_id": participant_id
            })
            return False, ERROR_MESSAGES["not_admitted"], None

        return self.chat.post(participant_id, participant.name, text)

    def set_video_url(self, url: str, host_token: str) -> Tuple[bool, str]:
        """
        Point the shared player at a new video (host only)

        Returns:
            Tuple of (success, error_message)
        """
        self.touch()
        if not self.admission.is_host_token(host_token):
            log_security_event("unauthorized_host_action", {"room": self.room_code, "action": "set_video"})
            return False, ERROR_MESSAGES["not_host"]

        if not validate_url(url):
            return False, ERROR_MESSAGES["invalid_url"]

        self.video_url = url.strip()
        log_room_event("video_set", self.room_code)
        return True, ""

    def roster_for(self, participant_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Roster as seen by one participant; only the host sees pending joiners"""
        viewer = self.admission.get(participant_id)
        include_pending = viewer is not None and viewer.is_host
        roster = self.admission.list_roster(include_pending=include_pending)
        return {
            "admitted": [p.to_dict() for p in roster["admitted"]],
            "pending": [p.to_dict() for p in roster["pending"]]
        }

    def stats(self) -> Dict[str, int]:
        roster = self.admission.list_roster()
        return {
            "participants": len(roster["admitted"]),
            "pending": len(roster["pending"]),
            "messages": len(self.chat)
        }
