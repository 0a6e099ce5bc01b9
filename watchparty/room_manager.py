"""
Room registry and connection tracking with per-room serialization
"""

import asyncio
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from .session import RoomSession
from .models import ChatMessage, Participant, utcnow
from .room_codes import generate_room_code
from .validators import validate_room_code
from .constants import (
    MAX_PARTICIPANTS_PER_ROOM,
    MAX_ROOMS_TOTAL,
    ROOM_CODE_MAX_ATTEMPTS,
    ROOM_IDLE_TIMEOUT_SECONDS,
    RATE_LIMIT_MAX_MESSAGES,
    RATE_LIMIT_WINDOW_MS,
    ERROR_MESSAGES
)
from .logger import get_logger, log_security_event, log_connection_event, log_room_event, mask_room_code

logger = get_logger()

class RoomManager:
    """
    Registry of live rooms and their WebSocket connections.

    The registry lock guards the room map; every operation on a room runs
    under that room's own lock, so rooms proceed independently.
    """

    def __init__(self,
                 max_rooms: int = MAX_ROOMS_TOTAL,
                 max_participants: int = MAX_PARTICIPANTS_PER_ROOM,
                 max_messages: int = RATE_LIMIT_MAX_MESSAGES,
                 window_ms: int = RATE_LIMIT_WINDOW_MS,
                 code_generator=generate_room_code):
        # room_code -> RoomSession
        self._rooms: Dict[str, RoomSession] = {}
        # room_code -> {participant_id: websocket}
        self._connections: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self._max_rooms = max_rooms
        self._max_participants = max_participants
        self._session_options = {"max_messages": max_messages, "window_ms": window_ms}
        self._code_generator = code_generator

    async def create_room(self, host_name: str) -> Tuple[bool, Optional[RoomSession], str, str]:
        """
        Create a room with a fresh code and its creator as host

        Args:
            host_name: Creator display name

        Returns:
            Tuple of (success, session, host_participant_id, error_message)

        Raises:
            EntropyUnavailableError: if no secure code can be generated
        """
        async with self._lock:
            if len(self._rooms) >= self._max_rooms:
                log_security_event("room_limit_exceeded", {
                    "current_rooms": len(self._rooms),
                    "max_rooms": self._max_rooms
                })
                return False, None, "", ERROR_MESSAGES["server_full"]

            room_code = await self._get_unique_code()
            if room_code is None:
                return False, None, "", ERROR_MESSAGES["connection_failed"]

            success, session, host_id, error_msg = RoomSession.create(
                host_name, room_code=room_code, **self._session_options
            )
            if not success:
                return False, None, "", error_msg

            self._rooms[room_code] = session
            self._connections[room_code] = {}
            logger.info(f"Room created: {mask_room_code(room_code)} ({len(self._rooms)} active)")
            return True, session, host_id, ""

    async def _get_unique_code(self) -> Optional[str]:
        """Draw codes until one is not in use (caller holds the registry lock)"""
        for _ in range(ROOM_CODE_MAX_ATTEMPTS):
            candidate = self._code_generator()
            if candidate not in self._rooms:
                return candidate
            log_security_event("room_code_collision", {"attempts": ROOM_CODE_MAX_ATTEMPTS})
        return None

    async def get_room(self, room_code: str) -> Optional[RoomSession]:
        async with self._lock:
            return self._rooms.get(room_code)

    async def join_room(self, room_code: str, username: str) -> Tuple[bool, str, str]:
        """
        Ask to join an existing room; the joiner waits for the host

        Args:
            room_code: Room code (case-insensitive)
            username: Requested display name

        Returns:
            Tuple of (success, participant_id, error_message)
        """
        code = room_code.strip().upper() if isinstance(room_code, str) else ""
        if not validate_room_code(code):
            log_security_event("invalid_room_code", {"room_code": str(room_code)[:20]})
            return False, "", ERROR_MESSAGES["invalid_room_code"]

        session = await self.get_room(code)
        if session is None:
            log_security_event("unknown_room_code", {"room_code": code})
            return False, "", ERROR_MESSAGES["room_not_found"]

        async with session.lock:
            if len(session.admission) >= self._max_participants:
                log_security_event("room_full", {
                    "room": code,
                    "participants": len(session.admission),
                    "max_participants": self._max_participants
                })
                return False, "", ERROR_MESSAGES["room_full"]
            return session.join(username)

    async def admit(self, room_code: str, participant_id: str, host_token: str) -> Tuple[bool, Optional[ChatMessage]]:
        session = await self.get_room(room_code)
        if session is None:
            return False, None
        async with session.lock:
            return session.admit(participant_id, host_token)

    async def reject(self, room_code: str, participant_id: str, host_token: str) -> bool:
        session = await self.get_room(room_code)
        if session is None:
            return False
        async with session.lock:
            return session.reject(participant_id, host_token)

    async def leave(self, room_code: str, participant_id: str) -> Tuple[Optional[Participant], Optional[ChatMessage]]:
        session = await self.get_room(room_code)
        if session is None:
            return None, None
        async with session.lock:
            return session.leave(participant_id)

    async def send_message(self, room_code: str, participant_id: str, text: str) -> Tuple[bool, str, Optional[ChatMessage]]:
        """
        Post a chat message to a room

        Returns:
            Tuple of (success, error_message, message_object)
        """
        session = await self.get_room(room_code)
        if session is None:
            return False, ERROR_MESSAGES["room_not_found"], None
        async with session.lock:
            return session.send_message(participant_id, text)

    async def set_video_url(self, room_code: str, url: str, host_token: str) -> Tuple[bool, str]:
        session = await self.get_room(room_code)
        if session is None:
            return False, ERROR_MESSAGES["room_not_found"]
        async with session.lock:
            return session.set_video_url(url, host_token)

    async def get_roster(self, room_code: str, participant_id: str) -> Dict[str, List[Dict[str, Any]]]:
        session = await self.get_room(room_code)
        if session is None:
            return {"admitted": [], "pending": []}
        async with session.lock:
            return session.roster_for(participant_id)

    async def get_history(self, room_code: str, limit: int = 50) -> Tuple[List[ChatMessage], Optional[str]]:
        """
        Recent chat and the current video, for a newly admitted participant

        Returns:
            Tuple of (messages, video_url)
        """
        session = await self.get_room(room_code)
        if session is None:
            return [], None
        async with session.lock:
            return session.chat.history(limit), session.video_url

    async def get_participant(self, room_code: str, participant_id: str) -> Optional[Participant]:
        session = await self.get_room(room_code)
        if session is None:
            return None
        async with session.lock:
            return session.admission.get(participant_id)

    async def register_connection(self, room_code: str, participant_id: str, websocket, ip_address: str = "unknown") -> bool:
        """Attach a WebSocket to a participant of a live room"""
        async with self._lock:
            session = self._rooms.get(room_code)
            if session is None or session.admission.get(participant_id) is None:
                return False
            self._connections[room_code][participant_id] = websocket
            log_connection_event(session.admission.get(participant_id).name, room_code, "connect", ip_address)
            return True

    async def unregister_connection(self, room_code: str, participant_id: str):
        async with self._lock:
            self._connections.get(room_code, {}).pop(participant_id, None)

    async def get_connection(self, room_code: str, participant_id: str) -> Optional[Any]:
        async with self._lock:
            return self._connections.get(room_code, {}).get(participant_id)

    async def admitted_connections(self, room_code: str) -> List[Tuple[str, Any]]:
        """
        WebSockets of admitted participants, for chat broadcast

        Returns:
            List of (participant_id, websocket)
        """
        session = await self.get_room(room_code)
        if session is None:
            return []
        async with session.lock:
            admitted = {p.participant_id for p in session.admission.list_roster()["admitted"]}
        async with self._lock:
            connections = self._connections.get(room_code, {})
            return [(pid, ws) for pid, ws in connections.items() if pid in admitted]

    async def host_connection(self, room_code: str) -> Optional[Any]:
        session = await self.get_room(room_code)
        if session is None or session.admission.host is None:
            return None
        return await self.get_connection(room_code, session.admission.host.participant_id)

    async def close_room(self, room_code: str) -> List[Tuple[str, Any]]:
        """
        Tear down a room, typically when its host leaves

        Returns:
            Connections that were still attached, for the caller to notify
        """
        async with self._lock:
            session = self._rooms.pop(room_code, None)
            connections = self._connections.pop(room_code, {})

        if session is None:
            return []

        log_room_event("closed", room_code, f"connections={len(connections)}")
        logger.info(f"Room closed: {mask_room_code(room_code)}")
        return list(connections.items())

    async def get_room_stats(self) -> Dict[str, int]:
        """
        Aggregate statistics; room codes are never exposed here

        Returns:
            Dictionary with room and participant counts
        """
        async with self._lock:
            sessions = list(self._rooms.values())
            total_connections = sum(len(c) for c in self._connections.values())

        totals = {"participants": 0, "pending": 0, "messages": 0}
        for session in sessions:
            async with session.lock:
                for key, value in session.stats().items():
                    totals[key] += value

        return {
            "total_rooms": len(sessions),
            "total_participants": totals["participants"],
            "total_pending": totals["pending"],
            "total_messages": totals["messages"],
            "total_connections": total_connections,
            "max_rooms": self._max_rooms,
            "max_participants_per_room": self._max_participants
        }

    async def cleanup_idle_rooms(self, timeout_seconds: int = ROOM_IDLE_TIMEOUT_SECONDS) -> Dict[str, List[Tuple[str, Any]]]:
        """
        Close rooms with no activity for timeout_seconds

        Returns:
            Room code -> connections that were still attached, for the
            caller to notify and close
        """
        cutoff = utcnow() - timedelta(seconds=timeout_seconds)
        async with self._lock:
            idle = [code for code, session in self._rooms.items() if session.last_activity < cutoff]

        closed = {}
        for code in idle:
            closed[code] = await self.close_room(code)
            log_security_event("idle_room_removed", {"room": code, "idle_seconds": timeout_seconds})

        if idle:
            logger.info(f"Cleaned up {len(idle)} idle rooms")
        return closed
