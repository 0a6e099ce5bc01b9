"""
Roster admission control for a single room
"""

import hmac
import secrets
from typing import Dict, List, Optional, Tuple
from .models import Participant, AdmissionStatus
from .sanitizer import sanitize
from .validators import validate_username
from .constants import ERROR_MESSAGES
from .logger import get_logger, log_security_event, log_room_event, mask_room_code

logger = get_logger()

class AdmissionController:
    """
    Roster of one room: the host, admitted participants and pending joiners.

    The room creator is admitted as host and receives the host token; admit
    and reject only act when that token is presented. Not thread-safe: the
    owning room serializes calls on an instance.
    """

    def __init__(self, room_code: str):
        self.room_code = room_code
        # participant_id -> Participant, insertion ordered
        self._roster: Dict[str, Participant] = {}
        self._host_id: Optional[str] = None
        self._host_token: Optional[str] = None

    @property
    def host(self) -> Optional[Participant]:
        if self._host_id is None:
            return None
        return self._roster.get(self._host_id)

    @property
    def host_token(self) -> Optional[str]:
        return self._host_token

    def __len__(self) -> int:
        return len(self._roster)

    def get(self, participant_id: str) -> Optional[Participant]:
        return self._roster.get(participant_id)

    def is_host_token(self, token: str) -> bool:
        """Constant-time comparison against the issued host token"""
        if self._host_token is None or not isinstance(token, str):
            return False
        return hmac.compare_digest(token.encode(), self._host_token.encode())

    def request_join(self, name: str, is_creator: bool = False) -> Tuple[bool, str, str]:
        """
        Add a participant to the roster

        Args:
            name: Requested display name
            is_creator: True for the user creating the room

        Returns:
            Tuple of (success, participant_id, error_message)
        """
        if not validate_username(name):
            return False, "", ERROR_MESSAGES["invalid_username"]

        clean_name = sanitize(name)

        if is_creator:
            if self._host_id is not None:
                log_security_event("second_host_request", {"room": self.room_code, "name": clean_name})
                return False, "", ERROR_MESSAGES["host_exists"]

            participant = Participant(name=clean_name, is_host=True, status=AdmissionStatus.ADMITTED)
            self._host_id = participant.participant_id
            self._host_token = secrets.token_urlsafe(32)
        else:
            participant = Participant(name=clean_name)

        self._roster[participant.participant_id] = participant
        log_room_event("join_request", self.room_code,
                       f"name={clean_name} status={participant.status.value} host={participant.is_host}")
        return True, participant.participant_id, ""

    def _authorize(self, host_token: str, action: str, participant_id: str) -> bool:
        if self.is_host_token(host_token):
            return True
        log_security_event("unauthorized_host_action", {
            "room": self.room_code,
            "action": action,
            "participant_id": participant_id
        })
        return False

    def admit(self, participant_id: str, host_token: str) -> bool:
        """
        Move a pending participant to admitted

        Returns:
            True if the participant was admitted; False (no change) for a
            bad token, an unknown id or an already admitted participant
        """
        if not self._authorize(host_token, "admit", participant_id):
            return False

        participant = self._roster.get(participant_id)
        if participant is None or participant.is_admitted:
            logger.info(f"Admit ignored for {participant_id} in {mask_room_code(self.room_code)}")
            return False

        participant.status = AdmissionStatus.ADMITTED
        log_room_event("admitted", self.room_code, f"name={participant.name}")
        return True

    def reject(self, participant_id: str, host_token: str) -> bool:
        """
        Remove a pending participant from the roster

        Returns:
            True if the participant was removed; False (no change) for a
            bad token, an unknown id or a participant who is not pending
        """
        if not self._authorize(host_token, "reject", participant_id):
            return False

        participant = self._roster.get(participant_id)
        if participant is None or participant.status != AdmissionStatus.PENDING:
            logger.info(f"Reject ignored for {participant_id} in {mask_room_code(self.room_code)}")
            return False

        del self._roster[participant_id]
        log_room_event("rejected", self.room_code, f"name={participant.name}")
        return True

    def leave(self, participant_id: str) -> Optional[Participant]:
        """
        Remove a non-host participant who is leaving the room

        Returns:
            The removed participant, or None if not found or the host
        """
        participant = self._roster.get(participant_id)
        if participant is None or participant.is_host:
            return None

        del self._roster[participant_id]
        log_room_event("left", self.room_code, f"name={participant.name}")
        return participant

    def list_roster(self, include_pending: bool = True) -> Dict[str, List[Participant]]:
        """
        Enumerate the roster, admitted participants first

        Args:
            include_pending: False for non-host viewers, who never see pending joiners

        Returns:
            Dictionary with "admitted" and "pending" lists in join order
        """
        admitted = [p for p in self._roster.values() if p.is_admitted]
        pending = []
        if include_pending:
            pending = [p for p in self._roster.values() if p.status == AdmissionStatus.PENDING]
        return {"admitted": admitted, "pending": pending}
