"""
Data models for the Watch Party room server
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any
import uuid

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class AdmissionStatus(str, Enum):
    """Roster state of a participant; rejected participants are removed"""
    PENDING = "pending"
    ADMITTED = "admitted"

@dataclass
class Participant:
    """A room member; name is sanitized and validated before construction"""
    name: str
    is_host: bool = False
    status: AdmissionStatus = AdmissionStatus.PENDING
    participant_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    joined_at: datetime = field(default_factory=utcnow)
    
    @property
    def is_admitted(self) -> bool:
        return self.status == AdmissionStatus.ADMITTED
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "participant_id": self.participant_id,
            "name": self.name,
            "is_host": self.is_host,
            "status": self.status.value,
            "joined_at": self.joined_at.isoformat()
        }

@dataclass(frozen=True)
class ChatMessage:
    """Immutable chat log entry; text is sanitized before construction"""
    username: str
    message: str
    is_system: bool = False
    timestamp: datetime = field(default_factory=utcnow)
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "message_id": self.message_id,
            "username": self.username,
            "message": self.message,
            "is_system": self.is_system,
            "timestamp": self.timestamp.isoformat()
        }
