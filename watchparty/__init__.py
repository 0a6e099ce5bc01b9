"""
Watch Party room access & messaging-integrity core
Sanitization, validation, room codes, rate limiting and admission control
"""

from .models import Participant, AdmissionStatus, ChatMessage
from .sanitizer import sanitize
from .validators import (
    validate_username,
    validate_message,
    validate_url,
    validate_room_code,
    validate_json_payload
)
from .room_codes import generate_room_code, EntropyUnavailableError
from .rate_limiter import RateLimiter
from .admission import AdmissionController
from .chat import ChatChannel
from .session import RoomSession
from .room_manager import RoomManager
from .message_handler import MessageHandler
from .constants import *
from .logger import (
    get_logger,
    log_security_event,
    log_connection_event,
    log_message_event,
    log_room_event,
    log_websocket_event,
    log_system_event,
    mask_room_code
)

__all__ = [
    'Participant',
    'AdmissionStatus',
    'ChatMessage',
    'sanitize',
    'validate_username',
    'validate_message',
    'validate_url',
    'validate_room_code',
    'validate_json_payload',
    'generate_room_code',
    'EntropyUnavailableError',
    'RateLimiter',
    'AdmissionController',
    'ChatChannel',
    'RoomSession',
    'RoomManager',
    'MessageHandler',
    'get_logger',
    'log_security_event',
    'log_connection_event',
    'log_message_event',
    'log_room_event',
    'log_websocket_event',
    'log_system_event',
    'mask_room_code'
]
