"""
Security-focused input validation for the Watch Party room server
"""

import re
from typing import Tuple, Dict, Any
from urllib.parse import urlsplit
from .constants import (
    USERNAME_PATTERN,
    ROOM_CODE_PATTERN,
    MAX_USERNAME_LENGTH,
    MIN_USERNAME_LENGTH,
    MAX_MESSAGE_LENGTH,
    MIN_MESSAGE_LENGTH,
    ALLOWED_URL_SCHEMES,
    URL_FORBIDDEN_PATTERN,
    ERROR_MESSAGES
)
from .sanitizer import sanitize
from .logger import log_security_event

_url_forbidden_re = re.compile(URL_FORBIDDEN_PATTERN)

# Frame type -> required fields
REQUIRED_FIELDS = {
    'create': ['username'],
    'join': ['username', 'room_code'],
    'message': ['message'],
    'admit': ['participant_id'],
    'reject': ['participant_id'],
    'set_video': ['url'],
    'roster': [],
    'heartbeat': [],
    'leave': [],
}

def validate_username(username: str) -> bool:
    """
    Check a display name after sanitization
    
    Args:
        username: Display name (raw or already sanitized)
        
    Returns:
        True if the name is 1-20 letters, digits, spaces, hyphens or underscores
    """
    clean = sanitize(username)
    
    if len(clean) < MIN_USERNAME_LENGTH or len(clean) > MAX_USERNAME_LENGTH:
        log_security_event("invalid_username_length", {"length": len(clean)})
        return False
    
    if not re.fullmatch(USERNAME_PATTERN, clean):
        log_security_event("invalid_username_format", {"username": clean})
        return False
    
    return True

def validate_message(message: str) -> bool:
    """
    Check chat text length after sanitization
    
    Args:
        message: Message content
        
    Returns:
        True if the sanitized text is 1-500 characters
    """
    clean = sanitize(message)
    
    if len(clean) < MIN_MESSAGE_LENGTH or len(clean) > MAX_MESSAGE_LENGTH:
        log_security_event("invalid_message_length", {"length": len(clean)})
        return False
    
    return True

def validate_url(url: str) -> bool:
    """
    Accept only absolute http(s) URLs
    
    Args:
        url: Candidate video URL
        
    Returns:
        True if the URL parses, uses http or https with a host and a
        valid port, and holds no whitespace, control characters or <>"
    """
    if not isinstance(url, str):
        return False
    
    url = url.strip()
    if _url_forbidden_re.search(url):
        log_security_event("rejected_url", {"reason": "forbidden_character"})
        return False

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # raises ValueError when out of range
        parts.port
    except ValueError:
        log_security_event("malformed_url", {"url": url[:100]})
        return False
    
    if parts.scheme.lower() not in ALLOWED_URL_SCHEMES or not hostname:
        log_security_event("rejected_url", {"scheme": parts.scheme})
        return False
    
    return True

def validate_room_code(room_code: str) -> bool:
    """Check the shape of a room code (8 characters, A-Z and 0-9)"""
    if not isinstance(room_code, str):
        return False
    return re.fullmatch(ROOM_CODE_PATTERN, room_code) is not None

def validate_json_payload(payload: Dict[str, Any]) -> Tuple[bool, str]:
    """
    Validate WebSocket frame structure
    
    Args:
        payload: Dictionary payload from WebSocket
        
    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(payload, dict):
        log_security_event("invalid_payload_type", {"payload_type": type(payload).__name__})
        return False, ERROR_MESSAGES["invalid_json"]
    
    if 'type' not in payload:
        log_security_event("missing_message_type", {"keys": list(payload.keys())})
        return False, ERROR_MESSAGES["invalid_json"]
    
    message_type = payload.get('type')
    
    if message_type not in REQUIRED_FIELDS:
        log_security_event("unknown_message_type", {"message_type": str(message_type)[:50]})
        return False, f"Unknown message type: {str(message_type)[:50]}"
    
    for field in REQUIRED_FIELDS[message_type]:
        if field not in payload:
            log_security_event("missing_required_field", {
                "message_type": message_type,
                "missing_field": field
            })
            return False, ERROR_MESSAGES["invalid_json"]
    
    return True, ""
