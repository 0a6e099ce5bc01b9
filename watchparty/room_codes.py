"""
Cryptographically secure room code issuance
"""

import secrets
from typing import Callable
from .constants import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH
from .logger import log_system_event

class EntropyUnavailableError(RuntimeError):
    """Raised when the secure random source cannot supply bytes"""

def generate_room_code(random_bytes: Callable[[int], bytes] = secrets.token_bytes) -> str:
    """
    Generate an unguessable 8-character room code
    
    Each byte from the secure source is mapped with byte % 36. Since
    256 % 36 != 0 the first four symbols are marginally more likely; the
    code is still infeasible to enumerate.
    
    Args:
        random_bytes: Secure byte source, called with the number of bytes wanted
        
    Returns:
        Room code over A-Z and 0-9
        
    Raises:
        EntropyUnavailableError: if the source fails or returns too few bytes
    """
    try:
        data = random_bytes(ROOM_CODE_LENGTH)
    except (OSError, NotImplementedError) as e:
        log_system_event("entropy_unavailable", str(e), level="error")
        raise EntropyUnavailableError("Secure random source unavailable") from e
    
    if data is None or len(data) < ROOM_CODE_LENGTH:
        log_system_event("entropy_unavailable", "short read from random source", level="error")
        raise EntropyUnavailableError("Secure random source returned too few bytes")
    
    alphabet_size = len(ROOM_CODE_ALPHABET)
    return ''.join(ROOM_CODE_ALPHABET[byte % alphabet_size] for byte in data[:ROOM_CODE_LENGTH])
