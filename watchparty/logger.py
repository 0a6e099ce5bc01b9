"""
Secure logging configuration for the Watch Party room server
"""

import logging
import re
import sys
from typing import Optional
from .constants import LOG_LEVEL

_secret_values = re.compile(r"(password|token)=[^\s|,]+")
# Detail keys whose values are room codes
_room_code_keys = ("room", "room_code")

class SecureFormatter(logging.Formatter):
    """Custom formatter that masks sensitive data"""
    
    def format(self, record):
        message = super().format(record)
        # Host tokens and passwords must never reach the log stream
        return _secret_values.sub(r"\1=***", message)

def mask_room_code(room_code: Optional[str]) -> str:
    """Room code as it may appear in logs: first two characters, the rest starred"""
    if not room_code:
        return ""
    code = str(room_code)
    return code[:2] + "*" * (len(code) - 2)

def get_logger(name: str = "watchparty") -> logging.Logger:
    """
    Get a secure logger instance with proper formatting
    
    Args:
        name: Logger name
        
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.DEBUG)
        
        formatter = SecureFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        
        logger.addHandler(handler)
        logger.setLevel(LOG_LEVEL)
        
        # Prevent propagation to root logger
        logger.propagate = False
    
    return logger

def log_security_event(event_type: str, details: dict, logger: Optional[logging.Logger] = None):
    """
    Log security-related events with structured data
    
    Args:
        event_type: Type of security event
        details: Event details
        logger: Logger instance (optional)
    """
    if logger is None:
        logger = get_logger()
    
    details = {
        key: mask_room_code(value) if key in _room_code_keys else value
        for key, value in details.items()
    }
    logger.warning(f"SECURITY_EVENT: {event_type} | {details}")

def log_connection_event(username: str, room_code: str, action: str, ip_address: str = "unknown"):
    """
    Log connection-related events for monitoring
    
    Args:
        username: Participant display name
        room_code: Room code
        action: Action (connect/disconnect/error)
        ip_address: Client IP address
    """
    get_logger().info(f"CONNECTION_EVENT: {action} | user={username} | room={mask_room_code(room_code)} | ip={ip_address}")

def log_message_event(message_id: str, username: str, room_code: str, action: str, details: str = ""):
    """
    Log chat message events for debugging
    
    Args:
        message_id: Unique message identifier
        username: Sender name
        room_code: Room code
        action: Action (post/broadcast/reject)
        details: Additional details
    """
    get_logger().info(f"MESSAGE_EVENT: {action} | id={message_id[:8]}... | user={username} | room={mask_room_code(room_code)} | {details}")

def log_room_event(event_type: str, room_code: str, details: str = ""):
    """
    Log room lifecycle and roster events
    
    Args:
        event_type: Type of room event (created/join_request/admitted/...)
        room_code: Room code
        details: Additional details
    """
    get_logger().info(f"ROOM_EVENT: {event_type} | room={mask_room_code(room_code)} | {details}")

def log_websocket_event(event_type: str, connection_id: str, details: str = ""):
    """
    Log WebSocket protocol events
    
    Args:
        event_type: Type of WebSocket event
        connection_id: Connection identifier
        details: Additional details
    """
    get_logger().debug(f"WEBSOCKET_EVENT: {event_type} | conn={connection_id} | {details}")

def log_system_event(event_type: str, details: str, level: str = "info"):
    """
    Log system-level events
    
    Args:
        event_type: Type of system event
        details: Event details
        level: Log level (info/warning/error)
    """
    logger = get_logger()
    log_message = f"SYSTEM_EVENT: {event_type} | {details}"
    
    if level == "warning":
        logger.warning(log_message)
    elif level == "error":
        logger.error(log_message)
    else:
        logger.info(log_message)
