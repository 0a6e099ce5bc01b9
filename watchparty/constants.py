"""
Security-focused constants for the Watch Party room server
"""

import os

# Username and message limits
MAX_USERNAME_LENGTH = 20
MIN_USERNAME_LENGTH = 1
MAX_MESSAGE_LENGTH = 500
MIN_MESSAGE_LENGTH = 1

# Room codes
ROOM_CODE_LENGTH = 8
ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ROOM_CODE_MAX_ATTEMPTS = 5

# Rate limiting (per sender, sliding window)
RATE_LIMIT_MAX_MESSAGES = 10
RATE_LIMIT_WINDOW_MS = 60000

# Room limits
MAX_PARTICIPANTS_PER_ROOM = 50
MAX_ROOMS_TOTAL = 1000
ROOM_IDLE_TIMEOUT_SECONDS = 3600
CHAT_HISTORY_LIMIT = 200

# Regex patterns for validation (security-focused)
USERNAME_PATTERN = r'^[A-Za-z0-9 _-]{1,20}$'
ROOM_CODE_PATTERN = r'^[A-Z0-9]{8}$'
CONTROL_CHARACTER_PATTERN = r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]'
SCRIPT_BLOCK_PATTERN = r'<(script|style)\b[^>]*>.*?</\1\s*>'
MARKUP_TAG_PATTERN = r'<[^>]*>'
UNFINISHED_TAG_PATTERN = r'<[A-Za-z/!?][^>]*\Z'
URL_FORBIDDEN_PATTERN = r'[\s\x00-\x1F\x7F<>"]'
ALLOWED_URL_SCHEMES = ("http", "https")

SYSTEM_SENDER = "System"

# WebSocket settings
MAX_MESSAGE_SIZE_BYTES = 10240

# Server settings
HOST = os.getenv("WATCHPARTY_HOST", "0.0.0.0")
PORT = int(os.getenv("WATCHPARTY_PORT", "8000"))

# Logging levels
LOG_LEVEL = os.getenv("WATCHPARTY_LOG_LEVEL", "INFO").upper()

# Security headers
CORS_ORIGINS = ["*"]
CORS_ALLOW_CREDENTIALS = False

# Error messages
ERROR_MESSAGES = {
    "invalid_username": "Name must be 1-20 letters, digits, spaces, hyphens or underscores",
    "invalid_message": "Message must be 1-500 characters",
    "invalid_url": "Video URL must be an absolute http or https link",
    "invalid_room_code": "Room code must be 8 letters or digits",
    "room_not_found": "Room not found",
    "room_full": "Room is full, please try another",
    "server_full": "Server at maximum room capacity",
    "host_exists": "Room already has a host",
    "not_host": "Only the host can do that",
    "not_admitted": "Wait for the host to admit you",
    "participant_not_found": "Participant not found",
    "rate_limit": "Rate limit exceeded, please slow down",
    "invalid_json": "Invalid JSON format",
    "connection_failed": "Connection failed, please try again"
}
