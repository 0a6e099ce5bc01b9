import json
import logging

from watchparty import MessageHandler, ChatMessage
from watchparty.logger import (
    SecureFormatter,
    get_logger,
    log_room_event,
    log_security_event,
    mask_room_code
)

class RecordingSocket:
    def __init__(self):
        self.frames = []
        self.close_code = None

    async def send_text(self, text):
        self.frames.append(json.loads(text))

    async def close(self, code=1000):
        self.close_code = code

class BrokenSocket:
    async def send_text(self, text):
        raise ConnectionError("gone")

    async def close(self, code=1000):
        raise RuntimeError("already closed")

async def test_broadcast_skips_broken_sockets():
    handler = MessageHandler()
    good = RecordingSocket()
    message = ChatMessage(username="Bob", message="hi")

    sent = await handler.broadcast_message(message, [("a", BrokenSocket()), ("b", good)], "ABCD1234")
    assert sent == 1
    assert good.frames[0]["type"] == "message"
    assert good.frames[0]["message_id"] == message.message_id

async def test_send_frame_reports_failure():
    handler = MessageHandler()
    assert await handler.send_frame(BrokenSocket(), "heartbeat") is False

    socket = RecordingSocket()
    assert await handler.send_frame(socket, "heartbeat", status="received") is True
    assert socket.frames[0]["status"] == "received"
    assert "timestamp" in socket.frames[0]

async def test_broadcast_frame_counts_deliveries():
    handler = MessageHandler()
    sockets = [("a", RecordingSocket()), ("b", BrokenSocket()), ("c", RecordingSocket())]
    assert await handler.broadcast_frame(sockets, "video", url="https://x.com") == 2

def test_secure_formatter_masks_tokens():
    record = logging.LogRecord("watchparty", logging.INFO, __file__, 1, "host_token=abc password=pw", None, None)
    formatted = SecureFormatter("%(message)s").format(record)
    assert "token=***" in formatted
    assert "password=***" in formatted
    assert "abc" not in formatted and "pw" not in formatted

def test_get_logger_is_configured_once():
    logger = get_logger("watchparty.test")
    handlers = list(logger.handlers)
    assert get_logger("watchparty.test").handlers == handlers
    assert logger.propagate is False

async def test_close_connections_sends_final_frame():
    handler = MessageHandler()
    first, second = RecordingSocket(), RecordingSocket()

    closed = await handler.close_connections(
        [("a", first), ("b", BrokenSocket()), ("c", second)],
        "room_closed", room_code="ABCD1234", reason="idle"
    )
    assert closed == 2
    for socket in (first, second):
        assert socket.frames[-1]["type"] == "room_closed"
        assert socket.frames[-1]["reason"] == "idle"
        assert socket.close_code == 1000

class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())

def test_mask_room_code():
    assert mask_room_code("ABCD1234") == "AB******"
    assert mask_room_code("") == ""
    assert mask_room_code(None) == ""

def test_room_codes_are_masked_in_logs():
    logger = get_logger()
    handler = ListHandler()
    logger.addHandler(handler)
    try:
        log_room_event("created", "ABCD1234", "host=Alice")
        log_security_event("unknown_room_code", {"room_code": "ABCD1234"})
        log_security_event("room_full", {"room": "ABCD1234", "participants": 50})
    finally:
        logger.removeHandler(handler)

    assert len(handler.messages) == 3
    assert all("ABCD1234" not in message for message in handler.messages)
    assert "AB******" in handler.messages[0]
    assert "participants" in handler.messages[2]
