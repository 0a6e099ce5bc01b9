"""
Outbound WebSocket frames for the Watch Party room server
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple
from .models import ChatMessage, Participant
from .logger import get_logger, log_security_event, mask_room_code

logger = get_logger()

def _now() -> int:
    return int(datetime.now(timezone.utc).timestamp())

class MessageHandler:
    """Serializes and sends server frames; send failures never propagate"""

    async def send_frame(self, websocket: Any, frame_type: str, **fields) -> bool:
        """
        Send one JSON frame

        Args:
            websocket: Client WebSocket connection
            frame_type: Value of the "type" field
            **fields: Remaining frame fields

        Returns:
            True if the frame was written
        """
        try:
            await websocket.send_text(json.dumps({"type": frame_type, **fields, "timestamp": _now()}))
            return True
        except Exception as e:
            logger.error(f"Failed to send {frame_type} frame: {e}")
            return False

    async def broadcast_message(self, message: ChatMessage, connections: List[Tuple[str, Any]], room_code: str) -> int:
        """
        Deliver a chat message to every admitted connection (sender included)

        Args:
            message: Message to broadcast
            connections: List of (participant_id, websocket)
            room_code: Room code, for logging

        Returns:
            Number of successful recipients
        """
        successful_sends = 0
        payload = json.dumps({"type": "message", **message.to_dict()})

        for participant_id, websocket in connections:
            try:
                await websocket.send_text(payload)
                successful_sends += 1
            except Exception as e:
                # Log send failure but continue with other clients
                logger.error(f"Failed to send message to {participant_id}: {e}")
                log_security_event("message_send_failed", {
                    "room": room_code,
                    "recipient": participant_id,
                    "message_id": message.message_id,
                    "error": str(e)
                })

        logger.info(f"Message broadcast: {message.message_id} to {successful_sends} recipients")
        return successful_sends

    async def broadcast_frame(self, connections: List[Tuple[str, Any]], frame_type: str, **fields) -> int:
        sent = 0
        for _, websocket in connections:
            if await self.send_frame(websocket, frame_type, **fields):
                sent += 1
        return sent

    async def send_error_message(self, error_message: str, websocket: Any):
        await self.send_frame(websocket, "error", message=error_message)
        logger.info(f"Error message sent: {error_message}")

    async def send_ack_message(self, message_id: str, recipients: int, websocket: Any):
        await self.send_frame(websocket, "ack", message_id=message_id, recipients=recipients)

    async def send_created(self, room_code: str, participant_id: str, host_token: str, websocket: Any):
        """
        Confirm room creation to the host

        The host token is only ever sent on this frame, to the host.
        """
        await self.send_frame(
            websocket, "created",
            room_code=room_code,
            participant_id=participant_id,
            host_token=host_token
        )
        logger.info(f"Room creation confirmed: {mask_room_code(room_code)}")

    async def send_pending(self, room_code: str, participant_id: str, websocket: Any):
        await self.send_frame(websocket, "pending", room_code=room_code, participant_id=participant_id)

    async def send_join_request(self, participant: Participant, websocket: Any):
        """Tell the host someone is waiting to be admitted"""
        await self.send_frame(websocket, "join_request", participant=participant.to_dict())

    async def send_roster(self, roster: Dict[str, List[Dict[str, Any]]], websocket: Any):
        await self.send_frame(websocket, "roster", **roster)

    async def send_admitted(self, messages: List[ChatMessage], video_url: str, websocket: Any):
        """Catch up a newly admitted participant"""
        await self.send_frame(
            websocket, "admitted",
            history=[m.to_dict() for m in messages],
            video_url=video_url
        )

    async def close_connections(self, connections: List[Tuple[str, Any]], frame_type: str, **fields) -> int:
        """
        Send a final frame to each connection, then close it

        Args:
            connections: List of (participant_id, websocket)
            frame_type: Value of the "type" field of the final frame
            **fields: Remaining frame fields

        Returns:
            Number of connections closed cleanly
        """
        closed = 0
        for participant_id, websocket in connections:
            await self.send_frame(websocket, frame_type, **fields)
            try:
                await websocket.close(code=1000)
                closed += 1
            except Exception as e:
                # Already closed by the peer
                logger.warning(f"Failed to close connection of {participant_id}: {e}")
        return closed
