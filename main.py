"""
FastAPI Watch Party Room Server
WebSocket surface over the room access & messaging-integrity core
"""

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import json
import asyncio
import time
from typing import Any, Dict
import uvicorn

from watchparty import (
    RoomManager,
    MessageHandler,
    EntropyUnavailableError,
    validate_json_payload,
    get_logger,
    log_security_event,
    log_message_event,
    log_websocket_event,
    log_system_event,
    mask_room_code,
    CORS_ORIGINS,
    CORS_ALLOW_CREDENTIALS,
    ERROR_MESSAGES,
    MAX_MESSAGE_SIZE_BYTES,
    ROOM_IDLE_TIMEOUT_SECONDS,
    HOST,
    PORT
)

# Global instances
room_manager = RoomManager()
message_handler = MessageHandler()
logger = get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("Watch Party Room Server starting up...")
    
    cleanup_task = asyncio.create_task(background_cleanup())
    
    yield
    
    cleanup_task.cancel()
    logger.info("Watch Party Room Server shutting down...")

app = FastAPI(
    title="Watch Party Room Server",
    description="Room admission, secure room codes and rate-limited chat for watch parties",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,  # Restrict in production
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

async def close_idle_rooms(timeout_seconds: int = ROOM_IDLE_TIMEOUT_SECONDS) -> int:
    """Close idle rooms, telling their remaining clients before hanging up"""
    closed = await room_manager.cleanup_idle_rooms(timeout_seconds)
    for room_code, connections in closed.items():
        await message_handler.close_connections(connections, "room_closed", room_code=room_code, reason="idle")
    return len(closed)

async def background_cleanup():
    """Background task closing idle rooms"""
    while True:
        try:
            await close_idle_rooms()
            await asyncio.sleep(60)
            
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Background cleanup error: {e}")

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        room_stats = await room_manager.get_room_stats()
        
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "rooms": room_stats
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")

@app.get("/stats")
async def get_stats():
    """Get server statistics"""
    try:
        room_stats = await room_manager.get_room_stats()
        
        return {
            "server": "Watch Party Room Server",
            "timestamp": time.time(),
            "rooms": room_stats
        }
    except Exception as e:
        logger.error(f"Stats endpoint failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to get stats")

async def handle_handshake(websocket: WebSocket, payload: Dict[str, Any], client_ip: str):
    """
    Create or join a room from the first frame
    
    Returns:
        Tuple of (room_code, participant_id, host_token), or None if the
        socket was closed
    """
    username = payload.get("username", "")
    
    if payload.get("type") == "create":
        try:
            success, session, participant_id, error_msg = await room_manager.create_room(username)
        except EntropyUnavailableError as e:
            log_system_event("room_code_failure", str(e), level="error")
            await message_handler.send_error_message(ERROR_MESSAGES["connection_failed"], websocket)
            await websocket.close(code=1011, reason="Room code unavailable")
            return None
        
        if not success:
            await message_handler.send_error_message(error_msg, websocket)
            await websocket.close(code=1008, reason="Create failed")
            return None
        
        room_code = session.room_code
        await room_manager.register_connection(room_code, participant_id, websocket, client_ip)
        await message_handler.send_created(room_code, participant_id, session.host_token, websocket)
        return room_code, participant_id, session.host_token
    
    room_code = str(payload.get("room_code", "")).strip().upper()
    success, participant_id, error_msg = await room_manager.join_room(room_code, username)
    
    if not success:
        await message_handler.send_error_message(error_msg, websocket)
        await websocket.close(code=1008, reason="Join failed")
        return None
    
    await room_manager.register_connection(room_code, participant_id, websocket, client_ip)
    await message_handler.send_pending(room_code, participant_id, websocket)
    
    # Let the host decide
    host_ws = await room_manager.host_connection(room_code)
    participant = await room_manager.get_participant(room_code, participant_id)
    if host_ws is not None and participant is not None:
        await message_handler.send_join_request(participant, host_ws)
    
    return room_code, participant_id, ""

async def handle_chat(websocket: WebSocket, payload: Dict[str, Any], room_code: str, participant_id: str):
    success, error_msg, chat_message = await room_manager.send_message(
        room_code, participant_id, payload.get("message", "")
    )
    
    if not success:
        log_message_event("rejected", participant_id, room_code, "error", error_msg)
        await message_handler.send_error_message(error_msg, websocket)
        return
    
    connections = await room_manager.admitted_connections(room_code)
    recipients = await message_handler.broadcast_message(chat_message, connections, room_code)
    await message_handler.send_ack_message(chat_message.message_id, recipients, websocket)

async def handle_admit(websocket: WebSocket, payload: Dict[str, Any], room_code: str, participant_id: str, host_token: str):
    target_id = str(payload.get("participant_id", ""))
    admitted, notice = await room_manager.admit(room_code, target_id, host_token)
    
    if not admitted:
        error = ERROR_MESSAGES["not_host"] if not host_token else ERROR_MESSAGES["participant_not_found"]
        await message_handler.send_error_message(error, websocket)
        return
    
    target_ws = await room_manager.get_connection(room_code, target_id)
    if target_ws is not None:
        history, video_url = await room_manager.get_history(room_code)
        await message_handler.send_admitted(history, video_url, target_ws)
    
    # The admitted participant already has the notice in its history
    connections = [
        (pid, ws) for pid, ws in await room_manager.admitted_connections(room_code) if pid != target_id
    ]
    await message_handler.broadcast_message(notice, connections, room_code)
    await message_handler.send_roster(await room_manager.get_roster(room_code, participant_id), websocket)

async def handle_reject(websocket: WebSocket, payload: Dict[str, Any], room_code: str, participant_id: str, host_token: str):
    target_id = str(payload.get("participant_id", ""))
    target_ws = await room_manager.get_connection(room_code, target_id)
    
    if not await room_manager.reject(room_code, target_id, host_token):
        error = ERROR_MESSAGES["not_host"] if not host_token else ERROR_MESSAGES["participant_not_found"]
        await message_handler.send_error_message(error, websocket)
        return
    
    await room_manager.unregister_connection(room_code, target_id)
    if target_ws is not None:
        await message_handler.close_connections([(target_id, target_ws)], "rejected", room_code=room_code)
    await message_handler.send_roster(await room_manager.get_roster(room_code, participant_id), websocket)

async def handle_set_video(websocket: WebSocket, payload: Dict[str, Any], room_code: str, host_token: str):
    url = payload.get("url", "")
    success, error_msg = await room_manager.set_video_url(room_code, url, host_token)
    
    if not success:
        await message_handler.send_error_message(error_msg, websocket)
        return
    
    connections = await room_manager.admitted_connections(room_code)
    await message_handler.broadcast_frame(connections, "video", url=url.strip())

async def handle_departure(room_code: str, participant_id: str, host_token: str):
    """Remove a participant whose socket is going away; the host takes the room down"""
    if host_token:
        guests = [(pid, ws) for pid, ws in await room_manager.close_room(room_code) if pid != participant_id]
        await message_handler.close_connections(guests, "room_closed", room_code=room_code, reason="host_left")
        return
    
    await room_manager.unregister_connection(room_code, participant_id)
    _, notice = await room_manager.leave(room_code, participant_id)
    if notice is not None:
        connections = await room_manager.admitted_connections(room_code)
        await message_handler.broadcast_message(notice, connections, room_code)

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket endpoint: handshake, message loop, cleanup"""
    connection_id = f"ws_{id(websocket)}"
    
    await websocket.accept()
    
    client_ip = websocket.client.host if websocket.client else "unknown"
    log_websocket_event("connection_accepted", connection_id, f"client_ip={client_ip}")
    
    room_code = participant_id = host_token = None
    
    try:
        # Phase 1: Handshake - create or join a room
        handshake_data = await websocket.receive_text()
        
        try:
            payload = json.loads(handshake_data)
        except json.JSONDecodeError as e:
            log_websocket_event("handshake_error", connection_id, f"JSON decode error: {str(e)}")
            await message_handler.send_error_message(ERROR_MESSAGES["invalid_json"], websocket)
            await websocket.close(code=1003, reason="Invalid JSON")
            return
        
        is_valid, error_msg = validate_json_payload(payload)
        if not is_valid or payload.get("type") not in ("create", "join"):
            await message_handler.send_error_message(
                error_msg or "First message must be a create or join request",
                websocket
            )
            await websocket.close(code=1002, reason="Protocol error")
            return
        
        joined = await handle_handshake(websocket, payload, client_ip)
        if joined is None:
            return
        room_code, participant_id, host_token = joined
        
        # Phase 2: Message Loop
        while True:
            try:
                message_data = await websocket.receive_text()
                
                frame_size = len(message_data.encode("utf-8"))
                if frame_size > MAX_MESSAGE_SIZE_BYTES:
                    log_security_event("oversized_frame", {"participant_id": participant_id, "size": frame_size})
                    await message_handler.send_error_message(ERROR_MESSAGES["invalid_message"], websocket)
                    continue
                
                if await room_manager.get_participant(room_code, participant_id) is None:
                    # Rejected, or the room was closed under us
                    await message_handler.send_error_message(ERROR_MESSAGES["participant_not_found"], websocket)
                    break
                
                try:
                    payload = json.loads(message_data)
                except json.JSONDecodeError:
                    await message_handler.send_error_message(ERROR_MESSAGES["invalid_json"], websocket)
                    continue
                
                is_valid, error_msg = validate_json_payload(payload)
                if not is_valid:
                    await message_handler.send_error_message(error_msg, websocket)
                    continue
                
                message_type = payload.get("type")
                
                if message_type == "message":
                    await handle_chat(websocket, payload, room_code, participant_id)
                
                elif message_type == "admit":
                    await handle_admit(websocket, payload, room_code, participant_id, host_token)
                
                elif message_type == "reject":
                    await handle_reject(websocket, payload, room_code, participant_id, host_token)
                
                elif message_type == "set_video":
                    await handle_set_video(websocket, payload, room_code, host_token)
                
                elif message_type == "roster":
                    roster = await room_manager.get_roster(room_code, participant_id)
                    await message_handler.send_roster(roster, websocket)
                
                elif message_type == "heartbeat":
                    log_websocket_event("heartbeat_received", connection_id, f"from {participant_id}")
                    await message_handler.send_frame(websocket, "heartbeat", status="received")
                
                elif message_type == "leave":
                    await message_handler.send_frame(websocket, "left", room_code=room_code)
                    break
                
                else:
                    await message_handler.send_error_message(
                        f"Unexpected message type: {message_type}",
                        websocket
                    )
                
            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected for {participant_id} in {mask_room_code(room_code)}")
                break
            except RuntimeError as e:
                # Socket closed from the server side
                logger.info(f"WebSocket no longer usable for {participant_id}: {e}")
                break
            except Exception as e:
                logger.error(f"Message loop error for {participant_id}: {e}")
                log_security_event("message_loop_error", {
                    "participant_id": participant_id,
                    "room": room_code,
                    "error": str(e)
                })
                continue
    
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected during handshake for {client_ip}")
    
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        log_security_event("websocket_error", {
            "client_ip": client_ip,
            "error": str(e)
        })
    
    finally:
        # Phase 3: Cleanup
        if room_code and participant_id:
            await handle_departure(room_code, participant_id, host_token)
            logger.info(f"Cleanup completed for {participant_id} in {mask_room_code(room_code)}")

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for security"""
    logger.error(f"Unhandled exception: {exc}")
    log_security_event("unhandled_exception", {
        "path": str(request.url),
        "error": str(exc)
    })
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

if __name__ == "__main__":
    logger.info("Starting Watch Party Room Server...")
    
    uvicorn.run(
        "main:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level="info",
        access_log=True,
        ws_ping_interval=20,
        ws_ping_timeout=10,
    )
