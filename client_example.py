"""
Watch Party WebSocket Client Example for Testing
Drives room creation, host admission and rate-limited chat
"""

import asyncio
import json
import websockets
from typing import Optional, Dict, Any
import argparse
import sys

class WatchPartyClient:
    """WebSocket client for one watch party participant"""
    
    def __init__(self, username: str, server_url: str = "ws://localhost:8000/ws"):
        self.username = username
        self.server_url = server_url
        self.websocket = None
        self.room_code: Optional[str] = None
        self.participant_id: Optional[str] = None
        self.is_host = False
        self.running = False
        self.admitted = asyncio.Event()
        self.join_requests: asyncio.Queue = asyncio.Queue()
        
    async def connect(self) -> bool:
        """Connect to WebSocket server"""
        try:
            self.websocket = await websockets.connect(self.server_url)
            print(f"✅ Connected to {self.server_url}")
            return True
        except Exception as e:
            print(f"❌ Connection failed: {e}")
            return False
    
    async def _handshake(self, request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        await self.websocket.send(json.dumps(request))
        data = json.loads(await self.websocket.recv())
        if data.get("type") == "error":
            print(f"❌ {request['type'].capitalize()} failed: {data.get('message')}")
            return None
        return data
    
    async def create_room(self) -> bool:
        """Create a room and become its host"""
        if not self.websocket:
            return False
        
        data = await self._handshake({"type": "create", "username": self.username})
        if data is None or data.get("type") != "created":
            return False
        
        self.room_code = data["room_code"]
        self.participant_id = data["participant_id"]
        self.is_host = True
        self.admitted.set()
        print(f"🎬 Room created: {self.room_code} (you are the host)")
        return True
    
    async def join_room(self, room_code: str) -> bool:
        """Ask to join a room; admission is up to the host"""
        if not self.websocket:
            return False
        
        data = await self._handshake({"type": "join", "username": self.username, "room_code": room_code})
        if data is None or data.get("type") != "pending":
            return False
        
        self.room_code = data["room_code"]
        self.participant_id = data["participant_id"]
        print(f"⏳ Waiting for the host to admit you to {self.room_code}")
        return True
    
    async def send(self, frame: Dict[str, Any]) -> bool:
        if not self.websocket:
            return False
        try:
            await self.websocket.send(json.dumps(frame))
            return True
        except websockets.exceptions.ConnectionClosed as e:
            print(f"❌ Send failed: {e}")
            return False
    
    async def send_message(self, message: str) -> bool:
        return await self.send({"type": "message", "message": message})
    
    async def admit(self, participant_id: str) -> bool:
        return await self.send({"type": "admit", "participant_id": participant_id})
    
    async def reject(self, participant_id: str) -> bool:
        return await self.send({"type": "reject", "participant_id": participant_id})
    
    async def set_video(self, url: str) -> bool:
        return await self.send({"type": "set_video", "url": url})
    
    async def request_roster(self) -> bool:
        return await self.send({"type": "roster"})
    
    async def listen_for_messages(self):
        """Listen for incoming frames"""
        if not self.websocket:
            return
        
        while self.running:
            try:
                message = await asyncio.wait_for(self.websocket.recv(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except websockets.exceptions.ConnectionClosed:
                print("🔌 Connection closed by server")
                break
            
            data = json.loads(message)
            msg_type = data.get("type")
            
            if msg_type == "message":
                prefix = "📢" if data.get("is_system") else "📨"
                print(f"{prefix} {data.get('username', 'unknown')}: {data.get('message', '')}")
            
            elif msg_type == "ack":
                print(f"✅ Message delivered to {data.get('recipients', 0)} recipients")
            
            elif msg_type == "join_request":
                participant = data.get("participant", {})
                print(f"🙋 {participant.get('name')} wants to join (id {participant.get('participant_id')})")
                await self.join_requests.put(participant)
            
            elif msg_type == "admitted":
                self.admitted.set()
                print(f"✅ Admitted! {len(data.get('history', []))} messages in history")
                for entry in data.get("history", []):
                    print(f"   {entry.get('username')}: {entry.get('message')}")
            
            elif msg_type == "rejected":
                print("🚫 The host declined your request")
                self.running = False
            
            elif msg_type == "roster":
                admitted = [p.get("name") for p in data.get("admitted", [])]
                pending = [p.get("name") for p in data.get("pending", [])]
                print(f"📋 Admitted: {', '.join(admitted) or '-'} | Pending: {', '.join(pending) or '-'}")
            
            elif msg_type == "video":
                print(f"🎞️  Now playing: {data.get('url')}")
            
            elif msg_type == "room_closed":
                if data.get("reason") == "idle":
                    print("🏁 The room was closed after being idle")
                else:
                    print("🏁 The host closed the room")
                self.running = False
            
            elif msg_type == "error":
                print(f"❌ Server error: {data.get('message', 'Unknown error')}")
            
            elif msg_type in ("heartbeat", "left"):
                continue
            
            else:
                print(f"❓ Unknown message type: {msg_type}")
    
    async def disconnect(self):
        """Disconnect from server"""
        self.running = False
        if self.websocket:
            try:
                await self.websocket.close()
                print("🔌 Disconnected from server")
            except websockets.exceptions.WebSocketException:
                pass
    
    async def run_interactive(self, room_code: Optional[str] = None):
        """Run interactive session"""
        if not await self.connect():
            return
        
        joined = await self.join_room(room_code) if room_code else await self.create_room()
        if not joined:
            await self.disconnect()
            return
        
        self.running = True
        listen_task = asyncio.create_task(self.listen_for_messages())
        
        try:
            print("\n🎮 Interactive mode started!")
            print("Commands: /admit ID, /reject ID, /video URL, /roster, /quit, or just type your message")
            print("-" * 50)
            
            while self.running:
                try:
                    user_input = (await asyncio.to_thread(input, f"{self.username}> ")).strip()
                except (KeyboardInterrupt, EOFError):
                    break
                
                if not user_input:
                    continue
                
                command, _, argument = user_input.partition(" ")
                if command == "/quit":
                    break
                elif command == "/admit":
                    await self.admit(argument)
                elif command == "/reject":
                    await self.reject(argument)
                elif command == "/video":
                    await self.set_video(argument)
                elif command == "/roster":
                    await self.request_roster()
                else:
                    await self.send_message(user_input)
                    
        finally:
            self.running = False
            listen_task.cancel()
            await self.disconnect()

async def scenario_admission(server_url: str):
    """Scenario: host admits one guest and rejects another"""
    print("\n🧪 Scenario: Host Admission")
    print("=" * 60)
    
    host = WatchPartyClient("Alice", server_url)
    if not (await host.connect() and await host.create_room()):
        return
    host.running = True
    host_task = asyncio.create_task(host.listen_for_messages())
    
    bob = WatchPartyClient("Bob", server_url)
    mallory = WatchPartyClient("Mallory", server_url)
    await bob.connect()
    await bob.join_room(host.room_code)
    bob.running = True
    bob_task = asyncio.create_task(bob.listen_for_messages())
    
    first = await asyncio.wait_for(host.join_requests.get(), timeout=5)
    await host.admit(first["participant_id"])
    await asyncio.wait_for(bob.admitted.wait(), timeout=5)
    
    await mallory.connect()
    await mallory.join_room(host.room_code)
    second = await asyncio.wait_for(host.join_requests.get(), timeout=5)
    await host.reject(second["participant_id"])
    
    await bob.send_message("Thanks for the invite!")
    await host.set_video("https://example.com/movie.mp4")
    await asyncio.sleep(1)
    
    for client in (mallory, bob, host):
        await client.disconnect()
    for task in (bob_task, host_task):
        task.cancel()
    print("✅ Admission scenario completed")

async def scenario_rate_limit(server_url: str):
    """Scenario: the host floods the chat and gets throttled"""
    print("\n🧪 Scenario: Chat Rate Limit")
    print("=" * 60)
    
    host = WatchPartyClient("Alice", server_url)
    if not (await host.connect() and await host.create_room()):
        return
    host.running = True
    listen_task = asyncio.create_task(host.listen_for_messages())
    
    for i in range(12):
        await host.send_message(f"Message {i + 1}")
    await asyncio.sleep(1)
    
    listen_task.cancel()
    await host.disconnect()
    print("✅ Rate limit scenario completed")

async def scenario_injection(server_url: str):
    """Scenario: markup in names and messages is neutralized"""
    print("\n🧪 Scenario: Input Sanitization")
    print("=" * 60)
    
    bad_host = WatchPartyClient("<script>x</script>", server_url)
    if await bad_host.connect():
        await bad_host.create_room()
        await bad_host.disconnect()
    
    host = WatchPartyClient("Alice", server_url)
    if not (await host.connect() and await host.create_room()):
        return
    host.running = True
    listen_task = asyncio.create_task(host.listen_for_messages())
    
    await host.send_message("<b>bold</b> <script>alert(1)</script>move")
    await host.set_video("javascript:alert(1)")
    await asyncio.sleep(1)
    
    listen_task.cancel()
    await host.disconnect()
    print("✅ Sanitization scenario completed")

async def main():
    """Main function with command line interface"""
    parser = argparse.ArgumentParser(description="Watch Party WebSocket Client")
    parser.add_argument("--username", default="Guest", help="Display name")
    parser.add_argument("--room", help="Room code to join (creates a room if omitted)")
    parser.add_argument("--server", default="ws://localhost:8000/ws", help="Server URL")
    parser.add_argument("--scenario", choices=["admission", "rate-limit", "injection"], help="Run a scenario")
    
    args = parser.parse_args()
    
    if args.scenario == "admission":
        await scenario_admission(args.server)
    elif args.scenario == "rate-limit":
        await scenario_rate_limit(args.server)
    elif args.scenario == "injection":
        await scenario_injection(args.server)
    else:
        client = WatchPartyClient(args.username, args.server)
        await client.run_interactive(args.room)

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Client error: {e}")
        sys.exit(1)
