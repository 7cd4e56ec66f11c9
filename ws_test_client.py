#!/usr/bin/env python3
"""
WebSocket Test Client for the watchsync relay

Usage:
    python ws_test_client.py <server_url> <room_id> <user_id> [name]

Examples:
    python ws_test_client.py ws://localhost:3001 movie-night alice Alice
    python ws_test_client.py wss://your-server.com movie-night bob

Commands (while connected):
    - play <seek>             send a play command at <seek> seconds
    - pause <seek>            send a pause command at <seek> seconds
    - video <id>              change the room's video
    - queue <videoId> <title> add a queue item
    - unqueue <itemId>        remove a queue item
    - ping                    measure clock offset against the server
    - leave                   leave the room (presence drops)
    - quit / exit             disconnect
"""

import asyncio
import json
import sys
import time

try:
    import websockets
except ImportError:
    print("Error: 'websockets' package not installed.")
    print("Install it with: pip install websockets")
    sys.exit(1)


SOCKET_PATH = "/api/socket"

# send time of the last ping, for offset estimation
_last_ping_ms: float | None = None


def _now_ms() -> float:
    return time.time() * 1000


def print_message(msg: dict) -> None:
    """Pretty print a received relay event."""
    msg_type = msg.get("type", "unknown")
    data = msg.get("data")

    print()
    if msg_type == "room-presence":
        print(f"👥 PRESENCE: {len(data or [])} watching")
        for member in data or []:
            name = member.get("name") or "-"
            print(f"   {member.get('id')} ({name})")

    elif msg_type == "sync-command":
        print(f"📡 SYNC: {data.get('cmd')} at {data.get('seekTime')}s (sent {data.get('timestamp')})")

    elif msg_type == "video-changed":
        print(f"🎬 VIDEO CHANGED: {data}")

    elif msg_type == "queue-updated":
        print(f"📝 QUEUED: {data.get('title')} [{data.get('videoId')}]")

    elif msg_type == "queue-removed":
        print(f"🗑️  UNQUEUED: {data}")

    elif msg_type == "sync-pong":
        if _last_ping_ms is not None:
            now = _now_ms()
            rtt = now - _last_ping_ms
            offset = data - (_last_ping_ms + rtt / 2)
            print(f"⏱️  PONG: server={data} rtt={rtt:.1f}ms offset={offset:.1f}ms")
        else:
            print(f"⏱️  PONG: server={data}")

    else:
        print(f"📨 UNKNOWN MESSAGE TYPE: {msg_type}")
        print(f"   {json.dumps(msg, indent=2, default=str)}")


def build_command(line: str, room_id: str, user_id: str) -> dict | None:
    """Turn a typed command into a relay event, or None if it isn't one."""
    global _last_ping_ms

    parts = line.split(maxsplit=2)
    cmd = parts[0].lower()

    if cmd in ("play", "pause") and len(parts) >= 2:
        return {
            "type": "sync-command",
            "data": {"roomId": room_id, "cmd": cmd, "timestamp": int(_now_ms()), "seekTime": float(parts[1])},
        }
    if cmd == "video" and len(parts) >= 2:
        return {"type": "change-video", "data": {"roomId": room_id, "newVideoId": parts[1]}}
    if cmd == "queue" and len(parts) >= 3:
        return {
            "type": "queue-updated",
            "data": {"roomId": room_id, "item": {"videoId": parts[1], "title": parts[2]}},
        }
    if cmd == "unqueue" and len(parts) >= 2:
        return {"type": "queue-removed", "data": {"roomId": room_id, "itemId": parts[1]}}
    if cmd == "ping":
        _last_ping_ms = _now_ms()
        return {"type": "sync-ping", "data": int(_last_ping_ms)}
    if cmd == "leave":
        return {"type": "leave-room", "data": {"roomId": room_id, "userId": user_id}}
    return None


async def receive_messages(websocket) -> None:
    """Task to continuously receive and print messages."""
    try:
        async for message in websocket:
            try:
                print_message(json.loads(message))
            except (json.JSONDecodeError, AttributeError):
                print(f"\n⚠️  Received unexpected message: {message}")
            print("\n[You] > ", end="", flush=True)
    except websockets.exceptions.ConnectionClosed as e:
        print(f"\n❌ Connection closed: {e.code} - {e.reason}")


async def send_messages(websocket, room_id: str, user_id: str) -> None:
    """Task to read user input and send relay events."""
    loop = asyncio.get_running_loop()

    print("\n✅ Connected! Type a command and press Enter.")
    print("   Type 'quit' or 'exit' to disconnect.\n")

    while True:
        try:
            print("[You] > ", end="", flush=True)
            user_input = await loop.run_in_executor(None, sys.stdin.readline)
            user_input = user_input.strip()

            if not user_input:
                continue

            if user_input.lower() in ("quit", "exit"):
                print("👋 Disconnecting...")
                await websocket.close()
                break

            try:
                event = build_command(user_input, room_id, user_id)
            except ValueError as e:
                print(f"   ✗ Bad argument: {e}")
                continue
            if event is None:
                print("   ✗ Unknown command (see --help)")
                continue

            await websocket.send(json.dumps(event))
            print(f"   ✓ Sent: {event['type']}")

        except websockets.exceptions.ConnectionClosed:
            print("\n❌ Connection was closed")
            break


async def main(server_url: str, room_id: str, user_id: str, name: str | None) -> None:
    """Connect, announce presence, then run the receive and send loops."""
    ws_url = f"{server_url}{SOCKET_PATH}"

    print(f"🔌 Connecting to: {ws_url}")
    print("-" * 60)

    try:
        async with websockets.connect(ws_url) as websocket:
            user = {"id": user_id}
            if name:
                user["name"] = name
            await websocket.send(json.dumps({"type": "join-room", "data": room_id}))
            await websocket.send(json.dumps({"type": "presence-join", "data": {"roomId": room_id, "user": user}}))

            receive_task = asyncio.create_task(receive_messages(websocket))
            send_task = asyncio.create_task(send_messages(websocket, room_id, user_id))

            done, pending = await asyncio.wait(
                [receive_task, send_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    except websockets.exceptions.InvalidStatus as e:
        print(f"❌ Connection failed with status code: {e.response.status_code}")
        if e.response.status_code == 403:
            print("   Origin rejected by the server.")
    except websockets.exceptions.InvalidURI as e:
        print(f"❌ Invalid URI: {e}")
        print("   Make sure the server URL starts with ws:// or wss://")
    except ConnectionRefusedError:
        print("❌ Connection refused. Is the server running?")


if __name__ == "__main__":
    if len(sys.argv) not in (4, 5):
        print(__doc__)
        print("\nError: Missing arguments!")
        print(f"Usage: python {sys.argv[0]} <server_url> <room_id> <user_id> [name]")
        sys.exit(1)

    server_url = sys.argv[1].rstrip("/")
    room_id = sys.argv[2]
    user_id = sys.argv[3]
    name = sys.argv[4] if len(sys.argv) == 5 else None

    if not server_url.startswith(("ws://", "wss://")):
        print("⚠️  Warning: URL should start with ws:// or wss://")
        print("   Assuming ws:// prefix...")
        server_url = f"ws://{server_url}"

    try:
        asyncio.run(main(server_url, room_id, user_id, name))
    except KeyboardInterrupt:
        print("\n\n👋 Interrupted by user. Goodbye!")
        sys.exit(0)
