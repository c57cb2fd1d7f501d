"""WebSocket hub: clients join/leave named groups and receive broadcast events."""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

log = structlog.get_logger(__name__)

router = APIRouter()

TOKEN_UPDATES_GROUP = "token_updates"


class SubscriptionHub:
    """Tracks WebSocket connections and their group memberships."""

    def __init__(self) -> None:
        self.connections: list[WebSocket] = []
        self.groups: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, ws: WebSocket) -> None:
        """Accept a WebSocket connection. It receives nothing until it joins a group."""
        await ws.accept()
        self.connections.append(ws)
        log.info("ws_connected", total=len(self.connections))

    def disconnect(self, ws: WebSocket) -> None:
        """Forget a connection and all of its group memberships."""
        if ws in self.connections:
            self.connections.remove(ws)
        for members in self.groups.values():
            members.discard(ws)
        log.info("ws_disconnected", total=len(self.connections))

    def join(self, group: str, ws: WebSocket) -> None:
        self.groups[group].add(ws)
        log.info("ws_joined_group", group=group, members=len(self.groups[group]))

    def leave(self, group: str, ws: WebSocket) -> None:
        self.groups[group].discard(ws)
        log.info("ws_left_group", group=group, members=len(self.groups[group]))

    def group_size(self, group: str) -> int:
        return len(self.groups.get(group, ()))

    async def broadcast(self, group: str, message: dict[str, Any]) -> None:
        """Send a JSON message to every member of ``group``, dropping broken connections."""
        payload = json.dumps(message)
        for ws in list(self.groups.get(group, ())):
            try:
                await ws.send_text(payload)
            except Exception:
                self.disconnect(ws)
                log.warning("ws_broadcast_error", group=group, remaining=self.group_size(group))

    def group_publisher(self, group: str):
        """Adapter usable as a PubSubChannel handler for ``group``."""

        async def publish(message: dict[str, Any]) -> None:
            await self.broadcast(group, message)

        return publish


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Clients send ``subscribe_tokens`` / ``unsubscribe_tokens`` to toggle token updates.

    Binary frames and unknown commands are ignored. However the connection
    ends, it leaves the hub and every group.
    """
    hub: SubscriptionHub = websocket.app.state.hub
    await hub.connect(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            command = (message.get("text") or "").strip()
            if command == "subscribe_tokens":
                hub.join(TOKEN_UPDATES_GROUP, websocket)
                await websocket.send_text(json.dumps({"type": "subscribed", "group": TOKEN_UPDATES_GROUP}))
            elif command == "unsubscribe_tokens":
                hub.leave(TOKEN_UPDATES_GROUP, websocket)
                await websocket.send_text(json.dumps({"type": "unsubscribed", "group": TOKEN_UPDATES_GROUP}))
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
