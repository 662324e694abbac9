"""
WebSocket connection manager for the genviz backend.

Tracks which socket belongs to which viewer session and delivers protocol
messages to them:
- Socket acceptance and teardown
- Session registration keyed by (viz_id, client_id)
- Broadcast to every client of a viewer, or send to one client
- Decoding of client frames at the transport boundary
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from fastapi import WebSocket

from api.shared.logger import get_logger

from .protocol import (
    ClientMessage,
    ConnectMessage,
    DisconnectMessage,
    ProtocolError,
    decode_client_message,
)

logger = get_logger(__name__)

SessionKey = Tuple[str, str]


@dataclass
class SessionInfo:
    """A registered viewer session."""

    viz_id: str
    client_id: str
    connected_at: str = field(default_factory=lambda: datetime.now().isoformat())


class VizConnectionManager:
    """
    Manages WebSocket connections for genviz viewers.

    At most one socket is registered per (viz_id, client_id); a second
    ``connect`` for the same pair replaces the first.
    """

    def __init__(self):
        """Initialize the connection manager."""
        # All accepted sockets, registered or not
        self._connections: Set[WebSocket] = set()

        # Registered sessions: (viz_id, client_id) -> socket
        self._sessions: Dict[SessionKey, WebSocket] = {}

        # Reverse index: socket -> session info
        self._connection_info: Dict[WebSocket, SessionInfo] = {}

        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new socket. It joins a viewer once it sends ``connect``."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> Optional[SessionInfo]:
        """Forget a socket and its session, if any."""
        async with self._lock:
            self._connections.discard(websocket)
            info = self._connection_info.pop(websocket, None)
            if info is not None and self._sessions.get((info.viz_id, info.client_id)) is websocket:
                del self._sessions[(info.viz_id, info.client_id)]
        if info is not None:
            logger.info("Client %s left viewer %s", info.client_id, info.viz_id)
        return info

    async def register(self, websocket: WebSocket, viz_id: str, client_id: str) -> None:
        """Bind ``websocket`` to the (viz_id, client_id) session."""
        key = (viz_id, client_id)
        async with self._lock:
            stale = self._connection_info.get(websocket)
            if stale is not None:
                stale_key = (stale.viz_id, stale.client_id)
                if stale_key != key and self._sessions.get(stale_key) is websocket:
                    del self._sessions[stale_key]
            previous = self._sessions.get(key)
            self._sessions[key] = websocket
            self._connection_info[websocket] = SessionInfo(viz_id=viz_id, client_id=client_id)
            if previous is not None and previous is not websocket:
                self._connection_info.pop(previous, None)
                self._connections.discard(previous)

        if previous is not None and previous is not websocket:
            logger.info("Replacing existing connection for client %s on viewer %s", client_id, viz_id)
            try:
                await previous.close()
            except Exception as e:
                logger.debug("Closing replaced connection failed: %s", e)
        logger.info("Client %s joined viewer %s", client_id, viz_id)

    async def unregister(self, viz_id: str, client_id: str) -> None:
        """Drop a session; the socket itself stays open until the client closes it."""
        async with self._lock:
            websocket = self._sessions.pop((viz_id, client_id), None)
            if websocket is not None:
                self._connection_info.pop(websocket, None)
        if websocket is not None:
            logger.info("Client %s left viewer %s", client_id, viz_id)

    async def send_to_connection(self, websocket: WebSocket, message) -> bool:
        """
        Send a protocol message to a specific socket.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            await websocket.send_text(message.to_json())
            return True
        except Exception as e:
            logger.warning("Error sending WebSocket message: %s", e)
            await self.disconnect(websocket)
            return False

    async def send_to_client(self, viz_id: str, client_id: str, message) -> bool:
        """Send to one registered session."""
        async with self._lock:
            websocket = self._sessions.get((viz_id, client_id))
        if websocket is None:
            return False
        return await self.send_to_connection(websocket, message)

    async def send_to_viz(self, viz_id: str, message) -> int:
        """
        Broadcast a message to every client of a viewer.

        Returns:
            Number of connections that received the message
        """
        async with self._lock:
            subscribers = [ws for (v_id, _), ws in self._sessions.items() if v_id == viz_id]

        sent_count = 0
        disconnected = []

        for websocket in subscribers:
            try:
                await websocket.send_text(message.to_json())
                sent_count += 1
            except Exception:
                disconnected.append(websocket)

        # Clean up disconnected clients
        for ws in disconnected:
            await self.disconnect(ws)

        return sent_count

    def get_clients(self, viz_id: str) -> List[str]:
        """Client ids registered on a viewer."""
        return [c_id for (v_id, c_id) in self._sessions if v_id == viz_id]

    def get_connection_count(self) -> int:
        """Get the total number of accepted sockets."""
        return len(self._connections)

    def get_session_count(self) -> int:
        """Get the number of registered sessions."""
        return len(self._sessions)

    async def handle_message(self, websocket: WebSocket, message_text: str) -> Optional[ClientMessage]:
        """
        Handle an incoming client frame.

        ``connect`` and ``disconnect`` update session membership here; every
        decoded message is returned so the caller can route it to viewer
        state. Malformed frames are logged and yield None.
        """
        try:
            message = decode_client_message(message_text)
        except ProtocolError as e:
            logger.warning("Ignoring client message: %s", e)
            return None

        if isinstance(message, ConnectMessage):
            await self.register(websocket, message.vizId, message.clientId)
        elif isinstance(message, DisconnectMessage):
            await self.unregister(message.vizId, message.clientId)

        return message


# Global connection manager instance
ws_manager = VizConnectionManager()
