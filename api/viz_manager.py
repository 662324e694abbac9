"""
Server-side viewer state for genviz.

The backend is the source of truth for every viewer: it keeps the Info and
trace mapping of each ``viz_id`` and mirrors every change to the connected
clients as protocol messages. A client that connects late is brought up to
date with an ``initialize`` carrying the current state.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from viewer.store import TraceStore
from websocket.manager import VizConnectionManager, ws_manager
from websocket.protocol import (
    ConnectMessage,
    InitializeMessage,
    PutTraceMessage,
    RemoveTraceMessage,
    SaveHTMLMessage,
    SaveMessage,
)

from .app_config import get_settings
from .shared.logger import get_logger
from .snapshots import SnapshotRecord, SnapshotWriter

logger = get_logger(__name__)


class NoViewersConnected(RuntimeError):
    """Raised when an export is requested from a viewer with no clients."""


class SnapshotTimeout(TimeoutError):
    """Raised when no client answers a save request in time."""


class Viz:
    """One named viewer: its traces and the clients watching it."""

    def __init__(self, viz_id: str, connections: VizConnectionManager, writer: SnapshotWriter):
        self.viz_id = viz_id
        self.store = TraceStore()
        self.created_at = datetime.now().isoformat()
        self.snapshots: List[SnapshotRecord] = []
        self._connections = connections
        self._writer = writer
        self._pending: List[asyncio.Future] = []

    @property
    def clients(self) -> List[str]:
        return self._connections.get_clients(self.viz_id)

    def initialize_message(self) -> InitializeMessage:
        return InitializeMessage(info=self.store.info, traces=self.store.snapshot())

    def state(self) -> Dict[str, Any]:
        return {
            "viz_id": self.viz_id,
            "created_at": self.created_at,
            "initialized": self.store.has_info,
            "info": self.store.info,
            "traces": self.store.snapshot(),
            "clients": self.clients,
            "snapshots": [record.to_dict() for record in self.snapshots],
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "viz_id": self.viz_id,
            "created_at": self.created_at,
            "initialized": self.store.has_info,
            "trace_count": len(self.store),
            "client_count": len(self.clients),
        }

    # ----- mutations mirrored to clients -----

    async def initialize(self, info: Any, traces: Optional[Mapping[str, Any]] = None) -> int:
        self.store.initialize(info, traces or {})
        return await self._connections.send_to_viz(self.viz_id, self.initialize_message())

    async def put_trace(self, trace_id: str, trace: Dict[str, Any]) -> int:
        self.store.put_trace(trace_id, trace)
        return await self._connections.send_to_viz(self.viz_id, PutTraceMessage(tId=trace_id, t=trace))

    async def remove_trace(self, trace_id: str) -> bool:
        if not self.store.remove_trace(trace_id):
            return False
        await self._connections.send_to_viz(self.viz_id, RemoveTraceMessage(tId=trace_id))
        return True

    async def client_connected(self, client_id: str) -> None:
        """Bring a newly connected client up to date."""
        if not self.store.has_info:
            logger.debug("Viewer %s not initialized yet; client %s waits", self.viz_id, client_id)
            return
        await self._connections.send_to_client(self.viz_id, client_id, self.initialize_message())

    # ----- export -----

    async def request_save(self) -> int:
        """Ask every client to export its view. Returns how many were asked."""
        sent = await self._connections.send_to_viz(self.viz_id, SaveHTMLMessage())
        if sent == 0:
            raise NoViewersConnected(f"No clients connected to viewer {self.viz_id}")
        return sent

    async def request_snapshot(self, timeout: Optional[float] = None) -> SnapshotRecord:
        """Ask the clients to export and wait for the first snapshot to be written."""
        timeout = get_settings().save_timeout if timeout is None else timeout
        future = asyncio.get_running_loop().create_future()
        self._pending.append(future)
        try:
            await self.request_save()
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError as e:
            raise SnapshotTimeout(f"No snapshot from viewer {self.viz_id} within {timeout}s") from e
        finally:
            if future in self._pending:
                self._pending.remove(future)

    async def receive_snapshot(self, client_id: str, content: str) -> SnapshotRecord:
        record = await self._writer.write(self.viz_id, client_id, content)
        self.snapshots.append(record)
        for future in self._pending:
            if not future.done():
                future.set_result(record)
                break
        return record


class VizRegistry:
    """All viewers known to this backend, keyed by viz_id."""

    def __init__(
        self,
        connections: Optional[VizConnectionManager] = None,
        writer: Optional[SnapshotWriter] = None,
    ):
        self.connections = connections if connections is not None else ws_manager
        self.writer = writer if writer is not None else SnapshotWriter()
        self._vizs: Dict[str, Viz] = {}

    def get(self, viz_id: str) -> Optional[Viz]:
        return self._vizs.get(viz_id)

    def get_or_create(self, viz_id: str) -> Viz:
        viz = self._vizs.get(viz_id)
        if viz is None:
            viz = Viz(viz_id, self.connections, self.writer)
            self._vizs[viz_id] = viz
            logger.info("Created viewer %s", viz_id)
        return viz

    def list(self) -> List[Viz]:
        return list(self._vizs.values())

    def remove(self, viz_id: str) -> bool:
        return self._vizs.pop(viz_id, None) is not None

    def clear(self) -> None:
        self._vizs.clear()

    async def handle_client_message(self, message) -> None:
        """Route a decoded client frame to its viewer."""
        if isinstance(message, ConnectMessage):
            await self.get_or_create(message.vizId).client_connected(message.clientId)
        elif isinstance(message, SaveMessage):
            viz = self.get(message.vizId)
            if viz is None:
                logger.warning("Snapshot for unknown viewer %s dropped", message.vizId)
                return
            await viz.receive_snapshot(message.clientId, message.content)


# Global registry instance
viz_registry = VizRegistry(ws_manager)
