"""
Viewer-side transport for one genviz session.

A ``ViewerSession`` is created per viewer (the headless counterpart of a browser
tab) and owns the connection to the backend. It announces itself with
``connect``, dispatches every inbound frame to the visualization component,
answers ``saveHTML`` with a ``save`` frame, and sends ``disconnect`` when it
is torn down. Frames are handled one at a time on the event loop, in arrival
order; nothing is buffered, reordered or retried, and a dropped connection
is not re-established.
"""

import uuid
from typing import Any, Optional, Protocol, Tuple
from urllib.parse import urlsplit

import websockets
from websockets.exceptions import ConnectionClosed

from api.shared.logger import get_logger
from websocket.protocol import (
    ConnectMessage,
    DisconnectMessage,
    InitializeMessage,
    ProtocolError,
    PutTraceMessage,
    RemoveTraceMessage,
    SaveHTMLMessage,
    SaveMessage,
    decode_server_message,
)

from .component import VizComponent

logger = get_logger(__name__)


class Connection(Protocol):
    """The subset of a websocket client connection the session relies on."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self): ...


def generate_client_id() -> str:
    """Random per-session client id."""
    return str(uuid.uuid4())


def viz_id_from_path(path: str) -> str:
    """Viewer id is the page path with every slash removed."""
    return path.replace("/", "")


def parse_page_url(page_url: str) -> Tuple[str, str]:
    """Return ``(endpoint, viz_id)`` for a viewer page URL.

    The backend listens on the page's own host and port.
    """
    parts = urlsplit(page_url)
    if not parts.hostname:
        raise ValueError(f"Page URL has no host: {page_url!r}")
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    netloc = parts.hostname if parts.port is None else f"{parts.hostname}:{parts.port}"
    return f"{scheme}://{netloc}/", viz_id_from_path(parts.path)


class ViewerSession:
    """One (viz_id, client_id) session bound to a visualization component."""

    def __init__(
        self,
        page_url: str,
        component: Optional[VizComponent] = None,
        client_id: Optional[str] = None,
    ):
        self.page_url = page_url
        self.endpoint, self.viz_id = parse_page_url(page_url)
        self.client_id = client_id or generate_client_id()
        self.component = component if component is not None else VizComponent()
        self.connection: Optional[Connection] = None
        self.saved = 0

    # ----- lifecycle -----

    async def open(self, connection: Connection) -> None:
        """Bind ``connection`` and announce the session."""
        self.connection = connection
        await self._send(ConnectMessage(clientId=self.client_id, vizId=self.viz_id))
        logger.info("Viewer %s connected as client %s", self.viz_id, self.client_id)

    async def close(self) -> None:
        """Send ``disconnect`` and close, without depending on the socket staying open."""
        connection, self.connection = self.connection, None
        if connection is None:
            self.component.close()
            return
        try:
            await connection.send(DisconnectMessage(clientId=self.client_id, vizId=self.viz_id).to_json())
        except ConnectionClosed:
            logger.debug("Connection for %s already closed before disconnect", self.client_id)
        finally:
            try:
                await connection.close()
            finally:
                self.component.close()
        logger.info("Viewer %s client %s disconnected", self.viz_id, self.client_id)

    async def __aenter__(self) -> "ViewerSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def run(self) -> None:
        """Dispatch inbound frames until the connection closes."""
        if self.connection is None:
            raise RuntimeError("Session is not open")
        try:
            async for raw in self.connection:
                await self.dispatch(raw)
        except ConnectionClosed as e:
            logger.warning("Connection to %s closed unexpectedly: %s", self.endpoint, e)

    # ----- dispatch -----

    async def dispatch(self, raw: Any) -> None:
        """Apply one inbound frame. Malformed or unknown frames are logged and dropped."""
        try:
            message = decode_server_message(raw)
        except ProtocolError as e:
            logger.warning("Ignoring message on %s: %s", self.viz_id, e)
            return

        if isinstance(message, InitializeMessage):
            self.component.initialize(message.info, message.traces)
        elif isinstance(message, PutTraceMessage):
            self.component.put_trace(message.tId, message.t)
        elif isinstance(message, RemoveTraceMessage):
            self.component.remove_trace(message.tId)
        elif isinstance(message, SaveHTMLMessage):
            await self.send_html()

    async def send_html(self) -> None:
        """Export the current view and ship it to the backend."""
        snapshot = self.component.export()
        if snapshot.partial:
            logger.warning("Sending partial snapshot for %s: %s", self.viz_id, "; ".join(snapshot.warnings))
        await self._send(
            SaveMessage(clientId=self.client_id, vizId=self.viz_id, content=snapshot.content)
        )
        self.saved += 1

    async def _send(self, message) -> None:
        if self.connection is None:
            raise RuntimeError("Session is not open")
        await self.connection.send(message.to_json())


async def connect_viewer(page_url: str, component: Optional[VizComponent] = None, client_id: Optional[str] = None) -> None:
    """Open a real websocket for ``page_url`` and run the session until the backend closes it."""
    session = ViewerSession(page_url, component=component, client_id=client_id)
    async with websockets.connect(session.endpoint) as connection:
        async with session:
            await session.open(connection)
            await session.run()
