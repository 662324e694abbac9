"""
WebSocket module for genviz.

Wire protocol and connection management for live viewer sessions.
"""

from .manager import SessionInfo, VizConnectionManager, ws_manager
from .protocol import (
    ClientMessage,
    ConnectMessage,
    DisconnectMessage,
    InitializeMessage,
    ProtocolError,
    PutTraceMessage,
    RemoveTraceMessage,
    SaveHTMLMessage,
    SaveMessage,
    ServerMessage,
    decode_client_message,
    decode_server_message,
    validate_info,
)

__all__ = [
    "SessionInfo",
    "VizConnectionManager",
    "ws_manager",
    "ClientMessage",
    "ConnectMessage",
    "DisconnectMessage",
    "InitializeMessage",
    "ProtocolError",
    "PutTraceMessage",
    "RemoveTraceMessage",
    "SaveHTMLMessage",
    "SaveMessage",
    "ServerMessage",
    "decode_client_message",
    "decode_server_message",
    "validate_info",
]
