"""
Wire protocol for genviz viewer sessions.

Every frame is a JSON envelope ``{"action": ..., ...payload}``. Each action is
one pydantic model; the two directions are closed discriminated unions so
that decoding validates the payload and rejects unknown actions at the
transport boundary.

Client -> server: connect, disconnect, save
Server -> client: initialize, putTrace, removeTrace, saveHTML
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


class ProtocolError(ValueError):
    """Raised when a frame cannot be decoded into a known protocol message."""


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_json(self) -> str:
        """Encode the message as a JSON frame."""
        return self.model_dump_json()


def _trace_id(value: Any) -> str:
    # Trace ids are opaque; numeric ids from the backend are keyed as strings.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError("trace id must be a string or an integer")
    return str(value)


INFO_X_KEYS = ("x", "xs", "x-coords")

_x_vector = TypeAdapter(List[float])


def validate_info(value: Any) -> Any:
    """Check that Info carries a numeric x vector and return it unchanged.

    Accepts ``{"x": [...]}`` (or ``xs`` / ``x-coords``) or a non-empty
    sequence whose first element is the x vector.
    """
    if isinstance(value, dict):
        key = next((k for k in INFO_X_KEYS if k in value), None)
        if key is None:
            raise ValueError("info must carry an 'x' vector")
        xs = value[key]
    elif isinstance(value, (list, tuple)) and value:
        xs = value[0]
    else:
        raise ValueError("info must be an object with an 'x' vector or a non-empty array")

    try:
        _x_vector.validate_python(xs)
    except ValidationError as e:
        raise ValueError(f"info x vector must be a list of numbers ({e.error_count()} error(s))") from e
    return value


# ============= Client -> Server =============


class ConnectMessage(_Message):
    """Registers a (vizId, clientId) session."""
    action: Literal["connect"] = "connect"
    clientId: str
    vizId: str


class DisconnectMessage(_Message):
    """Deregisters a session."""
    action: Literal["disconnect"] = "disconnect"
    clientId: str
    vizId: str


class SaveMessage(_Message):
    """Delivers an exported HTML snapshot."""
    action: Literal["save"] = "save"
    clientId: str
    vizId: str
    content: str


# ============= Server -> Client =============


class InitializeMessage(_Message):
    """Replaces the viewer's entire store."""
    action: Literal["initialize"] = "initialize"
    info: Any
    traces: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("info")
    @classmethod
    def _check_info(cls, value: Any) -> Any:
        return validate_info(value)

    @field_validator("traces", mode="before")
    @classmethod
    def _normalize_trace_ids(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {_trace_id(key): trace for key, trace in value.items()}
        return value


class PutTraceMessage(_Message):
    """Inserts or overwrites one trace."""
    action: Literal["putTrace"] = "putTrace"
    tId: str
    t: Dict[str, Any]

    @field_validator("tId", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _trace_id(value)


class RemoveTraceMessage(_Message):
    """Deletes one trace."""
    action: Literal["removeTrace"] = "removeTrace"
    tId: str

    @field_validator("tId", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _trace_id(value)


class SaveHTMLMessage(_Message):
    """Asks the viewer to export its rendered state."""
    action: Literal["saveHTML"] = "saveHTML"


ClientMessage = Annotated[
    Union[ConnectMessage, DisconnectMessage, SaveMessage],
    Field(discriminator="action"),
]

ServerMessage = Annotated[
    Union[InitializeMessage, PutTraceMessage, RemoveTraceMessage, SaveHTMLMessage],
    Field(discriminator="action"),
]

_client_adapter = TypeAdapter(ClientMessage)
_server_adapter = TypeAdapter(ServerMessage)


def _decode(adapter: TypeAdapter, raw: Union[str, bytes, Dict[str, Any]], direction: str):
    if isinstance(raw, (str, bytes)):
        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise ProtocolError(f"Invalid JSON frame: {e}") from e
    else:
        payload = raw

    if not isinstance(payload, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(payload).__name__}")
    if "action" not in payload:
        raise ProtocolError("Message has no 'action' field")

    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        raise ProtocolError(
            f"Invalid {direction} message (action={payload.get('action')!r}): {e.error_count()} error(s)"
        ) from e


def decode_client_message(raw: Union[str, bytes, Dict[str, Any]]) -> ClientMessage:
    """Decode a frame sent by a viewer.

    Raises:
        ProtocolError: for malformed JSON, missing or unknown actions, or bad payloads.
    """
    return _decode(_client_adapter, raw, "client")


def decode_server_message(raw: Union[str, bytes, Dict[str, Any]]) -> ServerMessage:
    """Decode a frame sent by the backend.

    Raises:
        ProtocolError: for malformed JSON, missing or unknown actions, or bad payloads.
    """
    return _decode(_server_adapter, raw, "server")
