"""
Observable trace store.

Holds the per-viewer Info and the trace mapping. It is mutated only through
``initialize``, ``put_trace`` and ``remove_trace``; every effective mutation
is announced to subscribers as a ``StoreChange`` so a view can re-render the
affected cell (or the whole grid after ``initialize``).
"""

import copy
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from api.shared.logger import get_logger

logger = get_logger(__name__)


class ChangeKind(str, Enum):
    """Kinds of store mutation."""

    INITIALIZE = "initialize"
    PUT = "put"
    REMOVE = "remove"


@dataclass(frozen=True)
class StoreChange:
    """A single store mutation. ``trace_id`` is None for INITIALIZE."""

    kind: ChangeKind
    trace_id: Optional[str] = None


Listener = Callable[[StoreChange], None]

_UNSET = object()


class TraceStore:
    """In-memory mapping of trace id to trace payload plus shared Info."""

    def __init__(self):
        self._info: Any = _UNSET
        self._traces: Dict[str, Any] = {}
        self._listeners: List[Listener] = []

    # ----- readers -----

    @property
    def has_info(self) -> bool:
        return self._info is not _UNSET

    @property
    def info(self) -> Any:
        """Shared Info, or None before ``initialize``."""
        return None if self._info is _UNSET else self._info

    @property
    def traces(self) -> Mapping[str, Any]:
        """Read-only view of the trace mapping."""
        return MappingProxyType(self._traces)

    def get(self, trace_id: str, default: Any = None) -> Any:
        return self._traces.get(trace_id, default)

    def ids(self) -> List[str]:
        return list(self._traces)

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict deep copy of the traces."""
        return copy.deepcopy(self._traces)

    def __len__(self) -> int:
        return len(self._traces)

    def __contains__(self, trace_id: object) -> bool:
        return trace_id in self._traces

    def __iter__(self) -> Iterator[str]:
        return iter(self._traces)

    # ----- subscription -----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StoreChange) -> None:
        for listener in list(self._listeners):
            listener(change)

    # ----- mutators -----

    def initialize(self, info: Any, traces: Optional[Mapping[str, Any]] = None) -> None:
        """Replace Info and every trace. The last call wins; nothing is merged."""
        self._info = copy.deepcopy(info)
        self._traces = {str(t_id): copy.deepcopy(t) for t_id, t in (traces or {}).items()}
        logger.debug("Store initialized with %d trace(s)", len(self._traces))
        self._notify(StoreChange(ChangeKind.INITIALIZE))

    def put_trace(self, trace_id: str, trace: Any) -> None:
        """Insert or overwrite the trace stored under ``trace_id``."""
        self._traces[trace_id] = copy.deepcopy(trace)
        self._notify(StoreChange(ChangeKind.PUT, trace_id))

    def remove_trace(self, trace_id: str) -> bool:
        """Delete ``trace_id``. Unknown ids are a no-op; returns whether it existed."""
        if trace_id not in self._traces:
            logger.debug("removeTrace for unknown id %r ignored", trace_id)
            return False
        del self._traces[trace_id]
        self._notify(StoreChange(ChangeKind.REMOVE, trace_id))
        return True
