"""
Viewer API routes for genviz.

The inference workflow drives viewers through these endpoints; every
mutation is mirrored to the connected clients over the WebSocket.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator

from websocket.protocol import validate_info

from .shared.logger import get_logger
from .viz_manager import NoViewersConnected, SnapshotTimeout, viz_registry

logger = get_logger(__name__)

router = APIRouter(prefix="/viewers", tags=["viewers"])


# ============= Request/Response Models =============


class InitializeRequest(BaseModel):
    """Full viewer state."""
    info: Any
    traces: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @field_validator("info")
    @classmethod
    def _check_info(cls, value: Any) -> Any:
        return validate_info(value)


class SaveRequest(BaseModel):
    """Export request. With ``wait`` the call blocks until a snapshot is written."""
    wait: bool = False
    timeout: Optional[float] = Field(default=None, gt=0)


def _require_viz(viz_id: str):
    viz = viz_registry.get(viz_id)
    if viz is None:
        raise HTTPException(status_code=404, detail=f"Viewer '{viz_id}' not found")
    return viz


# ============= Routes =============


@router.get("")
async def list_viewers():
    """List known viewers."""
    return {"viewers": [viz.summary() for viz in viz_registry.list()]}


@router.get("/{viz_id}")
async def get_viewer(viz_id: str):
    """Current Info, traces and clients of a viewer."""
    return _require_viz(viz_id).state()


@router.post("/{viz_id}/initialize")
async def initialize_viewer(viz_id: str, request: InitializeRequest):
    """Replace a viewer's state and broadcast ``initialize``."""
    viz = viz_registry.get_or_create(viz_id)
    sent = await viz.initialize(request.info, request.traces)
    return {"viz_id": viz_id, "trace_count": len(viz.store), "sent": sent}


@router.put("/{viz_id}/traces/{trace_id}")
async def put_trace(viz_id: str, trace_id: str, trace: Dict[str, Any]):
    """Insert or overwrite one trace and broadcast ``putTrace``."""
    viz = viz_registry.get_or_create(viz_id)
    if not viz.store.has_info:
        logger.warning("Trace %s put on viewer %s before initialize", trace_id, viz_id)
    sent = await viz.put_trace(trace_id, trace)
    return {"viz_id": viz_id, "trace_id": trace_id, "sent": sent}


@router.delete("/{viz_id}/traces/{trace_id}")
async def remove_trace(viz_id: str, trace_id: str):
    """Remove one trace. Unknown ids are not an error."""
    viz = _require_viz(viz_id)
    removed = await viz.remove_trace(trace_id)
    return {"viz_id": viz_id, "trace_id": trace_id, "removed": removed}


@router.post("/{viz_id}/save", status_code=202)
async def save_viewer(viz_id: str, request: Optional[SaveRequest] = None):
    """Ask the connected clients to export their view."""
    viz = _require_viz(viz_id)
    request = request or SaveRequest()
    try:
        if request.wait:
            record = await viz.request_snapshot(request.timeout)
            return {"viz_id": viz_id, "snapshot": record.to_dict()}
        requested = await viz.request_save()
    except NoViewersConnected as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SnapshotTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))
    return {"viz_id": viz_id, "requested": requested}


@router.get("/{viz_id}/snapshots")
async def list_snapshots(viz_id: str):
    """Snapshots written for a viewer."""
    _require_viz(viz_id)
    return {"viz_id": viz_id, "snapshots": viz_registry.writer.list(viz_id)}
