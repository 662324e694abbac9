"""
Headless genviz viewer.

Connects to a genviz backend, mirrors the viewer's trace store, lays the
traces out on a grid, renders each one as SVG and exports the rendered view
on request.
"""

from .component import VizComponent, default_stylesheet
from .exporter import CSSRule, Snapshot, Stylesheet, StylesheetReadError, export_snapshot
from .layout import CellSize, GridLayout, Viewport, compute_layout
from .renderer import (
    CoordinateMapping,
    ProtocolViolation,
    RenderError,
    TraceGeometry,
    compute_geometry,
    render_trace,
)
from .session import ViewerSession, connect_viewer
from .store import ChangeKind, StoreChange, TraceStore

__all__ = [
    "VizComponent",
    "default_stylesheet",
    "CSSRule",
    "Snapshot",
    "Stylesheet",
    "StylesheetReadError",
    "export_snapshot",
    "CellSize",
    "GridLayout",
    "Viewport",
    "compute_layout",
    "CoordinateMapping",
    "ProtocolViolation",
    "RenderError",
    "TraceGeometry",
    "compute_geometry",
    "render_trace",
    "ViewerSession",
    "connect_viewer",
    "ChangeKind",
    "StoreChange",
    "TraceStore",
]
