"""
Visualization component: the grid of rendered traces for one viewer.

Owns the trace store and keeps one rendered SVG cell per trace. Store
changes are applied incrementally: a put or remove re-renders only that
trace's cell unless the cell size changed with the trace count, in which
case the whole grid is redrawn at the new size.
"""

from html import escape
from typing import Dict, Iterable, Optional

from api.shared.logger import get_logger

from .exporter import CSSRule, Snapshot, Stylesheet, export_snapshot
from .layout import (
    DEFAULT_MARGIN,
    DEFAULT_MAX_CELL_WIDTH,
    DEFAULT_MAX_COLUMNS,
    GridLayout,
    Viewport,
    compute_layout,
)
from .renderer import ProtocolViolation, RenderError, render_trace
from .store import ChangeKind, StoreChange, TraceStore

logger = get_logger(__name__)

DEFAULT_VIEWPORT = Viewport(height=800, width=1000)


def default_stylesheet() -> Stylesheet:
    """Page styles bundled with the viewer."""
    return Stylesheet(
        href="genviz.css",
        rules=[
            CSSRule(selector="#traces", declarations="display: flex; flex-wrap: wrap;"),
            CSSRule(selector=".trace-cell", declarations="flex: 0 0 auto;"),
            CSSRule(selector="h1", declarations="font-family: sans-serif; font-size: 1.2em;"),
        ],
    )


class VizComponent:
    """Store, layout and rendered cells for one viewer."""

    def __init__(
        self,
        viewport: Optional[Viewport] = None,
        stylesheets: Optional[Iterable[Stylesheet]] = None,
        max_columns: int = DEFAULT_MAX_COLUMNS,
        max_cell_width: float = DEFAULT_MAX_CELL_WIDTH,
        margin: float = DEFAULT_MARGIN,
        store: Optional[TraceStore] = None,
    ):
        self.store = store if store is not None else TraceStore()
        self.viewport = viewport or DEFAULT_VIEWPORT
        self.stylesheets = list(stylesheets) if stylesheets is not None else [default_stylesheet()]
        self.max_columns = max_columns
        self.max_cell_width = max_cell_width
        self.margin = margin

        self._cells: Dict[str, str] = {}
        self._layout = self._compute_layout()
        self._unsubscribe = self.store.subscribe(self._on_store_change)
        if len(self.store):
            self._render_all()

    # ----- protocol entry points -----

    def initialize(self, info, traces) -> None:
        self.store.initialize(info, traces)

    def put_trace(self, trace_id: str, trace) -> None:
        self.store.put_trace(trace_id, trace)

    def remove_trace(self, trace_id: str) -> None:
        self.store.remove_trace(trace_id)

    def resize(self, viewport: Viewport) -> None:
        """Viewport-resize listener."""
        self.viewport = viewport
        self._layout = self._compute_layout()
        self._render_all()

    def export(self) -> Snapshot:
        return export_snapshot(self.markup(), self.stylesheets)

    def close(self) -> None:
        self._unsubscribe()

    # ----- views -----

    @property
    def layout(self) -> GridLayout:
        return self._layout

    def cell(self, trace_id: str) -> Optional[str]:
        """Rendered SVG for ``trace_id``, or None if it could not be drawn."""
        return self._cells.get(trace_id)

    def markup(self) -> str:
        cells = "".join(
            f'<div class="trace-cell" data-trace-id="{escape(t_id)}">{self._cells.get(t_id, "")}</div>'
            for t_id in self.store.ids()
        )
        return f'<div class="genviz"><h1>Traces</h1><div id="traces">{cells}</div></div>'

    # ----- rendering -----

    def _compute_layout(self) -> GridLayout:
        return compute_layout(
            len(self.store),
            self.viewport,
            max_columns=self.max_columns,
            max_cell_width=self.max_cell_width,
            margin=self.margin,
        )

    def _on_store_change(self, change: StoreChange) -> None:
        previous = self._layout
        self._layout = self._compute_layout()

        if change.kind is ChangeKind.INITIALIZE:
            self._cells.clear()
            self._render_all()
            return

        if change.kind is ChangeKind.REMOVE:
            self._cells.pop(change.trace_id, None)

        if self._layout.cell.canvas != previous.cell.canvas:
            self._render_all()
        elif change.kind is ChangeKind.PUT:
            self._render_cell(change.trace_id)

    def _render_all(self) -> None:
        for t_id in self.store.ids():
            self._render_cell(t_id)

    def _render_cell(self, trace_id: str) -> None:
        if not self.store.has_info:
            logger.warning("Trace %r received before initialize; deferring render", trace_id)
            self._cells.pop(trace_id, None)
            return
        try:
            self._cells[trace_id] = render_trace(
                self.store.get(trace_id),
                self.store.info,
                self._layout.cell.canvas,
                trace_id=trace_id,
            )
        except (ProtocolViolation, RenderError) as e:
            logger.warning("Could not render trace %r: %s", trace_id, e)
            self._cells.pop(trace_id, None)
