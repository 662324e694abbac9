"""
Grid layout engine.

Derives the grid shape and the per-cell pixel size from the number of traces
and the viewport. Nothing here is stored; the component recomputes the layout
whenever the trace count or the viewport changes.
"""

import math
from dataclasses import dataclass

DEFAULT_MAX_COLUMNS = 5
DEFAULT_MAX_CELL_WIDTH = 500.0
DEFAULT_MARGIN = 100.0


@dataclass(frozen=True)
class Viewport:
    """Available drawing area in pixels."""

    height: float
    width: float


@dataclass(frozen=True)
class CellSize:
    h: float
    w: float

    @property
    def canvas(self) -> float:
        """Side of the square SVG canvas; cells are always drawn square on ``w``."""
        return self.w


@dataclass(frozen=True)
class GridLayout:
    count: int
    columns: int
    rows: int
    cell: CellSize

    @property
    def is_empty(self) -> bool:
        return self.count == 0


def compute_layout(
    count: int,
    viewport: Viewport,
    max_columns: int = DEFAULT_MAX_COLUMNS,
    max_cell_width: float = DEFAULT_MAX_CELL_WIDTH,
    margin: float = DEFAULT_MARGIN,
) -> GridLayout:
    """Compute the grid for ``count`` traces inside ``viewport``.

    ``columns = min(count, max_columns)``, ``rows = ceil(count / columns)``,
    cell height is ``viewport.height / rows`` and cell width is
    ``min(max_cell_width, (viewport.width - margin) / columns)``.
    """
    if count < 0:
        raise ValueError(f"trace count must be non-negative, got {count}")
    if max_columns < 1:
        raise ValueError(f"max_columns must be at least 1, got {max_columns}")

    if count == 0:
        return GridLayout(count=0, columns=0, rows=0, cell=CellSize(h=0.0, w=0.0))

    columns = min(count, max_columns)
    rows = math.ceil(count / columns)
    width = min(max_cell_width, (viewport.width - margin) / columns)

    return GridLayout(
        count=count,
        columns=columns,
        rows=rows,
        cell=CellSize(h=viewport.height / rows, w=max(0.0, width)),
    )
