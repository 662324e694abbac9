"""
Trace renderer.

Maps one trace from logical (data) space into pixel space for a square SVG
cell and serializes the result. Each trace is auto-fit to its own y range;
the x range comes from the shared Info. Rendering is a pure function of
``(trace, info, size)``.

Geometry drawn per cell:
- one circle per observation, colored by its outlier flag
- the fitted line ``y = slope * x + intercept``, extended 200px past both edges
- a translucent band at ``±2 * inlier_std`` around that line
- a faint horizontal band at logical ``y = 0``
"""

from dataclasses import dataclass
from html import escape
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

PADDING_FRACTION = 0.1
LINE_OVERHANG = 200.0
BAND_SIGMAS = 2.0
POINT_RADIUS = 3

INLIER_COLOR = "blue"
OUTLIER_COLOR = "red"
BAND_FILL = "rgba(0,0,0,0.3)"
LINE_STROKE = "rgba(0,0,0,0.7)"
LINE_WIDTH = 2
ZERO_LINE_STROKE = "rgba(0,0,0,0.1)"
ZERO_LINE_STD = 10.0


class RenderError(ValueError):
    """Raised when a trace payload cannot be drawn."""


class ProtocolViolation(RuntimeError):
    """Raised when a trace is rendered before Info was initialized."""


class TraceRecord(BaseModel):
    """Validated view of a trace payload."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    y: List[float] = Field(validation_alias=AliasChoices("y", "y-coords", "y_coords"))
    outliers: Optional[List[bool]] = None
    slope: float
    intercept: float
    inlier_std: float = Field(ge=0)


def info_x_values(info: Any) -> List[float]:
    """Extract the shared independent-variable vector from Info.

    Accepts ``{"x": [...]}`` or a sequence whose first element is the x vector.
    """
    if isinstance(info, Mapping):
        for key in ("x", "xs", "x-coords"):
            if key in info:
                return _floats(info[key])
        raise RenderError("Info has no 'x' vector")
    if isinstance(info, (list, tuple)) and info:
        return _floats(info[0])
    raise RenderError(f"Unsupported Info payload: {type(info).__name__}")


def _floats(values: Any) -> List[float]:
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError) as e:
        raise RenderError(f"Info x vector is not numeric: {e}") from e


@dataclass(frozen=True)
class CoordinateMapping:
    """Affine map between logical coordinates and one square cell."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float
    size: float

    @classmethod
    def fit(cls, xs: Sequence[float], ys: Sequence[float], size: float) -> "CoordinateMapping":
        xs_arr = np.asarray(xs, dtype=float)
        ys_arr = np.asarray(ys, dtype=float)
        min_x, max_x = _bounds(xs_arr)
        min_y, max_y = _bounds(ys_arr)
        return cls(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y, size=float(size))

    @property
    def padding(self) -> float:
        return PADDING_FRACTION * self.size

    @property
    def actual_size(self) -> float:
        return self.size - 2 * self.padding

    @property
    def span_x(self) -> float:
        return self.max_x - self.min_x

    @property
    def span_y(self) -> float:
        return self.max_y - self.min_y

    def x_logical_to_pixel(self, x):
        return self.padding + self.actual_size * ((x - self.min_x) / self.span_x)

    def y_logical_to_pixel(self, y):
        return self.size - self.padding - self.actual_size * ((y - self.min_y) / self.span_y)

    def x_pixel_to_logical(self, px):
        return (px - self.padding) / self.actual_size * self.span_x + self.min_x

    def y_pixel_to_logical(self, py):
        return (self.size - self.padding - py) / self.actual_size * self.span_y + self.min_y

    def std_logical_to_pixel(self, std):
        return std / self.span_y * self.actual_size


def _bounds(values: np.ndarray) -> Tuple[float, float]:
    if values.size == 0:
        return 0.0, 1.0
    low, high = float(values.min()), float(values.max())
    if high == low:
        # Degenerate range: widen to span 1 so the map stays invertible.
        return low - 0.5, high + 0.5
    return low, high


@dataclass(frozen=True)
class Circle:
    cx: float
    cy: float
    r: float
    fill: str


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str
    stroke_width: float


@dataclass(frozen=True)
class TraceGeometry:
    size: float
    points: Tuple[Circle, ...]
    band: Tuple[Tuple[float, float], ...]
    fit_line: Line
    zero_line: Line


def compute_geometry(trace: Any, info: Any, size: float) -> TraceGeometry:
    """Compute pixel-space geometry for ``trace`` on a ``size`` x ``size`` canvas.

    Raises:
        ProtocolViolation: if ``info`` is None (the store was never initialized).
        RenderError: if the trace payload is invalid or does not match Info.
    """
    if info is None:
        raise ProtocolViolation("Cannot render a trace before Info is initialized")
    if size <= 0:
        raise RenderError(f"Cell size must be positive, got {size}")

    try:
        record = trace if isinstance(trace, TraceRecord) else TraceRecord.model_validate(trace)
    except ValidationError as e:
        raise RenderError(f"Invalid trace payload: {e.error_count()} error(s)") from e

    xs = np.asarray(info_x_values(info), dtype=float)
    ys = np.asarray(record.y, dtype=float)
    if xs.shape != ys.shape:
        raise RenderError(f"Trace has {ys.size} y value(s) but Info has {xs.size} x value(s)")

    outliers = np.zeros(ys.shape, dtype=bool) if record.outliers is None else np.asarray(record.outliers, dtype=bool)
    if outliers.shape != ys.shape:
        raise RenderError(f"Trace has {outliers.size} outlier flag(s) for {ys.size} observation(s)")

    mapping = CoordinateMapping.fit(xs, ys, size)

    cxs = mapping.x_logical_to_pixel(xs)
    cys = mapping.y_logical_to_pixel(ys)
    points = tuple(
        Circle(cx=float(cx), cy=float(cy), r=POINT_RADIUS, fill=OUTLIER_COLOR if flag else INLIER_COLOR)
        for cx, cy, flag in zip(cxs, cys, outliers)
    )

    left = -LINE_OVERHANG
    right = mapping.size + LINE_OVERHANG
    y_left = mapping.x_pixel_to_logical(left) * record.slope + record.intercept
    y_right = mapping.x_pixel_to_logical(right) * record.slope + record.intercept
    spread = BAND_SIGMAS * record.inlier_std

    band = (
        (left, float(mapping.y_logical_to_pixel(y_left + spread))),
        (right, float(mapping.y_logical_to_pixel(y_right + spread))),
        (right, float(mapping.y_logical_to_pixel(y_right - spread))),
        (left, float(mapping.y_logical_to_pixel(y_left - spread))),
    )

    fit_line = Line(
        x1=left,
        y1=float(mapping.y_logical_to_pixel(y_left)),
        x2=right,
        y2=float(mapping.y_logical_to_pixel(y_right)),
        stroke=LINE_STROKE,
        stroke_width=LINE_WIDTH,
    )

    zero_y = float(mapping.y_logical_to_pixel(0.0))
    zero_line = Line(
        x1=0.0,
        y1=zero_y,
        x2=mapping.size,
        y2=zero_y,
        stroke=ZERO_LINE_STROKE,
        stroke_width=float(4 * mapping.std_logical_to_pixel(ZERO_LINE_STD)),
    )

    return TraceGeometry(size=mapping.size, points=points, band=band, fit_line=fit_line, zero_line=zero_line)


def _num(value: float) -> str:
    return f"{value:g}"


def render_svg(geometry: TraceGeometry, trace_id: Optional[str] = None) -> str:
    """Serialize geometry as an ``<svg>`` element."""
    size = _num(geometry.size)
    id_attr = f' data-trace-id="{escape(trace_id)}"' if trace_id is not None else ""
    parts = [
        f'<svg height="{size}" width="{size}"{id_attr} xmlns="http://www.w3.org/2000/svg" '
        'xmlns:xlink="http://www.w3.org/1999/xlink" version="1.1">'
    ]
    for c in geometry.points:
        parts.append(f'<circle cx="{_num(c.cx)}" cy="{_num(c.cy)}" r="{c.r}" fill="{c.fill}"></circle>')

    polygon = " ".join(f"{_num(x)},{_num(y)}" for x, y in geometry.band)
    parts.append(f'<polygon points="{polygon}" style="fill: {BAND_FILL};"></polygon>')

    for line in (geometry.zero_line, geometry.fit_line):
        parts.append(
            f'<line x1="{_num(line.x1)}" y1="{_num(line.y1)}" x2="{_num(line.x2)}" y2="{_num(line.y2)}" '
            f'style="stroke: {line.stroke}; stroke-width: {_num(line.stroke_width)};"></line>'
        )
    parts.append("</svg>")
    return "".join(parts)


def render_trace(trace: Any, info: Any, size: float, trace_id: Optional[str] = None) -> str:
    """Render one trace to SVG markup."""
    return render_svg(compute_geometry(trace, info, size), trace_id=trace_id)
