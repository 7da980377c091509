"""Anti-aliased rasterization of overlay primitives.

Coverage model
--------------
Pixel ``(i, j)`` is sampled at its center ``(i + 0.5, j + 0.5)``. A stroke of
width ``w`` covers a pixel by::

    coverage = clamp(0.5 + (w / 2 - d), 0, 1)

where ``d`` is the distance from the sample to the closest point of the
segment, which gives round caps. Only pixels within ``w / 2 +
ANTIALIAS_MARGIN`` of the segment are considered. Filled circles use
``clamp(0.5 + radius - d, 0, 1)`` with ``d`` the distance to the center;
outlined circles apply the stroke rule to ``|d - radius|``.

Polyline segments are drawn independently, so the round joint between two
segments is blended twice.

All writes go through `Canvas.blend_pixel`; coverage is computed with numpy
over the canvas-clipped bounding box of each primitive.
"""
import logging
import math
from typing import List, Sequence

import numpy as np

from .canvas import Canvas
from .drawables import Circle, Drawable, Icon, Line
from .projection import PixelPoint
from .tilegrid import Viewport

logger = logging.getLogger(__name__)

ANTIALIAS_MARGIN = 1.0


def stroke_coverage(distance, half_width):
    """Linear falloff: full inside the stroke, zero half a pixel outside it."""
    return np.clip(0.5 + (half_width - distance), 0.0, 1.0)


def _sample_grid(canvas, x_min, y_min, x_max, y_max):
    """Pixel-center grids for the canvas-clipped box, or None when empty."""
    i0 = max(0, math.floor(x_min))
    j0 = max(0, math.floor(y_min))
    i1 = min(canvas.width, math.ceil(x_max) + 1)
    j1 = min(canvas.height, math.ceil(y_max) + 1)
    if i0 >= i1 or j0 >= j1:
        return None
    px, py = np.meshgrid(np.arange(i0, i1) + 0.5, np.arange(j0, j1) + 0.5)
    return i0, j0, px, py


def _apply(canvas, i0, j0, coverage, color):
    rows, cols = np.nonzero(coverage > 0.0)
    for r, c in zip(rows.tolist(), cols.tolist()):
        canvas.blend_pixel(i0 + c, j0 + r, color, float(coverage[r, c]))


def simplify_path(points: Sequence[PixelPoint], tolerance: float) -> List[PixelPoint]:
    """Drop vertices closer than `tolerance` to the last kept vertex.

    The first and last vertices are always kept.
    """
    points = list(points)
    if len(points) < 2:
        return points
    kept = [points[0]]
    for point in points[1:]:
        last = kept[-1]
        if math.hypot(point[0] - last[0], point[1] - last[1]) > tolerance:
            kept.append(point)
    if kept[-1] is not points[-1]:
        kept.append(points[-1])
    return kept


def draw_segment(canvas: Canvas, start: PixelPoint, end: PixelPoint, width: float, color):
    """Stroke one straight segment with round caps."""
    half = width / 2.0
    reach = half + ANTIALIAS_MARGIN
    (ax, ay), (bx, by) = start, end
    grid = _sample_grid(canvas,
                        min(ax, bx) - reach, min(ay, by) - reach,
                        max(ax, bx) + reach, max(ay, by) + reach)
    if grid is None:
        return
    i0, j0, px, py = grid
    dx, dy = bx - ax, by - ay
    length2 = dx * dx + dy * dy
    if length2 == 0.0:
        t = 0.0
    else:
        t = np.clip(((px - ax) * dx + (py - ay) * dy) / length2, 0.0, 1.0)
    distance = np.hypot(px - (ax + t * dx), py - (ay + t * dy))
    coverage = np.where(distance <= reach, stroke_coverage(distance, half), 0.0)
    _apply(canvas, i0, j0, coverage, color)


def draw_line(canvas: Canvas, points: Sequence[PixelPoint], width: float, color,
              simplify: bool = False, tolerance: float = 5.0):
    """Stroke a polyline given in canvas pixels.

    Parameters
    ----------
    canvas : Canvas
        Target canvas.
    points : sequence of PixelPoint
        Vertices in canvas pixels. Fewer than two vertices draw nothing.
    width : float
        Stroke width in pixels.
    color : Color
        Stroke color.
    simplify : bool, optional
        Apply `simplify_path` first, by default False.
    tolerance : float, optional
        Simplification distance in pixels, by default 5.0.
    """
    if simplify:
        points = simplify_path(points, tolerance)
    for start, end in zip(points, points[1:]):
        draw_segment(canvas, start, end, width, color)


def draw_circle(canvas: Canvas, center: PixelPoint, radius: float, color,
                filled: bool = True, stroke_width: float = 1.0):
    """Fill a disc or stroke a ring around `center`.

    A radius of zero (or less) draws nothing.
    """
    if radius <= 0:
        return
    cx, cy = center
    if filled:
        reach = radius + ANTIALIAS_MARGIN
    else:
        half = stroke_width / 2.0
        reach = radius + half + ANTIALIAS_MARGIN
    grid = _sample_grid(canvas, cx - reach, cy - reach, cx + reach, cy + reach)
    if grid is None:
        return
    i0, j0, px, py = grid
    distance = np.hypot(px - cx, py - cy)
    if filled:
        coverage = stroke_coverage(distance - radius, 0.0)
    else:
        coverage = stroke_coverage(np.abs(distance - radius), half)
    _apply(canvas, i0, j0, coverage, color)


def draw_icon(canvas: Canvas, anchor: PixelPoint, image: np.ndarray, offset: PixelPoint):
    """Composite an RGBA image so that `offset` inside it lands on `anchor`.

    The icon's own alpha channel is the coverage; no further smoothing.
    """
    x0 = math.floor(anchor[0] - offset[0] + 0.5)
    y0 = math.floor(anchor[1] - offset[1] + 0.5)
    h, w = image.shape[:2]
    c0, r0 = max(0, -x0), max(0, -y0)
    c1, r1 = min(w, canvas.width - x0), min(h, canvas.height - y0)
    if c0 >= c1 or r0 >= r1:
        return
    visible = image[r0:r1, c0:c1]
    rows, cols = np.nonzero(visible[:, :, 3])
    for r, c in zip(rows.tolist(), cols.tolist()):
        rgba = tuple(int(v) for v in visible[r, c])
        canvas.blend_pixel(x0 + c0 + c, y0 + r0 + r, rgba, 1.0)


def draw(drawable: Drawable, canvas: Canvas, viewport: Viewport):
    """Project a drawable into canvas space and rasterize it.

    This is the one place that dispatches on the drawable type.

    Raises
    ------
    TypeError
        If `drawable` is not a Line, Circle or Icon.
    """
    origin = viewport.origin()

    def to_canvas(point):
        return viewport.geo_to_canvas(point, origin)

    if isinstance(drawable, Line):
        points = [to_canvas(p) for p in drawable.points]
        draw_line(canvas, points, drawable.width, drawable.color,
                  drawable.simplify, drawable.tolerance)
    elif isinstance(drawable, Circle):
        draw_circle(canvas, to_canvas(drawable.center), drawable.radius, drawable.color,
                    drawable.filled, drawable.stroke_width)
    elif isinstance(drawable, Icon):
        draw_icon(canvas, to_canvas(drawable.anchor), drawable.image, drawable.offset)
    else:
        raise TypeError(f"Cannot draw {type(drawable).__name__}")
    logger.debug("Drew %s", type(drawable).__name__)
