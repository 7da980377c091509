"""Overlay primitives painted on top of the tile mosaic.

The set of drawables is closed: `Line`, `Circle` and `Icon`. All of them are
immutable and validate their geographic input on construction, so a bad
coordinate fails when the drawable is built rather than at render time.
"""
import math
from dataclasses import dataclass, field
from typing import NamedTuple, Tuple, Union

import numpy as np

from .canvas import as_rgba_array
from .errors import IconDecodeFailure
from .projection import GeoPoint, PixelPoint, TILE_SIZE, geo_to_world_pixel


class Color(NamedTuple):
    """RGBA color with 0-255 channels."""
    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def parse(cls, raw):
        """Parse a color from a string.

        Accepted formats:

        - R,G,B     / 255,255,255
        - R,G,B,A   / 255,255,255,255
        - #RRGGBB   / #aa20ff
        - #RRGGBBAA / #0120ab90
        """
        if not raw or not raw.strip():
            raise ValueError(f"invalid color {raw!r}")
        raw = raw.strip()
        if raw.startswith("#"):
            digits = raw[1:]
            if len(digits) not in (6, 8):
                raise ValueError(f"invalid color {raw!r}")
            try:
                values = [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]
            except ValueError:
                raise ValueError(f"invalid color {raw!r}")
        else:
            parts = [p.strip() for p in raw.split(",")]
            if len(parts) not in (3, 4):
                raise ValueError(f"invalid color {raw!r}")
            try:
                values = [int(p) for p in parts]
            except ValueError:
                raise ValueError(f"invalid color {raw!r}")
        return cls.coerce(values)

    @classmethod
    def coerce(cls, value):
        """Turn a Color, string or 3/4-sequence into a validated Color."""
        if isinstance(value, str):
            return cls.parse(value)
        values = tuple(int(v) for v in value)
        if len(values) not in (3, 4):
            raise ValueError(f"Color needs 3 or 4 channels, got {value!r}")
        for v in values:
            if not 0 <= v <= 255:
                raise ValueError(f"invalid color value {v} in {value!r}")
        return cls(*values)


BLACK = Color(0, 0, 0)

# world pixel bounding box: (x_min, y_min, x_max, y_max)
Extent = Tuple[float, float, float, float]


def _as_geo(point) -> GeoPoint:
    return point if isinstance(point, GeoPoint) else GeoPoint(*point)


def _check_size(name, value) -> float:
    """Return a pixel size as a float; it must be finite and >= 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


@dataclass(frozen=True)
class Line:
    """Polyline through geographic points.

    Parameters
    ----------
    points : sequence of GeoPoint or (lon, lat)
        Vertices in drawing order; at least one.
    width : float, optional
        Stroke width in pixels, by default 1.0.
    color : Color, optional
        Stroke color, by default opaque black.
    simplify : bool, optional
        Drop vertices closer than `tolerance` pixels to the previous kept
        one before drawing, by default False.
    tolerance : float, optional
        Simplification distance in pixels, by default 5.0.
    """
    points: Tuple[GeoPoint, ...]
    width: float = 1.0
    color: Color = BLACK
    simplify: bool = False
    tolerance: float = 5.0

    def __post_init__(self):
        points = tuple(_as_geo(p) for p in self.points)
        if not points:
            raise ValueError("A line needs at least one point")
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "width", _check_size("Line width", self.width))
        object.__setattr__(self, "tolerance", _check_size("Tolerance", self.tolerance))
        object.__setattr__(self, "color", Color.coerce(self.color))

    def world_extent(self, zoom: int, tile_size: int = TILE_SIZE) -> Extent:
        pixels = [geo_to_world_pixel(p, zoom, tile_size) for p in self.points]
        xs = [p.x for p in pixels]
        ys = [p.y for p in pixels]
        return min(xs), min(ys), max(xs), max(ys)


@dataclass(frozen=True)
class Circle:
    """Circle with a radius in pixels around a geographic center.

    Parameters
    ----------
    center : GeoPoint or (lon, lat)
        Circle center.
    radius : float
        Radius in pixels, >= 0. A zero radius draws nothing.
    color : Color, optional
        Fill or outline color, by default opaque black.
    filled : bool, optional
        Fill the disc (True, default) or only stroke its outline.
    stroke_width : float, optional
        Outline width in pixels when not filled, by default 1.0.
    """
    center: GeoPoint
    radius: float
    color: Color = BLACK
    filled: bool = True
    stroke_width: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "center", _as_geo(self.center))
        object.__setattr__(self, "radius", _check_size("Circle radius", self.radius))
        object.__setattr__(self, "stroke_width", _check_size("Stroke width", self.stroke_width))
        object.__setattr__(self, "color", Color.coerce(self.color))

    def world_extent(self, zoom: int, tile_size: int = TILE_SIZE) -> Extent:
        x, y = geo_to_world_pixel(self.center, zoom, tile_size)
        r = self.radius
        return x - r, y - r, x + r, y + r


@dataclass(frozen=True, eq=False)
class Icon:
    """Pre-rendered image pinned to a geographic anchor.

    Parameters
    ----------
    anchor : GeoPoint or (lon, lat)
        Geographic position of the icon's anchor pixel.
    image : numpy.ndarray or PIL.Image.Image
        Decoded RGBA pixels, shape ``(height, width, 4)``. See
        `mosaicmap.imaging.load_icon` for decoding files.
    offset : PixelPoint or (x, y), optional
        Position of the anchor inside the icon, in pixels from its top-left
        corner, by default (0, 0).

    Raises
    ------
    IconDecodeFailure
        If `image` is not a usable RGBA pixel buffer.
    """
    anchor: GeoPoint
    image: np.ndarray = field(repr=False)
    offset: PixelPoint = PixelPoint(0.0, 0.0)

    def __post_init__(self):
        try:
            pixels = np.array(as_rgba_array(self.image), dtype=np.uint8)
        except (TypeError, ValueError) as err:
            raise IconDecodeFailure(f"Icon image is not an RGBA buffer: {err}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise IconDecodeFailure("Icon image is empty")
        pixels.setflags(write=False)
        ox, oy = (float(v) for v in self.offset)
        if not (math.isfinite(ox) and math.isfinite(oy)):
            raise ValueError(f"Icon offset must be finite, got ({ox}, {oy})")
        object.__setattr__(self, "anchor", _as_geo(self.anchor))
        object.__setattr__(self, "image", pixels)
        object.__setattr__(self, "offset", PixelPoint(ox, oy))

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    def world_extent(self, zoom: int, tile_size: int = TILE_SIZE) -> Extent:
        x, y = geo_to_world_pixel(self.anchor, zoom, tile_size)
        left = x - self.offset.x
        top = y - self.offset.y
        return left, top, left + self.width, top + self.height


Drawable = Union[Line, Circle, Icon]
DRAWABLE_TYPES = (Line, Circle, Icon)
