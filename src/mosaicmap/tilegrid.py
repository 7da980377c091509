"""Viewport definition and tile grid resolution.

The tile grid resolver lists every slippy-map tile that a viewport touches,
together with the canvas position of each tile's top-left corner. Tiles
outside the world grid are dropped; longitude is not wrapped across the
antimeridian.
"""
import logging
import math
import numbers
from dataclasses import dataclass
from typing import List, NamedTuple

import mercantile

from .errors import InvalidViewport
from .projection import (GeoPoint, PixelPoint, TILE_SIZE, check_zoom,
                         geo_to_world_pixel)

logger = logging.getLogger(__name__)


class PlacedTile(NamedTuple):
    """A tile and the canvas offset of its top-left corner."""
    tile: mercantile.Tile
    offset: PixelPoint


@dataclass(frozen=True)
class Viewport:
    """The part of the map an output image shows.

    Parameters
    ----------
    center : GeoPoint
        Geographic center of the image.
    zoom : int
        Zoom level, validated on construction.
    width : int
        Output width in pixels.
    height : int
        Output height in pixels.
    tile_size : int, optional
        Tile edge in pixels, by default 256.

    Raises
    ------
    InvalidZoom
        If zoom is outside the supported range.
    InvalidCoordinate
        If center is not a valid geographic point.
    """
    center: GeoPoint
    zoom: int
    width: int
    height: int
    tile_size: int = TILE_SIZE

    def __post_init__(self):
        if not isinstance(self.center, GeoPoint):
            object.__setattr__(self, "center", GeoPoint(*self.center))
        object.__setattr__(self, "zoom", check_zoom(self.zoom))

    def validate(self):
        """Check the output dimensions, raising `InvalidViewport`."""
        for name in ("width", "height", "tile_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
                raise InvalidViewport(f"{name} must be a positive integer, got {value!r}")
        return self

    def center_world_pixel(self) -> PixelPoint:
        """World pixel position of the center."""
        return geo_to_world_pixel(self.center, self.zoom, self.tile_size)

    def origin(self) -> PixelPoint:
        """World pixel position of the canvas' top-left corner.

        Snapped to whole pixels so that tiles land on pixel boundaries.
        """
        cx, cy = self.center_world_pixel()
        return PixelPoint(float(math.floor(cx - self.width / 2 + 0.5)),
                          float(math.floor(cy - self.height / 2 + 0.5)))

    def geo_to_canvas(self, point: GeoPoint, origin=None) -> PixelPoint:
        """Project a geographic point to canvas pixel coordinates.

        Pass `origin` (from `origin()`) to skip recomputing it when projecting
        many points.
        """
        px, py = geo_to_world_pixel(point, self.zoom, self.tile_size)
        left, top = self.origin() if origin is None else origin
        return PixelPoint(px - left, py - top)


def resolve_tiles(viewport: Viewport) -> List[PlacedTile]:
    """List the tiles covering a viewport and where they go on the canvas.

    Parameters
    ----------
    viewport : Viewport
        The area to cover.

    Returns
    -------
    list of PlacedTile
        Tiles in row-major order (north to south, then west to east). Each
        tile appears once; partially visible edge tiles are included.

    Raises
    ------
    InvalidZoom
        If the viewport zoom is outside the supported range.
    """
    zoom = check_zoom(viewport.zoom)
    ts = viewport.tile_size
    n = 2 ** zoom
    left, top = viewport.origin()
    right = left + viewport.width
    bottom = top + viewport.height

    x_min = max(0, math.floor(left / ts))
    x_max = min(n, math.ceil(right / ts))
    y_min = max(0, math.floor(top / ts))
    y_max = min(n, math.ceil(bottom / ts))

    placed = []
    for ty in range(y_min, y_max):
        for tx in range(x_min, x_max):
            offset = PixelPoint(tx * ts - left, ty * ts - top)
            placed.append(PlacedTile(mercantile.Tile(tx, ty, zoom), offset))
    logger.debug("Viewport %s needs %d tiles", viewport, len(placed))
    return placed
