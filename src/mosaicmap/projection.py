"""Web Mercator projection between geographic, world pixel and tile space.

World pixel space spans ``[0, tile_size * 2**zoom]`` on both axes with the
origin at the north-west corner of the projected world. The spherical
Mercator math is delegated to mercantile (EPSG:3857 meters), which is then
scaled to pixels.
"""
import math
import numbers
from dataclasses import dataclass
from typing import NamedTuple, Tuple

import mercantile

from . import config
from .errors import InvalidCoordinate, InvalidZoom

WEBMERCATOR_RADIUS = 6378137.0
HALF_CIRCUMFERENCE = math.pi * WEBMERCATOR_RADIUS
MAX_LATITUDE = 85.0511287798066
MIN_ZOOM = 0
TILE_SIZE = 256


class PixelPoint(NamedTuple):
    """Floating point pixel position (world or canvas space)."""
    x: float
    y: float


@dataclass(frozen=True)
class GeoPoint:
    """Longitude/latitude pair in degrees.

    Raises `InvalidCoordinate` on construction when the point cannot be
    projected: longitude outside [-180, 180], latitude beyond
    +/-`MAX_LATITUDE`, or a non-finite value.
    """
    lon: float
    lat: float

    def __post_init__(self):
        try:
            lon = float(self.lon)
            lat = float(self.lat)
        except (TypeError, ValueError):
            raise InvalidCoordinate(
                f"Coordinates must be numbers, got ({self.lon!r}, {self.lat!r})")
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise InvalidCoordinate(f"Coordinates must be finite, got ({lon}, {lat})")
        if not -180.0 <= lon <= 180.0:
            raise InvalidCoordinate(f"Longitude {lon} outside [-180, 180]")
        if not -MAX_LATITUDE <= lat <= MAX_LATITUDE:
            raise InvalidCoordinate(
                f"Latitude {lat} outside Web Mercator range +/-{MAX_LATITUDE}")
        object.__setattr__(self, "lon", lon)
        object.__setattr__(self, "lat", lat)

    def __iter__(self):
        yield self.lon
        yield self.lat


def clamp_latitude(lat: float) -> float:
    """Clamp a latitude into the projectable range."""
    return max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))


def check_zoom(zoom, max_zoom=None) -> int:
    """Validate a zoom level and return it as an int.

    Parameters
    ----------
    zoom : int
        Zoom level to check.
    max_zoom : int, optional
        Highest accepted level. If None, uses the ``max_zoom`` setting.

    Raises
    ------
    InvalidZoom
        If zoom is not an integer or lies outside ``[MIN_ZOOM, max_zoom]``.
    """
    max_zoom = config.get("max_zoom") if max_zoom is None else max_zoom
    if isinstance(zoom, bool) or not isinstance(zoom, numbers.Integral):
        raise InvalidZoom(f"Zoom must be an integer, got {zoom!r}")
    if not MIN_ZOOM <= zoom <= max_zoom:
        raise InvalidZoom(f"Zoom {zoom} outside [{MIN_ZOOM}, {max_zoom}]")
    return int(zoom)


def world_size(zoom: int, tile_size: int = TILE_SIZE) -> int:
    """Edge length of the world in pixels at a zoom level."""
    return tile_size * 2 ** check_zoom(zoom)


def check_tile(tile: mercantile.Tile) -> mercantile.Tile:
    """Raise `InvalidCoordinate` unless ``0 <= x, y < 2**z``."""
    check_zoom(tile.z)
    n = 2 ** tile.z
    if not (0 <= tile.x < n and 0 <= tile.y < n):
        raise InvalidCoordinate(f"Tile {tile.z}/{tile.x}/{tile.y} outside the zoom {tile.z} grid")
    return tile


def geo_to_world_pixel(point: GeoPoint, zoom: int, tile_size: int = TILE_SIZE) -> PixelPoint:
    """Project a geographic point to world pixel coordinates.

    Parameters
    ----------
    point : GeoPoint
        Longitude/latitude in degrees.
    zoom : int
        Zoom level.
    tile_size : int, optional
        Tile edge in pixels, by default 256.

    Returns
    -------
    PixelPoint
        Position in world pixels.
    """
    size = world_size(zoom, tile_size)
    x_m, y_m = mercantile.xy(point.lon, point.lat)
    px = (x_m + HALF_CIRCUMFERENCE) / (2 * HALF_CIRCUMFERENCE) * size
    py = (HALF_CIRCUMFERENCE - y_m) / (2 * HALF_CIRCUMFERENCE) * size
    if not (math.isfinite(px) and math.isfinite(py)):
        raise InvalidCoordinate(f"({point.lon}, {point.lat}) projects to a non-finite pixel")
    return PixelPoint(px, py)


def world_pixel_to_geo(pixel: PixelPoint, zoom: int, tile_size: int = TILE_SIZE) -> GeoPoint:
    """Inverse of `geo_to_world_pixel`.

    Raises
    ------
    InvalidCoordinate
        If the pixel lies outside the world.
    """
    size = world_size(zoom, tile_size)
    x, y = pixel
    if not (0 <= x <= size and 0 <= y <= size):
        raise InvalidCoordinate(f"Pixel ({x}, {y}) outside the zoom {zoom} world")
    x_m = x / size * 2 * HALF_CIRCUMFERENCE - HALF_CIRCUMFERENCE
    y_m = HALF_CIRCUMFERENCE - y / size * 2 * HALF_CIRCUMFERENCE
    lnglat = mercantile.lnglat(x_m, y_m)
    # float noise at the world edges can overshoot the limits by an ulp
    return GeoPoint(max(-180.0, min(180.0, lnglat.lng)), clamp_latitude(lnglat.lat))


def world_pixel_to_tile(pixel: PixelPoint, zoom: int,
                        tile_size: int = TILE_SIZE) -> Tuple[mercantile.Tile, PixelPoint]:
    """Split a world pixel into its tile and the offset inside that tile.

    A pixel lying exactly on the east or south world edge belongs to the
    last tile of the row or column.

    Returns
    -------
    tuple
        (mercantile.Tile, PixelPoint) with the local offset in
        ``[0, tile_size)``.

    Raises
    ------
    InvalidCoordinate
        If the pixel lies outside the world.
    """
    size = world_size(zoom, tile_size)
    x, y = pixel
    if not (0 <= x <= size and 0 <= y <= size):
        raise InvalidCoordinate(f"Pixel ({x}, {y}) outside the zoom {zoom} world")
    x = min(x, math.nextafter(size, 0))
    y = min(y, math.nextafter(size, 0))
    tx, lx = divmod(x, tile_size)
    ty, ly = divmod(y, tile_size)
    return mercantile.Tile(int(tx), int(ty), zoom), PixelPoint(lx, ly)


def geo_to_tile(point: GeoPoint, zoom: int,
                tile_size: int = TILE_SIZE) -> Tuple[mercantile.Tile, PixelPoint]:
    """Tile containing a geographic point and the point's offset in it."""
    return world_pixel_to_tile(geo_to_world_pixel(point, zoom, tile_size), zoom, tile_size)


def tile_to_geo(tile: mercantile.Tile, local=None, tile_size: int = TILE_SIZE) -> GeoPoint:
    """Geographic position of a pixel inside a tile.

    Parameters
    ----------
    tile : mercantile.Tile
        Tile index.
    local : PixelPoint, optional
        Offset inside the tile. Defaults to the north-west corner.
    tile_size : int, optional
        Tile edge in pixels, by default 256.
    """
    check_tile(tile)
    lx, ly = local if local is not None else (0.0, 0.0)
    pixel = PixelPoint(tile.x * tile_size + lx, tile.y * tile_size + ly)
    return world_pixel_to_geo(pixel, tile.z, tile_size)
