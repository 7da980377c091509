"""Exceptions raised by mosaicmap.

Construction-time errors (coordinates, zoom, viewport, icons) are fatal and
propagate to the caller. `TileUnavailable` is the only recoverable kind: the
renderer records the tile as missing and keeps going.
"""


class MosaicMapError(Exception):
    """Base class for all mosaicmap errors."""


class InvalidCoordinate(MosaicMapError, ValueError):
    """Geographic or pixel input outside the projectable range."""


class InvalidZoom(InvalidCoordinate):
    """Zoom level outside the supported range."""


class InvalidViewport(MosaicMapError, ValueError):
    """Output dimensions or viewport parameters that cannot be rendered."""


class IconDecodeFailure(MosaicMapError, ValueError):
    """Icon data that could not be decoded into an RGBA buffer."""


class TileUnavailable(MosaicMapError):
    """A single tile could not be fetched or decoded.

    Parameters
    ----------
    tile : mercantile.Tile
        The tile that failed.
    reason : str, optional
        Human readable cause.
    url : str, optional
        Location the tile was requested from, when there is one.
    """

    def __init__(self, tile, reason="", url=None):
        self.tile = tile
        self.reason = reason
        self.url = url
        where = f" from {url}" if url else ""
        super().__init__(f"Tile {tile.z}/{tile.x}/{tile.y} unavailable{where}: {reason}")
