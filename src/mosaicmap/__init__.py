"""Static slippy-map rendering with vector overlays.

Example
-------
>>> from mosaicmap import Circle, Line, MapRenderer
>>> renderer = MapRenderer(width=400, height=300)
>>> renderer.add(Line([(10.0, 59.0), (10.1, 59.1)], width=3, color="255,0,0"))
>>> renderer.add(Circle((10.05, 59.05), radius=6, color="#0000ffc0"))
>>> renderer.save_png("route.png")
"""
from .canvas import Canvas, PixelBuffer
from .drawables import Circle, Color, Icon, Line
from .errors import (IconDecodeFailure, InvalidCoordinate, InvalidViewport,
                     InvalidZoom, MosaicMapError, TileUnavailable)
from .imaging import encode_png, load_icon, save_png
from .projection import (GeoPoint, PixelPoint, geo_to_tile, geo_to_world_pixel,
                         tile_to_geo, world_pixel_to_geo, world_pixel_to_tile)
from .renderer import MapRenderer, RenderedMap, fit_viewport
from .tile_sources import DirectoryTileSource, HTTPTileSource, SolidTileSource
from .tilegrid import PlacedTile, Viewport, resolve_tiles

__version__ = "0.1.0"
