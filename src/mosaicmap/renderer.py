"""Static map rendering pipeline.

`MapRenderer` owns the output configuration and the ordered list of
drawables. `MapRenderer.render` runs the pipeline:

1. build and validate the viewport (explicit, or fitted to the drawables),
2. resolve the tile grid,
3. fetch tiles in a thread pool, recording failures as missing tiles,
4. blit the fetched tiles in grid order,
5. draw the overlays in insertion order,
6. hand back the finished buffer.

Fetching is the only concurrent step. Blits and draws run on the calling
thread against a canvas that belongs to that single render.
"""
import logging
import numbers
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional, Tuple

import mercantile
from tqdm import tqdm

from . import config
from .canvas import Canvas, PixelBuffer, as_rgba_array
from .drawables import DRAWABLE_TYPES, Drawable
from .errors import InvalidViewport, TileUnavailable
from .imaging import encode_png, save_png
from .projection import (GeoPoint, PixelPoint, check_zoom, geo_to_world_pixel,
                         world_pixel_to_geo, world_size)
from .rasterizers import draw
from .tile_sources import HTTPTileSource
from .tilegrid import Viewport, resolve_tiles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedMap(PixelBuffer):
    """Rendered image plus what went into it.

    Attributes
    ----------
    missing_tiles : tuple of mercantile.Tile
        Tiles that could not be fetched, in grid order. Their area is left
        transparent.
    viewport : Viewport
        The viewport that was rendered (useful when it was auto-fitted).
    """
    missing_tiles: Tuple[mercantile.Tile, ...] = ()
    viewport: Optional[Viewport] = None


def fit_viewport(drawables, width, height, tile_size=None, padding=(0, 0),
                 zoom=None, center=None, max_zoom=None) -> Viewport:
    """Choose the zoom and/or center that show all drawables.

    Parameters
    ----------
    drawables : sequence of Drawable
        Overlays to fit, at least one.
    width, height : int
        Output size in pixels.
    tile_size : int, optional
        Tile edge in pixels. If None, uses the ``tile_size`` setting.
    padding : tuple of int, optional
        Minimum (x, y) margin between the drawables and the image edge.
    zoom : int, optional
        Fixed zoom. If None, the highest zoom up to `max_zoom` at which the
        drawables fit is used, or 0 if they never fit.
    center : GeoPoint or (lon, lat), optional
        Fixed center. If None, the middle of the drawables' extent is used.
        With a fixed center the extent is mirrored about it before fitting.
    max_zoom : int, optional
        Highest zoom to try. If None, uses the ``fit_max_zoom`` setting.

    Raises
    ------
    InvalidViewport
        If there are no drawables to fit.
    """
    if not drawables:
        raise InvalidViewport("center and zoom are required for a map without drawables")
    tile_size = tile_size or config.get("tile_size")
    max_zoom = config.get("fit_max_zoom") if max_zoom is None else max_zoom
    max_zoom = min(max_zoom, config.get("max_zoom"))
    pad_x, pad_y = padding
    if center is not None and not isinstance(center, GeoPoint):
        center = GeoPoint(*center)

    def extent_at(z):
        boxes = [d.world_extent(z, tile_size) for d in drawables]
        x0 = min(b[0] for b in boxes)
        y0 = min(b[1] for b in boxes)
        x1 = max(b[2] for b in boxes)
        y1 = max(b[3] for b in boxes)
        if center is not None:
            cx, cy = geo_to_world_pixel(center, z, tile_size)
            x0, x1 = min(x0, 2 * cx - x1), max(x1, 2 * cx - x0)
            y0, y1 = min(y0, 2 * cy - y1), max(y1, 2 * cy - y0)
        return x0, y0, x1, y1

    if zoom is None:
        zoom = 0
        for z in range(max_zoom, -1, -1):
            x0, y0, x1, y1 = extent_at(z)
            if x1 - x0 <= width - 2 * pad_x and y1 - y0 <= height - 2 * pad_y:
                zoom = z
                break

    if center is None:
        x0, y0, x1, y1 = extent_at(zoom)
        size = world_size(zoom, tile_size)
        mid = PixelPoint(min(max((x0 + x1) / 2, 0.0), size),
                         min(max((y0 + y1) / 2, 0.0), size))
        center = world_pixel_to_geo(mid, zoom, tile_size)

    logger.info("Fitted viewport: center=(%.5f, %.5f) zoom=%d", center.lon, center.lat, zoom)
    return Viewport(center, zoom, width, height, tile_size)


def _check_size(width, height):
    for name, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
            raise InvalidViewport(f"{name} must be a positive integer, got {value!r}")


class MapRenderer:
    """Render a static map with overlays.

    Parameters
    ----------
    width : int, optional
        Output width in pixels. If None, uses the ``width`` setting.
    height : int, optional
        Output height in pixels. If None, uses the ``height`` setting.
    center : GeoPoint or (lon, lat), optional
        Map center. If None, derived from the drawables.
    zoom : int, optional
        Zoom level. If None, the highest zoom showing all drawables.
    tile_size : int, optional
        Tile edge in pixels. If None, uses the ``tile_size`` setting.
    padding : tuple of int, optional
        (x, y) margin kept free when fitting to drawables, by default (0, 0).
    tile_source : callable, optional
        Tile source (see `mosaicmap.tile_sources`). If None, an
        `HTTPTileSource` for the ``url_template`` setting is created.
    workers : int, optional
        Parallel tile fetches. If None, uses ``fetch_workers``.
    verbose : bool, optional
        Show a progress bar while fetching. If None, uses ``verbose``.

    Raises
    ------
    InvalidCoordinate
        If `center` is outside the projectable range.
    InvalidZoom
        If `zoom` is outside the supported range.
    """

    def __init__(self, width=None, height=None, center=None, zoom=None, tile_size=None,
                 padding=(0, 0), tile_source=None, workers=None, verbose=None):
        self.width = config.get("width") if width is None else width
        self.height = config.get("height") if height is None else height
        self.center = None
        if center is not None:
            self.center = center if isinstance(center, GeoPoint) else GeoPoint(*center)
        self.zoom = None if zoom is None else check_zoom(zoom)
        self.tile_size = tile_size or config.get("tile_size")
        self.padding = tuple(padding)
        self.tile_source = tile_source
        self.workers = workers or config.get("fetch_workers")
        self.verbose = config.get("verbose") if verbose is None else verbose
        self._drawables = []

    @property
    def drawables(self):
        """Drawables in paint order."""
        return tuple(self._drawables)

    def add(self, drawable: Drawable) -> Drawable:
        """Append a drawable; it paints over everything added before it."""
        if not isinstance(drawable, DRAWABLE_TYPES):
            raise TypeError(f"Expected Line, Circle or Icon, got {type(drawable).__name__}")
        self._drawables.append(drawable)
        return drawable

    def extend(self, drawables):
        for drawable in drawables:
            self.add(drawable)

    def viewport(self) -> Viewport:
        """The viewport a render would use right now."""
        _check_size(self.width, self.height)
        if self.center is not None and self.zoom is not None:
            return Viewport(self.center, self.zoom, self.width, self.height, self.tile_size)
        return fit_viewport(self._drawables, self.width, self.height, self.tile_size,
                            self.padding, zoom=self.zoom, center=self.center)

    def render(self) -> RenderedMap:
        """Run the pipeline and return the composited image.

        Tiles that fail to load are listed in `RenderedMap.missing_tiles`
        and leave their area transparent; they never abort the render.

        Raises
        ------
        InvalidViewport
            If the output size is not positive, or the map has neither an
            explicit center/zoom nor drawables to fit.
        """
        viewport = self.viewport().validate()
        canvas = Canvas(viewport.width, viewport.height)
        placed = resolve_tiles(viewport)
        images = self._fetch_tiles([p.tile for p in placed])

        missing = []
        for tile, offset in placed:
            image = images.get(tile)
            if image is None:
                missing.append(tile)
                continue
            canvas.blit(image, offset)

        for drawable in self._drawables:
            draw(drawable, canvas, viewport)

        if missing:
            logger.warning("Rendered with %d of %d tiles missing", len(missing), len(placed))
        buf = canvas.into_buffer()
        return RenderedMap(buf.width, buf.height, buf.data, tuple(missing), viewport)

    def render_png(self) -> bytes:
        """Render and encode as PNG."""
        return encode_png(self.render())

    def save_png(self, path) -> RenderedMap:
        """Render and write a PNG file."""
        result = self.render()
        save_png(result, path)
        return result

    def _fetch_tiles(self, tiles):
        """Fetch tiles concurrently; failed tiles map to None."""
        source = self.tile_source
        if source is None:
            source = self.tile_source = HTTPTileSource()
        results = {}
        if not tiles:
            return results

        def fetch(tile):
            try:
                image = source(tile)
                if image is None:
                    raise TileUnavailable(tile, "source returned no image")
                return as_rgba_array(image)
            except TileUnavailable as err:
                logger.warning("%s", err)
            except ValueError as err:
                logger.warning("Tile %s/%s/%s has unusable pixels: %s", tile.z, tile.x, tile.y, err)
            return None

        with ThreadPoolExecutor(max_workers=self.workers) as exe, \
                tqdm(total=len(tiles), desc="Fetching tiles", unit="tile",
                     disable=not self.verbose) as pbar:
            futures = {exe.submit(fetch, tile): tile for tile in tiles}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
                pbar.update(1)
        return results
