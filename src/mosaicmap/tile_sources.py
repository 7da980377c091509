"""Tile sources feeding the base layer.

A tile source is any callable taking a `mercantile.Tile` and returning the
decoded tile as an ``(h, w, 4)`` uint8 array (or a PIL image). A source
signals a tile it cannot deliver by raising `TileUnavailable` or returning
None; network errors, missing tiles and undecodable data are all reported
the same way.
"""
import logging
import pathlib

import mercantile
import numpy as np
import requests

from . import config
from .errors import TileUnavailable
from .imaging import DECODE_ERRORS, decode_image

logger = logging.getLogger(__name__)


class HTTPTileSource:
    """Fetch tiles from an XYZ tile server.

    Parameters
    ----------
    url_template : str, optional
        URL with ``{z}``, ``{x}``, ``{y}`` and optionally ``{s}`` (subdomain)
        placeholders. If None, uses the ``url_template`` setting.
    timeout : float, optional
        Request timeout in seconds. If None, uses ``request_timeout``.
    headers : dict, optional
        Extra request headers. A User-Agent from the ``user_agent`` setting
        is always sent unless overridden here.
    session : requests.Session, optional
        Session to issue requests with. A new one is created by default.
    subdomains : str, optional
        Characters substituted for ``{s}``, by default "abc".
    """

    def __init__(self, url_template=None, timeout=None, headers=None,
                 session=None, subdomains="abc"):
        self.url_template = url_template or config.get("url_template")
        self.timeout = timeout if timeout is not None else config.get("request_timeout")
        self.headers = {"User-Agent": config.get("user_agent")}
        self.headers.update(headers or {})
        self.session = session or requests.Session()
        self.subdomains = subdomains or "a"

    def url_for(self, tile: mercantile.Tile) -> str:
        """Fill the URL template for a tile."""
        sub = self.subdomains[(tile.x + tile.y) % len(self.subdomains)]
        return self.url_template.format(z=tile.z, x=tile.x, y=tile.y, s=sub)

    def __call__(self, tile: mercantile.Tile) -> np.ndarray:
        url = self.url_for(tile)
        logger.debug("GET %s", url)
        try:
            res = self.session.get(url, headers=self.headers, timeout=self.timeout)
            res.raise_for_status()
        except requests.RequestException as err:
            raise TileUnavailable(tile, str(err), url=url) from err
        try:
            return decode_image(res.content)
        except DECODE_ERRORS as err:
            raise TileUnavailable(tile, f"undecodable tile data: {err}", url=url) from err


class DirectoryTileSource:
    """Read tiles from a ``{root}/{z}/{x}/{y}.png`` directory tree.

    Parameters
    ----------
    root : str or pathlib.Path
        Base directory of the tile pyramid.
    suffix : str, optional
        File extension including the dot, by default ".png".
    """

    def __init__(self, root, suffix=".png"):
        self.root = pathlib.Path(root)
        self.suffix = suffix

    def path_for(self, tile: mercantile.Tile) -> pathlib.Path:
        return self.root / str(tile.z) / str(tile.x) / f"{tile.y}{self.suffix}"

    def __call__(self, tile: mercantile.Tile) -> np.ndarray:
        path = self.path_for(tile)
        if not path.is_file():
            raise TileUnavailable(tile, "no such file", url=str(path))
        try:
            return decode_image(path.read_bytes())
        except DECODE_ERRORS as err:
            raise TileUnavailable(tile, f"unreadable tile: {err}", url=str(path)) from err


class SolidTileSource:
    """Offline source returning plain single-color tiles.

    Parameters
    ----------
    color : tuple of int, optional
        RGBA fill, by default opaque white.
    tile_size : int, optional
        Tile edge in pixels. If None, uses the ``tile_size`` setting.
    """

    def __init__(self, color=(255, 255, 255, 255), tile_size=None):
        color = tuple(color)
        self.color = color if len(color) == 4 else color + (255,)
        self.tile_size = tile_size or config.get("tile_size")

    def __call__(self, tile: mercantile.Tile) -> np.ndarray:
        return np.full((self.tile_size, self.tile_size, 4), self.color, dtype=np.uint8)
