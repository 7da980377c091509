"""Shared pytest fixtures for mosaicmap tests."""

import io
import tempfile
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from mosaicmap.errors import TileUnavailable


def tile_color(tile):
    """Deterministic opaque color for a tile, distinct per (x, y)."""
    return ((tile.x * 40 + 10) % 256, (tile.y * 40 + 20) % 256, tile.z % 256, 255)


class ColorTileSource:
    """Offline tile source painting each tile with `tile_color`.

    Tiles listed in `fail` raise `TileUnavailable`; tiles in `empty` return
    None. Every request is recorded in `requested`.
    """

    def __init__(self, tile_size=256, fail=(), empty=()):
        self.tile_size = tile_size
        self.fail = set(fail)
        self.empty = set(empty)
        self.requested = []

    def __call__(self, tile):
        self.requested.append(tile)
        if tile in self.fail:
            raise TileUnavailable(tile, "simulated outage")
        if tile in self.empty:
            return None
        return np.full((self.tile_size, self.tile_size, 4), tile_color(tile), dtype=np.uint8)


def png_bytes(array):
    """Encode an RGBA uint8 array as PNG bytes."""
    out = io.BytesIO()
    Image.fromarray(np.asarray(array, dtype=np.uint8)).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def color_source():
    """Provide a fresh tile source with one color per tile."""
    return ColorTileSource()


@pytest.fixture
def red_icon():
    """Provide a 4x6 icon: opaque red, except a transparent top row."""
    image = np.zeros((4, 6, 4), dtype=np.uint8)
    image[1:] = (255, 0, 0, 255)
    return image


@pytest.fixture
def tile_tree(temp_dir):
    """Provide a writer for ``root/z/x/y.png`` tile files under temp_dir."""
    def write(tile, color=(0, 128, 255, 255), size=256):
        path = temp_dir / str(tile.z) / str(tile.x) / f"{tile.y}.png"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(png_bytes(np.full((size, size, 4), color, dtype=np.uint8)))
        return path
    return write
