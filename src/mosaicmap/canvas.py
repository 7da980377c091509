"""RGBA canvas that tiles are blitted onto and overlays are blended into.

The canvas is the only place pixels are written. Rasterizers go through
`Canvas.blend_pixel`, tiles through `Canvas.blit`; both clip silently to the
canvas bounds.
"""
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image

from .errors import InvalidViewport


@dataclass(frozen=True)
class PixelBuffer:
    """Finished image: flat RGBA bytes, row-major, top-left origin.

    Attributes
    ----------
    width : int
        Image width in pixels.
    height : int
        Image height in pixels.
    data : bytes
        ``width * height * 4`` bytes, straight (non-premultiplied) alpha.
    """
    width: int
    height: int
    data: bytes

    def to_array(self) -> np.ndarray:
        """Read-only ``(height, width, 4)`` uint8 view of the data."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


def as_rgba_array(image) -> np.ndarray:
    """Coerce a PIL image or array into an ``(h, w, 4)`` uint8 array.

    Three-channel input gets an opaque alpha channel.
    """
    if isinstance(image, Image.Image):
        return np.asarray(image.convert("RGBA"), dtype=np.uint8)
    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (h, w, 3|4) pixel array, got shape {arr.shape}")
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


class Canvas:
    """Owned RGBA pixel buffer of fixed size.

    Parameters
    ----------
    width : int
        Width in pixels.
    height : int
        Height in pixels.

    Raises
    ------
    InvalidViewport
        If either dimension is not a positive integer.
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise InvalidViewport(f"Canvas size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self._pixels = np.zeros((self.height, self.width, 4), dtype=np.uint8)

    def _live(self) -> np.ndarray:
        if self._pixels is None:
            raise RuntimeError("Canvas has been consumed by into_buffer()")
        return self._pixels

    def blit(self, tile_image, offset):
        """Copy an image onto the canvas with its top-left corner at `offset`.

        Pixels are replaced, not blended. Parts falling outside the canvas
        are cropped; an image entirely outside is skipped.
        """
        pixels = self._live()
        src = as_rgba_array(tile_image)
        ox = math.floor(offset[0] + 0.5)
        oy = math.floor(offset[1] + 0.5)
        x0, y0 = max(ox, 0), max(oy, 0)
        x1 = min(ox + src.shape[1], self.width)
        y1 = min(oy + src.shape[0], self.height)
        if x0 >= x1 or y0 >= y1:
            return
        pixels[y0:y1, x0:x1] = src[y0 - oy:y1 - oy, x0 - ox:x1 - ox]

    def blend_pixel(self, x: int, y: int, color, coverage: float = 1.0):
        """Composite `color` over one pixel ("source-over"), scaled by coverage.

        Parameters
        ----------
        x, y : int
            Canvas pixel. Out-of-bounds positions are ignored.
        color : sequence of int
            (r, g, b) or (r, g, b, a) in 0-255.
        coverage : float, optional
            Fraction of the pixel covered, clamped to [0, 1], by default 1.
        """
        pixels = self._live()
        if not (0 <= x < self.width and 0 <= y < self.height):
            return
        alpha = color[3] if len(color) > 3 else 255
        src_a = alpha / 255.0 * min(max(coverage, 0.0), 1.0)
        if src_a <= 0.0:
            return
        dst = pixels[y, x]
        dst_a = dst[3] / 255.0
        out_a = src_a + dst_a * (1.0 - src_a)
        keep = dst_a * (1.0 - src_a)
        for c in range(3):
            value = (color[c] * src_a + float(dst[c]) * keep) / out_a
            pixels[y, x, c] = min(255, int(value + 0.5))
        pixels[y, x, 3] = min(255, int(out_a * 255.0 + 0.5))

    def get_pixel(self, x: int, y: int):
        """Return the (r, g, b, a) tuple at a pixel."""
        r, g, b, a = self._live()[y, x]
        return int(r), int(g), int(b), int(a)

    def into_buffer(self) -> PixelBuffer:
        """Hand over the pixels and retire the canvas.

        Any later call on this canvas raises `RuntimeError`.
        """
        pixels = self._live()
        self._pixels = None
        return PixelBuffer(self.width, self.height, pixels.tobytes())
