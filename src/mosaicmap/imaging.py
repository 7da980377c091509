"""Image decoding and encoding with Pillow.

These helpers sit at the edge of the pipeline: they turn files or bytes into
RGBA arrays for tiles and icons, and turn a finished `PixelBuffer` into PNG.
"""
import io
import pathlib

import numpy as np
from PIL import Image, UnidentifiedImageError

from .canvas import PixelBuffer
from .errors import IconDecodeFailure

# Pillow raises these for unreadable or oversized images
DECODE_ERRORS = (OSError, Image.DecompressionBombError)


def decode_image(data) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) into an RGBA array.

    Parameters
    ----------
    data : bytes
        Encoded image.

    Returns
    -------
    numpy.ndarray
        ``(height, width, 4)`` uint8 array.

    Raises
    ------
    OSError, PIL.Image.DecompressionBombError
        If Pillow cannot identify or read the image, or it is too large.
    """
    with Image.open(io.BytesIO(data)) as img:
        return np.asarray(img.convert("RGBA"), dtype=np.uint8)


def load_icon(source) -> np.ndarray:
    """Decode an icon from a path or from raw bytes.

    Parameters
    ----------
    source : str, pathlib.Path or bytes
        Image file path, or the encoded image itself.

    Returns
    -------
    numpy.ndarray
        ``(height, width, 4)`` uint8 array ready for `mosaicmap.Icon`.

    Raises
    ------
    IconDecodeFailure
        If the file is missing or the data is not a readable image.
    """
    try:
        if isinstance(source, (bytes, bytearray, memoryview)):
            return decode_image(bytes(source))
        path = pathlib.Path(source)
        return decode_image(path.read_bytes())
    except DECODE_ERRORS + (UnidentifiedImageError, ValueError) as err:
        raise IconDecodeFailure(f"Could not decode icon {source!r:.80}: {err}") from err


def to_image(buffer: PixelBuffer) -> Image.Image:
    """Wrap a rendered buffer in a PIL RGBA image."""
    return Image.frombytes("RGBA", (buffer.width, buffer.height), buffer.data)


def encode_png(buffer: PixelBuffer) -> bytes:
    """Encode a rendered buffer as PNG bytes."""
    out = io.BytesIO()
    to_image(buffer).save(out, format="PNG")
    return out.getvalue()


def save_png(buffer: PixelBuffer, path):
    """Write a rendered buffer to a PNG file, creating parent directories."""
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    to_image(buffer).save(path, format="PNG")
    return path
