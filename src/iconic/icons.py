"""Icon decoding, fixed-size normalization and ready-to-serve handles.

Every catalog icon is a 64x64 PNG. Images of any other size are scaled
directly to 64x64 with nearest-neighbour sampling: aspect ratio is not kept,
and the same input always yields the same pixels. Images that are already
64x64 are written back untouched.

Icon is the immutable ready-to-serve handle: the encoded PNG plus the
`data:image/png;base64,...` favicon string a status response carries.
"""

import base64
import functools
import struct
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path

from loguru import logger
from PIL import Image, UnidentifiedImageError

from .errors import InvalidImage

ICON_SIZE = (64, 64)

# Larger sources are refused before their pixels are allocated.
MAX_SOURCE_PIXELS = 4096 * 4096

# What Pillow may raise from open() or load() on a corrupt file.
_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    ValueError,
    SyntaxError,
    EOFError,
    IndexError,
    TypeError,
    struct.error,
)

# Modes PNG can store as-is; anything else is converted to RGBA first.
_PNG_MODES = frozenset({"1", "L", "LA", "P", "RGB", "RGBA"})


@dataclass(frozen=True)
class Icon:
    """Ready-to-serve icon: the catalog filename and its encoded PNG."""

    name: str
    png: bytes = field(repr=False)

    @functools.cached_property
    def favicon(self) -> str:
        """Data URI for the icon, as sent in a status response."""
        return "data:image/png;base64," + base64.b64encode(self.png).decode("ascii")


def decode(payload: bytes, name: str = "<bytes>") -> Image.Image:
    """Decode `payload` into a fully loaded Image. Raises InvalidImage on failure.

    Returns an open Image that the caller must close.
    """
    try:
        image = Image.open(BytesIO(payload))
    except _DECODE_ERRORS as e:
        raise InvalidImage(f"{name}: cannot decode image: {e}") from e
    width, height = image.size
    if width * height > MAX_SOURCE_PIXELS:
        image.close()
        raise InvalidImage(f"{name}: image is too large ({width}x{height})")
    try:
        image.load()
    except _DECODE_ERRORS as e:
        image.close()
        raise InvalidImage(f"{name}: cannot decode image: {e}") from e
    return image


def normalize(image: Image.Image, name: str = "<image>") -> Image.Image:
    """Scale `image` to ICON_SIZE if needed, returning the normalized image.

    Ownership semantics:
    - If no conversion needed: returns `image` unchanged (caller still owns it)
    - If conversion needed: closes `image` and returns a new Image (caller owns new image)
    """
    result = image
    if result.mode not in _PNG_MODES:
        result = result.convert("RGBA")
    if result.size != ICON_SIZE:
        logger.info(f"{name}: Image is {result.size[0]}x{result.size[1]}, not 64x64. Resizing...")
        result = result.resize(ICON_SIZE, Image.Resampling.NEAREST)
    if result is not image:
        image.close()
    return result


def encode_png(image: Image.Image) -> bytes:
    buf = BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def normalize_bytes(payload: bytes, name: str = "<bytes>") -> bytes:
    """Decode, normalize and re-encode `payload` as a 64x64 PNG."""
    with normalize(decode(payload, name), name) as image:
        return encode_png(image)


def load_icon(path: Path) -> Icon:
    """Read a catalog file into an Icon. Raises InvalidImage unless it is a decodable 64x64 image."""
    payload = path.read_bytes()
    with decode(payload, path.name) as image:
        if image.size != ICON_SIZE:
            raise InvalidImage(f"{path.name}: icon must be 64x64, found {image.size[0]}x{image.size[1]}")
        if image.format != "PNG":
            payload = encode_png(image)
    return Icon(name=path.name, png=payload)
