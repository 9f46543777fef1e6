"""Image to NIM conversion."""

# Reference: NIM file layout
# Offset | Length | Notes
# -------|--------|--------------------------------------------------------
# 0      | 4      | "NIM0" tag (format and version)
# 4      | 2      | Width (little endian)
# 6      | 2      | Height (little endian)
# 8      | N      | Pixel indices
#
# N = width * height, or width * height / 2 when two 4-bit indices are packed
# into each byte (first pixel in the high nibble).

from __future__ import annotations

import struct
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import ConstraintError, FileOpenError, ImageDecodeError
from .palette import Palette
from .quantize import expand3

NIM_TAG = b"NIM0"
MAX_DIMENSION = 0xFFFF
MAX_4BIT_COLORS = 16

_NIM_HEADER = struct.Struct("<4sHH")

RGB = Tuple[int, int, int]


@dataclass
class ConvertOptions:
    """Options controlling the index stream layout."""

    pack_4bit: bool = False


@dataclass
class DecodedImage:
    """Row-major RGBA8888 pixels as handed over by the decoder."""

    width: int
    height: int
    pixels: bytes

    def __post_init__(self) -> None:
        expected = self.width * self.height * 4
        if len(self.pixels) != expected:
            raise ValueError(
                f"RGBA buffer holds {len(self.pixels)} bytes, expected {expected} for {self.width}x{self.height}"
            )

    @classmethod
    def from_image(cls, image: Image.Image) -> "DecodedImage":
        rgba = image.convert("RGBA")
        return cls(rgba.width, rgba.height, rgba.tobytes())


def decode_image(path: str | Path) -> DecodedImage:
    path = Path(path)
    try:
        with Image.open(path) as img:
            return DecodedImage.from_image(img)
    except FileNotFoundError as exc:
        raise FileOpenError(f"Input file not found: {path}") from exc
    except (IsADirectoryError, PermissionError) as exc:
        raise FileOpenError(f"Unable to open file '{path}'") from exc
    except UnidentifiedImageError as exc:
        raise ImageDecodeError(f"Could not load image {path}") from exc
    except Image.DecompressionBombError as exc:
        raise ImageDecodeError(f"Could not load image {path}: {exc}") from exc
    except OSError as exc:
        raise ImageDecodeError(f"Could not load image {path}: {exc}") from exc


def _search_table(palette: Palette) -> List[Tuple[int, int, int, int]]:
    skip = palette.transparent_index
    return [
        (i, expand3(color.red), expand3(color.green), expand3(color.blue))
        for i, color in enumerate(palette)
        if i != skip
    ]


def nearest_palette_index(rgb: RGB, palette: Palette) -> int:
    """
    Return the palette entry closest to ``rgb`` using squared distance.
    Palette channels are expanded back to 0-255 levels before comparing and
    the transparency entry never takes part in the search. Falls back to
    index 0 when no entry qualifies.
    """
    return _nearest(rgb, _search_table(palette))


def _nearest(rgb: RGB, table: List[Tuple[int, int, int, int]]) -> int:
    r, g, b = rgb
    best_idx = 0
    best_dist = 256 * 256 * 256
    for i, pr, pg, pb in table:
        dist = (r - pr) ** 2 + (g - pg) ** 2 + (b - pb) ** 2
        if dist < best_dist:
            best_idx = i
            best_dist = dist
    return best_idx


def check_constraints(image: DecodedImage, palette: Palette, options: ConvertOptions) -> None:
    if image.width > MAX_DIMENSION or image.height > MAX_DIMENSION:
        raise ConstraintError(
            f"Image is {image.width}x{image.height}; NIM dimensions are limited to {MAX_DIMENSION}"
        )
    if options.pack_4bit:
        if len(palette) > MAX_4BIT_COLORS:
            raise ConstraintError(
                "Invalid palette for 4-bit mode. Must be 16 colours or less."
            )
        if image.width % 2 == 1:
            raise ConstraintError("Width must be a multiple of 2 for 4-bit mode.")


def map_pixels(
    image: DecodedImage, palette: Palette, options: ConvertOptions | None = None
) -> bytes:
    """Map every pixel to a palette index and lay out the index stream."""

    options = options or ConvertOptions()
    check_constraints(image, palette, options)

    transparent = palette.transparent_index
    if options.pack_4bit and transparent >= MAX_4BIT_COLORS:
        warnings.warn(
            f"Transparency index {transparent:#04x} does not fit in 4 bits; "
            f"transparent pixels will be written as {transparent & 0x0F:#03x}",
            RuntimeWarning,
            stacklevel=2,
        )

    table = _search_table(palette)
    cache: Dict[RGB, int] = {}
    out = bytearray()
    pixels = image.pixels
    pending = 0

    for row in range(image.height):
        row_offset = row * image.width * 4
        for col in range(image.width):
            offset = row_offset + col * 4
            r, g, b, a = pixels[offset : offset + 4]

            if a != 255:
                index = transparent
            else:
                rgb = (r, g, b)
                index = cache.get(rgb)
                if index is None:
                    index = _nearest(rgb, table)
                    cache[rgb] = index

            if options.pack_4bit:
                if col % 2 == 0:
                    pending = (index & 0x0F) << 4
                else:
                    out.append(pending | (index & 0x0F))
            else:
                out.append(index)

    return bytes(out)


def encode_nim(width: int, height: int, indices: bytes) -> bytes:
    return _NIM_HEADER.pack(NIM_TAG, width, height) + bytes(indices)


def convert_image_to_nim(
    image: Image.Image | DecodedImage,
    palette: Palette | None = None,
    options: ConvertOptions | None = None,
) -> bytes:
    if not isinstance(image, DecodedImage):
        image = DecodedImage.from_image(image)
    palette = palette if palette is not None else Palette.default()
    indices = map_pixels(image, palette, options)
    return encode_nim(image.width, image.height, indices)


def convert_file_to_nim(
    path: str | Path,
    palette: Palette | None = None,
    options: ConvertOptions | None = None,
) -> bytes:
    return convert_image_to_nim(decode_image(path), palette, options)
