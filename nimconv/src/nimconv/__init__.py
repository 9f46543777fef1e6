"""NIM image and NIP palette converter.

Converts palettes and images into the packed NIP/NIM formats used by 8-bit
targets with RRRGGGBB(B) colour. It can be invoked through the CLI (``nim`` or
``python -m nimconv``) or imported to convert data in memory.
"""

from .converter import (
    ConvertOptions,
    DecodedImage,
    convert_file_to_nim,
    convert_image_to_nim,
    decode_image,
    encode_nim,
    map_pixels,
    nearest_palette_index,
)
from .errors import (
    ConstraintError,
    FileOpenError,
    ImageDecodeError,
    NimError,
    PaletteFormatError,
    ParameterError,
)
from .palette import (
    Color,
    Palette,
    PaletteFormat,
    load_palette,
    parse_index,
    sniff_palette_format,
)
from .quantize import expand3, reduce2, reduce3

__all__ = [
    "Color",
    "ConstraintError",
    "ConvertOptions",
    "DecodedImage",
    "FileOpenError",
    "ImageDecodeError",
    "NimError",
    "Palette",
    "PaletteFormat",
    "PaletteFormatError",
    "ParameterError",
    "convert_file_to_nim",
    "convert_image_to_nim",
    "decode_image",
    "encode_nim",
    "expand3",
    "load_palette",
    "map_pixels",
    "nearest_palette_index",
    "parse_index",
    "reduce2",
    "reduce3",
    "sniff_palette_format",
]
