"""Palette model and the NIP / JASC-PAL codecs."""

# Reference: NIP file layout
# Offset | Length | Notes
# -------|--------|--------------------------------------------------------
# 0      | 4      | "NIP0" tag (format and version)
# 4      | 1      | Number of colors (0 == 256)
# 5      | 1      | Flags (bit 0: 0 = 8-bit, 1 = 9-bit)
# 6      | N      | Palette data
# 6+N    | 1      | Transparency index
#
# Palette data is one RRRGGGBB byte per color. In 9-bit mode every color byte
# is followed by a 0000000B byte carrying the low bit of blue.

from __future__ import annotations

import struct
from enum import Enum
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, List, NamedTuple

from .errors import FileOpenError, ParameterError, PaletteFormatError
from .quantize import reduce3

NIP_TAG = b"NIP0"
JASC_TAG = "JASC-PAL"
JASC_VERSION = "0100"
DEFAULT_TRANSPARENT_INDEX = 0xE3
MAX_COLORS = 256
FLAG_EXTENDED = 0x01

_NIP_HEADER = struct.Struct("<4sBB")


class Color(NamedTuple):
    """Palette entry stored as 3-bit channel indices (0-7 each)."""

    red: int
    green: int
    blue: int


class PaletteFormat(Enum):
    NIP = "nip"
    JASC = "jasc"
    UNRECOGNIZED = "unrecognized"


def sniff_palette_format(data: bytes) -> PaletteFormat:
    """Detect which palette encoding ``data`` holds."""

    if data[: len(NIP_TAG)] == NIP_TAG:
        return PaletteFormat.NIP
    tokens = data.lstrip()[:64].split(None, 1)
    if tokens and tokens[0] == JASC_TAG.encode("ascii"):
        return PaletteFormat.JASC
    return PaletteFormat.UNRECOGNIZED


def pack_color(color: Color) -> int:
    """Pack a color into a single RRRGGGBB byte (blue loses its low bit)."""
    return ((color.red << 5) | (color.green << 2) | (color.blue >> 1)) & 0xFF


def unpack_color(packed: int, blue_low: int | None = None) -> Color:
    """Unpack an RRRGGGBB byte.

    Without an explicit ``blue_low`` byte the low bit of blue is rebuilt from
    the two stored blue bits, which matches the default palette.
    """
    if blue_low is None:
        blue_low = ((packed & 0x02) >> 1) | (packed & 0x01)
    red = (packed & 0xE0) >> 5
    green = (packed & 0x1C) >> 2
    blue = ((packed & 0x03) << 1) | (blue_low & 0x01)
    return Color(red, green, blue)


class Palette:
    """Ordered list of 3-bit colors plus a transparency index."""

    def __init__(
        self,
        colors: Iterable[Color | tuple] = (),
        transparent_index: int = DEFAULT_TRANSPARENT_INDEX,
    ):
        self._colors: List[Color] = [Color(*c) for c in colors]
        if len(self._colors) > MAX_COLORS:
            raise ValueError(f"A palette holds at most {MAX_COLORS} colors")
        for color in self._colors:
            if any(not (0 <= channel <= 7) for channel in color):
                raise ValueError(f"Color channels must be between 0 and 7: {color}")
        self._transparent_index = 0
        self.transparent_index = transparent_index

    # -- construction -----------------------------------------------------

    @classmethod
    def default(cls) -> "Palette":
        """Build the fixed 256-color RRRGGGBB palette."""
        colors = []
        for i in range(MAX_COLORS):
            r = (i & 0xE0) >> 5
            g = (i & 0x1C) >> 2
            b = ((i & 0x03) << 1) + (((i & 0x02) >> 1) | (i & 0x01))
            colors.append(Color(r, g, b))
        return cls(colors)

    @classmethod
    def from_nip(cls, data: bytes) -> "Palette":
        if len(data) < _NIP_HEADER.size:
            raise PaletteFormatError("NIP data is too short for its header")
        tag, count, flags = _NIP_HEADER.unpack_from(data)
        if tag != NIP_TAG:
            raise PaletteFormatError(f"Unexpected NIP tag: {tag!r}")

        count = count or MAX_COLORS
        extended = bool(flags & FLAG_EXTENDED)
        stride = 2 if extended else 1
        body = data[_NIP_HEADER.size :]
        expected = count * stride + 1
        if len(body) < expected:
            raise PaletteFormatError(
                f"NIP data is truncated: expected {expected} bytes after the header, got {len(body)}"
            )

        colors = []
        for i in range(count):
            offset = i * stride
            packed = body[offset]
            blue_low = body[offset + 1] if extended else None
            colors.append(unpack_color(packed, blue_low))
        return cls(colors, transparent_index=body[count * stride])

    @classmethod
    def from_jasc(cls, text: str) -> "Palette":
        """Parse a JASC-PAL text palette, snapping channels to 3 bits."""

        tokens = text.split()
        if len(tokens) < 3 or tokens[0] != JASC_TAG or tokens[1] != JASC_VERSION:
            raise PaletteFormatError("Not a JASC-PAL 0100 palette")
        try:
            count = int(tokens[2])
        except ValueError as exc:
            raise PaletteFormatError(f"Invalid color count: {tokens[2]}") from exc
        if count < 1 or count > MAX_COLORS:
            raise PaletteFormatError(f"Color count must be between 1 and {MAX_COLORS}: {count}")

        values = _iter_channel_values(tokens[3:])
        colors = []
        while len(colors) < count:
            triple = list(islice(values, 3))
            if len(triple) < 3:
                break
            if any(not (0 <= v <= 255) for v in triple):
                raise PaletteFormatError(f"Invalid .pal file: channel out of range in {tuple(triple)}")
            colors.append(Color(*(reduce3(v) for v in triple)))

        if len(colors) != count:
            raise PaletteFormatError(
                f"Invalid number of colors found in the palette: declared {count}, found {len(colors)}"
            )
        return cls(colors)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Palette":
        fmt = sniff_palette_format(data)
        if fmt is PaletteFormat.NIP:
            return cls.from_nip(data)
        if fmt is PaletteFormat.JASC:
            return cls.from_jasc(data.decode("ascii", errors="replace"))
        raise PaletteFormatError("Unrecognized palette format (expected NIP0 or JASC-PAL)")

    # -- accessors --------------------------------------------------------

    def __len__(self) -> int:
        return len(self._colors)

    def __getitem__(self, index: int) -> Color:
        return self._colors[index]

    def __iter__(self) -> Iterator[Color]:
        return iter(self._colors)

    def __repr__(self) -> str:
        return f"Palette({len(self)} colors, transparent_index={self._transparent_index:#04x})"

    @property
    def colors(self) -> List[Color]:
        return list(self._colors)

    @property
    def transparent_index(self) -> int:
        return self._transparent_index

    @transparent_index.setter
    def transparent_index(self, index: int) -> None:
        if index < 0 or index > 255:
            raise ValueError(f"Transparency index must be between 0 and 255: {index}")
        self._transparent_index = index

    # -- serialization ----------------------------------------------------

    def to_nip(self, extended: bool = False) -> bytes:
        out = bytearray(
            _NIP_HEADER.pack(NIP_TAG, len(self._colors) & 0xFF, FLAG_EXTENDED if extended else 0)
        )
        for color in self._colors:
            out.append(pack_color(color))
            if extended:
                out.append(color.blue & 0x01)
        out.append(self._transparent_index)
        return bytes(out)

    def write(self, path: str | Path, extended: bool = False) -> Path:
        path = Path(path)
        try:
            path.write_bytes(self.to_nip(extended))
        except OSError as exc:
            raise FileOpenError(f"Unable to create file {path}") from exc
        return path


def _iter_channel_values(tokens: Iterable[str]) -> Iterator[int]:
    for token in tokens:
        try:
            yield int(token)
        except ValueError as exc:
            raise PaletteFormatError(f"Invalid .pal file: {token!r} is not an integer") from exc


def load_palette(path: str | Path) -> Palette:
    """Read a NIP or JASC-PAL file."""

    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise FileOpenError(f"Unable to open file '{path}'") from exc
    return Palette.from_bytes(data)


def parse_index(text: str) -> int:
    """Parse a palette index given as decimal or ``$``-prefixed hex."""

    text = text.strip()
    try:
        if text.startswith("$"):
            value = int(text[1:], 16)
        else:
            value = int(text, 10)
    except ValueError as exc:
        raise ParameterError(f"Invalid palette index: {text!r}") from exc
    if value < 0:
        raise ParameterError(f"Palette index must not be negative: {text!r}")
    return value & 0xFF
