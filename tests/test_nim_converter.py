import struct
import warnings
from pathlib import Path

import pytest
from PIL import Image

from nimconv.converter import (
    ConvertOptions,
    DecodedImage,
    convert_file_to_nim,
    convert_image_to_nim,
    decode_image,
    encode_nim,
    map_pixels,
    nearest_palette_index,
)
from nimconv.errors import ConstraintError, FileOpenError, ImageDecodeError
from nimconv.palette import Palette
from nimconv.quantize import expand3


def _rgba(width: int, height: int, pixels) -> DecodedImage:
    return DecodedImage(width, height, bytes(channel for pixel in pixels for channel in pixel))


def _level(color) -> tuple:
    return tuple(expand3(channel) for channel in color)


SIXTEEN = Palette([(i % 8, (i // 2) % 8, 7 - i % 8) for i in range(16)], transparent_index=0)


def test_exact_matches_map_to_their_indices() -> None:
    palette = Palette.default()
    image = _rgba(2, 1, [_level(palette[3]) + (255,), _level(palette[5]) + (255,)])

    assert map_pixels(image, palette) == bytes([0x03, 0x05])


def test_transparent_pixels_use_transparency_index() -> None:
    palette = Palette.default()
    image = _rgba(3, 1, [(255, 255, 255, 0), (0, 0, 0, 0), (12, 34, 56, 128)])

    assert map_pixels(image, palette) == bytes([0xE3] * 3)


def test_search_skips_transparency_entry() -> None:
    palette = Palette([(0, 0, 0), (7, 7, 7), (6, 6, 6)], transparent_index=1)

    assert nearest_palette_index((255, 255, 255), palette) == 2


def test_search_ties_keep_lowest_index() -> None:
    palette = Palette([(7, 0, 0), (0, 7, 0), (7, 0, 0)], transparent_index=0xE3)

    assert nearest_palette_index((255, 0, 0), palette) == 0
    assert nearest_palette_index((128, 128, 0), palette) == 0


def test_search_falls_back_to_index_zero() -> None:
    palette = Palette([(3, 3, 3)], transparent_index=0)

    assert nearest_palette_index((10, 20, 30), palette) == 0


def test_nearest_uses_expanded_levels() -> None:
    palette = Palette([(0, 0, 0), (1, 1, 1), (2, 2, 2)])

    # 50 is closer to level 36 (index 1) than to 73 (index 2)
    assert nearest_palette_index((50, 50, 50), palette) == 1
    assert nearest_palette_index((60, 60, 60), palette) == 2


def test_4bit_packs_two_pixels_per_byte() -> None:
    pixels = [_level(SIXTEEN[i]) + (255,) for i in (1, 2, 3, 15)]
    image = _rgba(4, 1, pixels)

    result = map_pixels(image, SIXTEEN, ConvertOptions(pack_4bit=True))

    assert result == bytes([0x12, 0x3F])


def test_4bit_output_length() -> None:
    width, height = 6, 5
    image = _rgba(width, height, [(10, 200, 30, 255)] * (width * height))

    result = map_pixels(image, SIXTEEN, ConvertOptions(pack_4bit=True))

    assert len(result) == (width // 2) * height


def test_4bit_rejects_17_colors() -> None:
    palette = Palette([(0, 0, i % 8) for i in range(17)])
    image = _rgba(2, 1, [(0, 0, 0, 255)] * 2)

    with pytest.raises(ConstraintError):
        map_pixels(image, palette, ConvertOptions(pack_4bit=True))


def test_4bit_rejects_odd_width() -> None:
    image = _rgba(3, 1, [(0, 0, 0, 255)] * 3)

    with pytest.raises(ConstraintError):
        map_pixels(image, SIXTEEN, ConvertOptions(pack_4bit=True))


def test_4bit_warns_about_wide_transparency_index() -> None:
    palette = Palette(SIXTEEN.colors, transparent_index=0xE3)
    image = _rgba(2, 1, [(0, 0, 0, 0), (0, 0, 0, 0)])

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = map_pixels(image, palette, ConvertOptions(pack_4bit=True))

    assert result == bytes([0x33])
    assert any(issubclass(w.category, RuntimeWarning) for w in caught)


def test_encode_nim_header_is_little_endian() -> None:
    data = encode_nim(0x0102, 0x0304, b"\x07")

    assert data == b"NIM0" + bytes([0x02, 0x01, 0x04, 0x03, 0x07])


def test_convert_image_to_nim_from_pillow_image() -> None:
    image = Image.new("RGBA", (4, 2), (255, 0, 0, 255))
    image.putpixel((3, 1), (0, 0, 0, 0))

    data = convert_image_to_nim(image)

    tag, width, height = struct.unpack_from("<4sHH", data)
    assert (tag, width, height) == (b"NIM0", 4, 2)
    assert data[8:] == bytes([0xE0] * 7 + [0xE3])


def test_decoded_image_checks_buffer_size() -> None:
    with pytest.raises(ValueError):
        DecodedImage(2, 2, bytes(15))


def test_decoded_image_from_rgb_image_is_opaque() -> None:
    decoded = DecodedImage.from_image(Image.new("RGB", (1, 1), (1, 2, 3)))

    assert decoded.pixels == bytes([1, 2, 3, 255])


def test_convert_file_to_nim(tmp_path: Path) -> None:
    source = tmp_path / "in.png"
    Image.new("RGBA", (2, 2), (0, 0, 255, 255)).save(source)

    data = convert_file_to_nim(source, SIXTEEN, ConvertOptions(pack_4bit=True))

    assert data[:8] == b"NIM0" + bytes([2, 0, 2, 0])
    assert len(data) == 8 + 2


def test_decode_image_errors(tmp_path: Path) -> None:
    with pytest.raises(FileOpenError):
        decode_image(tmp_path / "missing.png")

    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    with pytest.raises(ImageDecodeError):
        decode_image(broken)


def test_decode_image_oversized_is_decode_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "big.png"
    Image.new("RGBA", (64, 64), (0, 0, 0, 255)).save(source)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(ImageDecodeError):
        decode_image(source)
