"""Channel snapping tables shared by the palette and image code.

The target hardware stores three bits per channel. Raw 0-255 samples are
snapped to the nearest of eight evenly spaced levels, and palette entries are
expanded back to those levels when measuring distances.
"""

from __future__ import annotations

from typing import Sequence, Tuple

LEVELS_3BIT: Tuple[int, ...] = (0, 36, 73, 109, 146, 182, 219, 255)
LEVELS_2BIT: Tuple[int, ...] = (0, 85, 170, 255)


def _nearest_level(value: int, levels: Sequence[int]) -> int:
    if value < 0 or value > 255:
        raise ValueError(f"Channel value must be between 0 and 255: {value}")
    best_idx = 0
    best_diff = 255
    for i, level in enumerate(levels):
        diff = abs(value - level)
        if diff == 0:
            return i
        if diff < best_diff:
            best_diff = diff
            best_idx = i
    return best_idx


def reduce3(value: int) -> int:
    """Return the 3-bit level index (0-7) closest to ``value``."""
    return _nearest_level(value, LEVELS_3BIT)


def reduce2(value: int) -> int:
    """Return the 2-bit level index (0-3) closest to ``value``."""
    return _nearest_level(value, LEVELS_2BIT)


def expand3(index: int) -> int:
    """Return the 0-255 level represented by a 3-bit channel index."""
    if index < 0 or index > 7:
        raise ValueError(f"3-bit channel index must be between 0 and 7: {index}")
    return LEVELS_3BIT[index]
