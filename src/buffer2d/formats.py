"""Pixel element formats.

This module provides:
- PixelFormat enum (F32, F32X3, U8, U8X3, U16)
- PixelSpec describing the element type of a buffer
- Format lookup and parsing utilities
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Final

import torch


@unique
class PixelFormat(str, Enum):
    """Standard pixel element formats.

    F32: single-channel 32-bit float (grayscale)
    F32X3: three-channel 32-bit float (RGB)
    U8: single-channel 8-bit unsigned
    U8X3: three-channel 8-bit unsigned
    U16: single-channel 16-bit unsigned
    """

    F32 = "f32"
    F32X3 = "f32x3"
    U8 = "u8"
    U8X3 = "u8x3"
    U16 = "u16"


@dataclass(frozen=True)
class PixelSpec:
    """Element type of a buffer.

    Attributes:
        dtype: Scalar dtype of each channel.
        channels: Number of channels per pixel (1 for scalar pixels).
    """

    dtype: torch.dtype
    channels: int = 1

    def __post_init__(self) -> None:
        """Validate spec."""
        if self.channels < 1:
            raise ValueError(f"channels must be >= 1, got {self.channels}")
        if not isinstance(self.dtype, torch.dtype):
            raise ValueError(f"dtype must be a torch.dtype, got {self.dtype!r}")

    @property
    def element_shape(self) -> tuple[int, ...]:
        """Shape of one pixel inside the storage tensor."""
        return () if self.channels == 1 else (self.channels,)

    @property
    def itemsize(self) -> int:
        """Size of one pixel in bytes."""
        return self.channels * self.dtype.itemsize

    @property
    def is_vector(self) -> bool:
        """True for multi-channel pixels."""
        return self.channels > 1


FORMAT_SPECS: Final[dict[PixelFormat, PixelSpec]] = {
    PixelFormat.F32: PixelSpec(torch.float32, 1),
    PixelFormat.F32X3: PixelSpec(torch.float32, 3),
    PixelFormat.U8: PixelSpec(torch.uint8, 1),
    PixelFormat.U8X3: PixelSpec(torch.uint8, 3),
    PixelFormat.U16: PixelSpec(torch.uint16, 1),
}


def get_pixel_spec(pixel_format: PixelFormat | PixelSpec | str) -> PixelSpec:
    """Resolve a format designator to a PixelSpec.

    Args:
        pixel_format: PixelFormat, format string, or an explicit PixelSpec.

    Returns:
        Matching PixelSpec.
    """
    if isinstance(pixel_format, PixelSpec):
        return pixel_format
    if not isinstance(pixel_format, PixelFormat):
        pixel_format = format_from_string(pixel_format)
    return FORMAT_SPECS[pixel_format]


def format_from_string(s: str) -> PixelFormat:
    """Parse pixel format from string.

    Args:
        s: Format string (case-insensitive).

    Returns:
        PixelFormat enum value.

    Raises:
        ValueError: If format string is unknown.
    """
    s_lower = s.lower()
    for fmt in PixelFormat:
        if fmt.value == s_lower:
            return fmt

    valid = [f.value for f in PixelFormat]
    raise ValueError(f"Unknown pixel format '{s}'. Valid formats: {valid}")
