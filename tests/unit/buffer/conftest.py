"""Fixtures for Buffer2D tests."""
from __future__ import annotations

import pytest
import torch

from buffer2d import Buffer2D, PixelFormat


@pytest.fixture
def u8_buffer(allocator) -> Buffer2D:
    """4x3 owning uint8 buffer filled with a ramp 0..11."""
    buf = Buffer2D(4, 3, pixel_format=PixelFormat.U8, allocator=allocator)
    buf.storage.copy_(torch.arange(12, dtype=torch.uint8))
    return buf


@pytest.fixture
def padded_u8_buffer(allocator) -> Buffer2D:
    """4x3 owning uint8 buffer with stride 6, padding set to 99."""
    buf = Buffer2D(4, 3, 6, pixel_format=PixelFormat.U8, allocator=allocator)
    buf.storage.fill_(99)
    return buf


@pytest.fixture
def external_u8() -> torch.Tensor:
    """Caller-owned memory for 4x3 uint8 views."""
    return torch.arange(12, dtype=torch.uint8)


@pytest.fixture
def canvas() -> Buffer2D:
    """Zeroed 12x12 uint8 buffer for stamp tests."""
    buf = Buffer2D(12, 12, pixel_format=PixelFormat.U8)
    buf.set_zero()
    return buf
