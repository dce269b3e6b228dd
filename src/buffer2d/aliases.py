"""Named Buffer2D instantiations.

Each alias pins the pixel format; passing a different ``pixel_format``
raises InvalidArgumentError.

- Buffer2DF: single-channel float32
- Buffer2DF3: three-channel float32
- Buffer2DB: single-channel uint8
- Buffer2DB3: three-channel uint8
- Buffer2DB16: single-channel uint16
"""
from __future__ import annotations

from buffer2d.buffer import Buffer2D
from buffer2d.formats import PixelFormat


class Buffer2DF(Buffer2D):
    """Grayscale float buffer."""

    __slots__ = ()
    default_format = PixelFormat.F32
    format_pinned = True


class Buffer2DF3(Buffer2D):
    """RGB float buffer."""

    __slots__ = ()
    default_format = PixelFormat.F32X3
    format_pinned = True


class Buffer2DB(Buffer2D):
    """8-bit grayscale buffer."""

    __slots__ = ()
    default_format = PixelFormat.U8
    format_pinned = True


class Buffer2DB3(Buffer2D):
    """8-bit RGB buffer."""

    __slots__ = ()
    default_format = PixelFormat.U8X3
    format_pinned = True


class Buffer2DB16(Buffer2D):
    """16-bit grayscale buffer."""

    __slots__ = ()
    default_format = PixelFormat.U16
    format_pinned = True


ALIASES: dict[PixelFormat, type[Buffer2D]] = {
    PixelFormat.F32: Buffer2DF,
    PixelFormat.F32X3: Buffer2DF3,
    PixelFormat.U8: Buffer2DB,
    PixelFormat.U8X3: Buffer2DB3,
    PixelFormat.U16: Buffer2DB16,
}
