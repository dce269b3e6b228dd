"""
Buffer2D Exception Hierarchy

Custom exceptions for buffer construction, allocation and access.
"""
from __future__ import annotations

from typing import Any, Optional


class Buffer2DError(Exception):
    """Base exception for all buffer2d errors.

    All buffer2d-specific exceptions inherit from this class,
    allowing users to catch every buffer error with a single
    except clause.

    Attributes:
        message: Human-readable error description.
        context: Optional dict of additional context for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize Buffer2DError.

        Args:
            message: Error message.
            context: Optional context dict.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        ctx_str = f", context={self.context}" if self.context else ""
        return f"{self.__class__.__name__}({self.message!r}{ctx_str})"


class OutOfMemoryError(Buffer2DError, MemoryError):
    """Raised when storage for an owning buffer cannot be allocated.

    This occurs when:
    - The tensor allocator cannot satisfy the request
    - The request exceeds the configured ``max_alloc_bytes`` cap

    Attributes:
        requested_bytes: Size of the failed request.
        limit_bytes: Configured cap, if one applied.
    """

    def __init__(
        self,
        requested_bytes: int,
        *,
        limit_bytes: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        """Initialize OutOfMemoryError.

        Args:
            requested_bytes: Bytes requested.
            limit_bytes: Allocation cap in effect.
            message: Optional custom message.
        """
        self.requested_bytes = requested_bytes
        self.limit_bytes = limit_bytes

        if message is None:
            if limit_bytes is not None:
                message = (
                    f"Cannot allocate {requested_bytes} bytes: "
                    f"exceeds limit of {limit_bytes} bytes"
                )
            else:
                message = f"Cannot allocate {requested_bytes} bytes"

        super().__init__(
            message,
            context={
                "requested_bytes": requested_bytes,
                "limit_bytes": limit_bytes,
            },
        )


class InvalidArgumentError(Buffer2DError, ValueError):
    """Raised when a buffer is constructed with invalid arguments.

    Covers non-positive extents, a stride narrower than the width,
    and external memory that cannot be aliased.

    Attributes:
        argument: Name of the offending argument.
        value: The rejected value.
    """

    def __init__(
        self,
        message: str,
        *,
        argument: Optional[str] = None,
        value: Optional[Any] = None,
    ) -> None:
        """Initialize InvalidArgumentError.

        Args:
            message: Error message.
            argument: Argument name.
            value: Rejected value.
        """
        self.argument = argument
        self.value = value

        super().__init__(
            message,
            context={"argument": argument, "value": value},
        )


class StorageReleasedError(Buffer2DError):
    """Raised when a moved-from or released buffer is dereferenced."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message or "Buffer has no storage (moved-from or released)"
        )


class PixelOutOfBoundsError(Buffer2DError, IndexError):
    """Raised by checked accessors for coordinates outside the image.

    Attributes:
        x: Column requested.
        y: Row requested.
        width: Buffer width.
        height: Buffer height.
    """

    def __init__(self, x: int, y: int, width: int, height: int) -> None:
        """Initialize PixelOutOfBoundsError.

        Args:
            x: Column requested.
            y: Row requested.
            width: Buffer width.
            height: Buffer height.
        """
        self.x = x
        self.y = y
        self.width = width
        self.height = height

        super().__init__(
            f"Pixel ({x}, {y}) outside {width}x{height} buffer",
            context={"x": x, "y": y, "width": width, "height": height},
        )


class ConfigurationError(Buffer2DError):
    """Raised when buffer2d configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[Any] = None,
        got: Optional[Any] = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Error message.
            config_key: The configuration key with the error.
            expected: Expected value or type.
            got: Actual value received.
        """
        self.config_key = config_key
        self.expected = expected
        self.got = got

        super().__init__(
            message,
            context={
                "config_key": config_key,
                "expected": expected,
                "got": got,
            },
        )
