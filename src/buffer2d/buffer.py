"""
Buffer2D - Strided 2-D Pixel Buffer

Dense row-major pixel storage with two storage modes:
- Owning: allocates its own storage through a StorageAllocator
- Viewing: aliases caller-supplied memory, never allocates or frees

Copy Semantics:
- Copying an owning buffer allocates an independent deep copy
- Copying a view produces another view of the same memory
- Moving transfers storage and ownership; the source becomes an empty shell
- clone() always allocates and copies, regardless of ownership

Addressing:
    Pixel (x, y) lives at flat index ``x + y * stride``. The primary
    accessors (at, at_index, get, put, the stamps) do not test coordinates
    against width/height. Coordinates past the row end land in padding or
    the next row; indices past the storage end surface the tensor
    library's IndexError. at_checked() is the bounds-checked variant.

Thread Safety:
    Buffers are NOT thread-safe. Callers serialize concurrent access,
    including access through several views of the same memory.
"""
from __future__ import annotations

import logging
import math
import operator
import weakref
from typing import Any, ClassVar, Optional, Union

import torch

from buffer2d.allocator import StorageAllocator, get_default_allocator
from buffer2d.exceptions import (
    InvalidArgumentError,
    PixelOutOfBoundsError,
    StorageReleasedError,
)
from buffer2d.formats import PixelFormat, PixelSpec, get_pixel_spec
from buffer2d.stamps import (
    BLOCK4_OFFSETS,
    DIAMOND_OFFSETS,
    SQUARE9_OFFSETS,
    Offsets,
)

logger = logging.getLogger(__name__)

FormatLike = Union[PixelFormat, PixelSpec, str]
PixelValue = Union[int, float, bool, tuple, list, torch.Tensor]


# Untyped byte memory may be reinterpreted as any pixel dtype
_RAW_BYTE_FORMATS = frozenset({"B", "b", "c"})

_FLOAT_FORMATS = {"e": torch.float16, "f": torch.float32, "d": torch.float64}
_SIGNED_FORMATS = frozenset("bhilqn")
_UNSIGNED_FORMATS = frozenset("BHILQN")
_INT_DTYPES = {
    (True, 1): torch.int8,
    (True, 2): torch.int16,
    (True, 4): torch.int32,
    (True, 8): torch.int64,
    (False, 1): torch.uint8,
    (False, 2): torch.uint16,
    (False, 4): torch.uint32,
    (False, 8): torch.uint64,
}


def _buffer_format_dtype(code: str, itemsize: int) -> Optional[torch.dtype]:
    """Map a struct format code to the matching torch dtype, if any."""
    if code in _FLOAT_FORMATS:
        return _FLOAT_FORMATS[code]
    if code == "?":
        return torch.bool
    if code in _SIGNED_FORMATS:
        return _INT_DTYPES.get((True, itemsize))
    if code in _UNSIGNED_FORMATS:
        return _INT_DTYPES.get((False, itemsize))
    return None


def _as_int(value: Any) -> Optional[int]:
    """Integer value of an int-like (``__index__``) object, else None."""
    if isinstance(value, bool):
        return None
    try:
        return operator.index(value)
    except TypeError:
        return None


def _check_positive(name: str, value: Any) -> int:
    number = _as_int(value)
    if number is None or number <= 0:
        raise InvalidArgumentError(
            f"{name} must be a positive int, got {value!r}",
            argument=name,
            value=value,
        )
    return number


def _validate_extent(
    width: Any, height: Any, stride: Any
) -> tuple[int, int, int]:
    """Validate width/height/stride and apply the stride default.

    Returns:
        Tuple of (width, height, stride).

    Raises:
        InvalidArgumentError: On non-positive extents or stride < width.
    """
    width = _check_positive("width", width)
    height = _check_positive("height", height)

    if stride is None:
        return width, height, width

    number = _as_int(stride)
    if number is None or number < width:
        raise InvalidArgumentError(
            f"stride must be an int >= width ({width}), got {stride!r}",
            argument="stride",
            value=stride,
        )
    return width, height, number


def _as_flat_storage(data: Any, spec: PixelSpec) -> torch.Tensor:
    """Alias external memory as flat pixel storage without copying.

    Args:
        data: Contiguous tensor or writable buffer-protocol object.
        spec: Element type to interpret the memory as.

    Returns:
        Tensor of shape (n, *spec.element_shape) sharing memory with data.

    Raises:
        InvalidArgumentError: If the memory cannot be aliased.
    """
    if isinstance(data, torch.Tensor):
        if data.dtype != spec.dtype:
            raise InvalidArgumentError(
                f"dtype mismatch: buffer expects {spec.dtype}, got {data.dtype}",
                argument="data",
                value=data.dtype,
            )
        if not data.is_contiguous():
            raise InvalidArgumentError(
                "Cannot view non-contiguous tensor as flat storage",
                argument="data",
                value=tuple(data.stride()),
            )
        tensor = data.view(-1)
    else:
        try:
            with memoryview(data) as mv:
                readonly = mv.readonly
                contiguous = mv.c_contiguous
                fmt = mv.format
                itemsize = mv.itemsize
        except TypeError as e:
            raise InvalidArgumentError(
                f"Object of type {type(data).__name__} does not support "
                "the buffer protocol",
                argument="data",
                value=type(data).__name__,
            ) from e
        if readonly:
            raise InvalidArgumentError(
                "Cannot view read-only memory",
                argument="data",
                value=type(data).__name__,
            )
        if not contiguous:
            raise InvalidArgumentError(
                "Cannot view non-contiguous memory as flat storage",
                argument="data",
                value=type(data).__name__,
            )
        code = fmt.lstrip("@=<>!")
        if code not in _RAW_BYTE_FORMATS:
            found = _buffer_format_dtype(code, itemsize)
            if found != spec.dtype:
                raise InvalidArgumentError(
                    f"dtype mismatch: buffer expects {spec.dtype}, "
                    f"got memory of format {fmt!r}",
                    argument="data",
                    value=fmt,
                )
        try:
            tensor = torch.frombuffer(data, dtype=spec.dtype)
        except ValueError as e:
            raise InvalidArgumentError(
                f"Cannot interpret memory as {spec.dtype}: {e}",
                argument="data",
                value=type(data).__name__,
            ) from e

    if spec.is_vector:
        if tensor.numel() % spec.channels:
            raise InvalidArgumentError(
                f"Element count {tensor.numel()} is not a multiple of "
                f"{spec.channels} channels",
                argument="data",
                value=tensor.numel(),
            )
        tensor = tensor.view(-1, spec.channels)
    return tensor


class Buffer2D:
    """Strided 2-D buffer of pixels, owning or viewing its storage.

    Attributes:
        width: Logical width in pixels.
        height: Logical height in pixels.
        stride: Pixels between the starts of consecutive rows.
        owns_storage: Whether this instance releases its storage.

    Example:
        buf = Buffer2D(640, 480, pixel_format=PixelFormat.U8)
        buf.set_zero()
        buf.set_pixel_9(320, 240, 255)

        # Zero-copy view over caller memory
        raw = bytearray(640 * 480)
        view = Buffer2D.from_memory(raw, 640, 480, pixel_format="u8")
    """

    __slots__ = (
        "_width",
        "_height",
        "_stride",
        "_spec",
        "_data",
        "_owns",
        "_finalizer",
        "_allocator",
    )

    default_format: ClassVar[PixelFormat] = PixelFormat.F32
    format_pinned: ClassVar[bool] = False

    def __init__(
        self,
        width: int,
        height: int,
        stride: Optional[int] = None,
        *,
        pixel_format: Optional[FormatLike] = None,
        device: Union[str, torch.device, None] = None,
        allocator: Optional[StorageAllocator] = None,
    ) -> None:
        """Create an owning buffer.

        Pixel values are uninitialized unless ``zero_on_alloc`` is
        configured.

        Args:
            width: Width in pixels (> 0).
            height: Height in pixels (> 0).
            stride: Row pitch in pixels (>= width). Defaults to width.
            pixel_format: Element type. Defaults to the class format.
            device: Storage device. Defaults to the configured device.
            allocator: Allocator to use. Defaults to the process-wide one.

        Raises:
            InvalidArgumentError: On invalid extents or format.
            OutOfMemoryError: If storage cannot be allocated.
        """
        spec = self._resolve_spec(pixel_format)
        width, height, stride = _validate_extent(width, height, stride)
        allocator = allocator or get_default_allocator()

        data, finalizer = allocator.allocate(stride * height, spec, device)

        self._set_state(
            width, height, stride, spec, data, True, finalizer, allocator
        )

    # =========================================================================
    # Internal state handling
    # =========================================================================

    @classmethod
    def _resolve_spec(cls, pixel_format: Optional[FormatLike]) -> PixelSpec:
        if pixel_format is None:
            return get_pixel_spec(cls.default_format)
        try:
            spec = get_pixel_spec(pixel_format)
        except ValueError as e:
            raise InvalidArgumentError(
                str(e), argument="pixel_format", value=pixel_format
            ) from e
        if cls.format_pinned and spec != get_pixel_spec(cls.default_format):
            raise InvalidArgumentError(
                f"{cls.__name__} only holds {cls.default_format.value} pixels",
                argument="pixel_format",
                value=pixel_format,
            )
        return spec

    @classmethod
    def _from_state(
        cls,
        width: int,
        height: int,
        stride: int,
        spec: PixelSpec,
        data: Optional[torch.Tensor],
        owns: bool,
        finalizer: Optional[weakref.finalize],
        allocator: Optional[StorageAllocator],
    ) -> "Buffer2D":
        obj = cls.__new__(cls)
        obj._set_state(
            width, height, stride, spec, data, owns, finalizer, allocator
        )
        return obj

    def _set_state(
        self,
        width: int,
        height: int,
        stride: int,
        spec: PixelSpec,
        data: Optional[torch.Tensor],
        owns: bool,
        finalizer: Optional[weakref.finalize],
        allocator: Optional[StorageAllocator],
    ) -> None:
        self._width = width
        self._height = height
        self._stride = stride
        self._spec = spec
        self._data = data
        self._owns = owns
        self._finalizer = finalizer
        self._allocator = allocator

    def _take(self, other: "Buffer2D") -> None:
        """Steal other's state and leave it moved-from."""
        self._set_state(
            other._width,
            other._height,
            other._stride,
            other._spec,
            other._data,
            other._owns,
            other._finalizer,
            other._allocator,
        )
        other._clear()

    def _clear(self) -> None:
        self._data = None
        self._owns = False
        self._finalizer = None
        self._allocator = None

    def _storage(self) -> torch.Tensor:
        data = self._data
        if data is None:
            raise StorageReleasedError()
        return data

    def _check_same_spec(self, other: "Buffer2D") -> None:
        if not isinstance(other, Buffer2D):
            raise InvalidArgumentError(
                f"Expected a Buffer2D, got {type(other).__name__}",
                argument="other",
                value=type(other).__name__,
            )
        if other._spec != self._spec:
            raise InvalidArgumentError(
                f"Pixel type mismatch: {self._spec} vs {other._spec}",
                argument="other",
                value=other._spec,
            )

    def _coerce(self, value: PixelValue) -> Any:
        """Convert a pixel value to something assignable into storage."""
        if isinstance(value, (int, float, bool)):
            return value
        data = self._storage()
        return torch.as_tensor(value, dtype=self._spec.dtype, device=data.device)

    @staticmethod
    def _to_python(element: torch.Tensor) -> Any:
        if element.dim() == 0:
            return element.item()
        return tuple(element.tolist())

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_memory(
        cls,
        data: Any,
        width: int,
        height: int,
        stride: Optional[int] = None,
        *,
        pixel_format: Optional[FormatLike] = None,
    ) -> "Buffer2D":
        """Create a view over externally owned memory.

        No allocation occurs. The caller keeps the memory alive and large
        enough (``stride * height`` pixels) for the lifetime of the view;
        capacity is not verified. Memory beyond ``stride * height`` pixels
        is not part of the view.

        Args:
            data: Contiguous tensor of the matching dtype, or a writable
                  buffer-protocol object (bytearray, memoryview,
                  array.array, NumPy array).
            width: Width in pixels (> 0).
            height: Height in pixels (> 0).
            stride: Row pitch in pixels (>= width). Defaults to width.
            pixel_format: Element type. Defaults to the class format.

        Returns:
            Non-owning buffer aliasing ``data``.

        Raises:
            InvalidArgumentError: On invalid extents, or memory that cannot
                be aliased (wrong dtype, non-contiguous, read-only).
        """
        spec = cls._resolve_spec(pixel_format)
        width, height, stride = _validate_extent(width, height, stride)
        flat = _as_flat_storage(data, spec)

        needed = stride * height
        if flat.shape[0] > needed:
            flat = flat[:needed]
        elif flat.shape[0] < needed:
            logger.warning(
                "View memory holds %d pixels, %dx%d (stride %d) needs %d",
                flat.shape[0],
                width,
                height,
                stride,
                needed,
            )

        logger.debug(
            "Created view: %dx%d, stride=%d, dtype=%s",
            width,
            height,
            stride,
            spec.dtype,
        )

        return cls._from_state(width, height, stride, spec, flat, False, None, None)

    def copy(self) -> "Buffer2D":
        """Copy this buffer.

        An owning source yields an independent owning deep copy. A viewing
        source yields another view aliasing the same memory.

        Returns:
            The copy.

        Raises:
            OutOfMemoryError: If a deep copy cannot be allocated.
        """
        if self._owns:
            return self.clone()
        return self._from_state(
            self._width,
            self._height,
            self._stride,
            self._spec,
            self._data,
            False,
            None,
            None,
        )

    def __copy__(self) -> "Buffer2D":
        return self.copy()

    def __deepcopy__(self, memo: dict[int, Any]) -> "Buffer2D":
        return self.clone()

    def clone(self) -> "Buffer2D":
        """Allocate an owning duplicate with identical stride.

        All ``stride * height`` elements are copied, padding included.

        Returns:
            New owning buffer.

        Raises:
            StorageReleasedError: If this buffer has no storage.
            OutOfMemoryError: If storage cannot be allocated.
        """
        src = self._storage()
        allocator = self._allocator or get_default_allocator()
        data, finalizer = allocator.allocate(
            self._stride * self._height, self._spec, src.device, zero=False
        )
        data[: src.shape[0]].copy_(src)

        logger.debug(
            "Cloned %dx%d buffer (stride=%d, owning_source=%s)",
            self._width,
            self._height,
            self._stride,
            self._owns,
        )

        return self._from_state(
            self._width,
            self._height,
            self._stride,
            self._spec,
            data,
            True,
            finalizer,
            allocator,
        )

    def assign(self, other: "Buffer2D") -> "Buffer2D":
        """Copy-assign other into this buffer.

        Releases storage this buffer owned, then copies other per the copy
        rule. Self-assignment is a no-op.

        Args:
            other: Source buffer with the same pixel type.

        Returns:
            self.
        """
        if other is self:
            return self
        self._check_same_spec(other)
        self.release()
        self._take(other.copy())
        return self

    def move(self) -> "Buffer2D":
        """Move this buffer's state into a new instance.

        No pixel data is copied. This instance is left without storage
        and non-owning.

        Returns:
            New buffer holding the storage and ownership.
        """
        moved = type(self).__new__(type(self))
        moved._take(self)
        logger.debug(
            "Moved %dx%d buffer (owning=%s)", moved._width, moved._height, moved._owns
        )
        return moved

    def move_from(self, other: "Buffer2D") -> "Buffer2D":
        """Move-assign other into this buffer.

        Releases storage this buffer owned, then takes other's storage and
        ownership. Other is left moved-from. Self-move is a no-op.

        Args:
            other: Source buffer with the same pixel type.

        Returns:
            self.
        """
        if other is self:
            return self
        self._check_same_spec(other)
        self.release()
        self._take(other)
        return self

    def release(self) -> None:
        """Release storage if owned and detach from it.

        Idempotent. Views and moved-from buffers release nothing.
        """
        if self._owns and self._data is not None and self._finalizer is not None:
            self._finalizer()
            logger.debug(
                "Released %dx%d buffer (stride=%d)",
                self._width,
                self._height,
                self._stride,
            )
        self._clear()

    def __enter__(self) -> "Buffer2D":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def width(self) -> int:
        """Width in pixels."""
        return self._width

    @property
    def height(self) -> int:
        """Height in pixels."""
        return self._height

    @property
    def stride(self) -> int:
        """Row pitch in pixels."""
        return self._stride

    @property
    def owns_storage(self) -> bool:
        """True if this buffer releases its storage."""
        return self._owns

    @property
    def has_storage(self) -> bool:
        """False for moved-from or released buffers."""
        return self._data is not None

    @property
    def storage(self) -> torch.Tensor:
        """Flat storage tensor of ``stride * height`` pixels."""
        return self._storage()

    @property
    def pixel_spec(self) -> PixelSpec:
        return self._spec

    @property
    def dtype(self) -> torch.dtype:
        return self._spec.dtype

    @property
    def channels(self) -> int:
        return self._spec.channels

    @property
    def device(self) -> Optional[torch.device]:
        """Storage device, or None without storage."""
        return None if self._data is None else self._data.device

    @property
    def nbytes(self) -> int:
        """Size of the storage in bytes."""
        return len(self) * self._spec.itemsize

    def __len__(self) -> int:
        return 0 if self._data is None else self._data.shape[0]

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(width={self._width}, height={self._height}, "
            f"stride={self._stride}, dtype={self._spec.dtype}, "
            f"channels={self._spec.channels}, owns_storage={self._owns}, "
            f"has_storage={self._data is not None})"
        )

    # =========================================================================
    # Pixel access
    # =========================================================================

    def at(self, x: int, y: int) -> torch.Tensor:
        """Reference to pixel (x, y). Unchecked.

        The returned tensor aliases storage; writing through it (e.g.
        ``fill_``, ``copy_``, item assignment) modifies the buffer.
        """
        return self._storage()[x + y * self._stride]

    def at_index(self, i: int) -> torch.Tensor:
        """Reference to flat element i, ignoring stride. Unchecked."""
        return self._storage()[i]

    def at_checked(self, x: int, y: int) -> torch.Tensor:
        """Reference to pixel (x, y), validated against width/height.

        Raises:
            PixelOutOfBoundsError: If (x, y) lies outside the image.
        """
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise PixelOutOfBoundsError(x, y, self._width, self._height)
        return self.at(x, y)

    def get(self, x: int, y: int) -> Any:
        """Value of pixel (x, y): a scalar, or a tuple for vector pixels."""
        return self._to_python(self.at(x, y))

    def put(self, x: int, y: int, value: PixelValue) -> None:
        """Write pixel (x, y). Unchecked."""
        self._storage()[x + y * self._stride] = self._coerce(value)

    def get_index(self, i: int) -> Any:
        return self._to_python(self.at_index(i))

    def put_index(self, i: int, value: PixelValue) -> None:
        self._storage()[i] = self._coerce(value)

    def __getitem__(self, key: Union[int, tuple[int, int]]) -> Any:
        if isinstance(key, tuple):
            x, y = key
            return self.get(x, y)
        return self.get_index(key)

    def __setitem__(
        self, key: Union[int, tuple[int, int]], value: PixelValue
    ) -> None:
        if isinstance(key, tuple):
            x, y = key
            self.put(x, y, value)
        else:
            self.put_index(key, value)

    def rows(self) -> torch.Tensor:
        """View of the storage as (height, stride[, channels])."""
        return self._storage().view(
            self._height, self._stride, *self._spec.element_shape
        )

    def logical(self) -> torch.Tensor:
        """View of the logical pixels as (height, width[, channels])."""
        return self.rows()[:, : self._width]

    # =========================================================================
    # Fill operations
    # =========================================================================

    def set_zero(self) -> None:
        """Zero every underlying element, padding included."""
        self._storage().zero_()

    def set_constant(self, value: PixelValue) -> None:
        """Set every logical pixel to value. Padding is left untouched."""
        self.logical()[...] = self._coerce(value)

    # =========================================================================
    # Pixel stamps
    # =========================================================================

    def _stamp(self, u: int, v: int, offsets: Offsets, value: PixelValue) -> None:
        data = self._storage()
        stride = self._stride
        value = self._coerce(value)
        for dx, dy in offsets:
            data[(u + dx) + (v + dy) * stride] = value

    def set_pixel_1(self, u: float, v: float, value: PixelValue) -> None:
        """Write the pixel nearest to (u, v), rounding half up."""
        self.put(math.floor(u + 0.5), math.floor(v + 0.5), value)

    def set_pixel_4(self, u: float, v: float, value: PixelValue) -> None:
        """Write the 2x2 block whose top-left pixel is (floor(u), floor(v))."""
        self._stamp(math.floor(u), math.floor(v), BLOCK4_OFFSETS, value)

    def set_pixel_9(self, u: int, v: int, value: PixelValue) -> None:
        """Write the 3x3 neighborhood centered on (u, v)."""
        self._stamp(int(u), int(v), SQUARE9_OFFSETS, value)

    def set_pixel_diamond(self, u: int, v: int, value: PixelValue) -> None:
        """Write the radius-3 diamond outline around (u, v)."""
        self._stamp(int(u), int(v), DIAMOND_OFFSETS, value)
