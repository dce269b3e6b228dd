"""
Storage allocation for owning buffers.

Key Components:
- StorageAllocator: allocates flat pixel storage, maps allocation failures
  to OutOfMemoryError, and tracks live/peak bytes
- get_default_allocator / set_default_allocator: process-wide allocator

Every owning allocation is paired with a weakref finalizer on its storage
tensor. The finalizer runs exactly once: either explicitly on release, or
when the storage tensor is garbage-collected.
"""
from __future__ import annotations

import logging
import threading
import weakref
from typing import Any, Optional, Union

import torch

from buffer2d.config import get_config
from buffer2d.exceptions import OutOfMemoryError
from buffer2d.formats import PixelSpec

logger = logging.getLogger(__name__)


class StorageAllocator:
    """Allocator for owning buffer storage.

    Thread Safety:
        - Thread-safe for allocation/deallocation
        - Uses internal lock for bookkeeping only

    Example:
        allocator = StorageAllocator()
        storage, finalizer = allocator.allocate(640 * 480, spec, "cpu")
        ...
        finalizer()  # returns the bytes to accounting
    """

    __slots__ = (
        "_allocated_bytes",
        "_peak_bytes",
        "_allocation_count",
        "_release_count",
        "_lock",
    )

    def __init__(self) -> None:
        self._allocated_bytes = 0
        self._peak_bytes = 0
        self._allocation_count = 0
        self._release_count = 0
        self._lock = threading.Lock()

    @property
    def allocated_bytes(self) -> int:
        """Get currently allocated bytes."""
        return self._allocated_bytes

    @property
    def peak_bytes(self) -> int:
        """Get peak allocated bytes."""
        return self._peak_bytes

    @property
    def allocation_count(self) -> int:
        """Get total allocation count."""
        return self._allocation_count

    @property
    def release_count(self) -> int:
        """Get total release count."""
        return self._release_count

    def allocate(
        self,
        num_elements: int,
        spec: PixelSpec,
        device: Union[str, torch.device, None] = None,
        zero: Optional[bool] = None,
    ) -> tuple[torch.Tensor, weakref.finalize]:
        """Allocate flat storage for ``num_elements`` pixels.

        Args:
            num_elements: Number of pixels (stride * height).
            spec: Element type.
            device: Target device. Defaults to the configured device.
            zero: Zero-fill the storage. Defaults to the configured
                  ``zero_on_alloc``.

        Returns:
            Tuple of (storage tensor, release finalizer).

        Raises:
            OutOfMemoryError: If the request exceeds the configured cap or
                the tensor allocator fails.
        """
        config = get_config()
        if device is None:
            device = config.default_device
        device = torch.device(device) if isinstance(device, str) else device
        if zero is None:
            zero = config.zero_on_alloc

        size_bytes = num_elements * spec.itemsize
        limit = config.max_alloc_bytes
        if limit is not None and size_bytes > limit:
            raise OutOfMemoryError(size_bytes, limit_bytes=limit)

        shape = (num_elements, *spec.element_shape)
        try:
            if zero:
                storage = torch.zeros(shape, dtype=spec.dtype, device=device)
            else:
                storage = torch.empty(shape, dtype=spec.dtype, device=device)
        except RuntimeError as e:
            # torch.OutOfMemoryError subclasses RuntimeError
            raise OutOfMemoryError(
                size_bytes,
                message=f"Cannot allocate {size_bytes} bytes on {device}: {e}",
            ) from e

        with self._lock:
            self._allocation_count += 1
            self._allocated_bytes += size_bytes
            self._peak_bytes = max(self._peak_bytes, self._allocated_bytes)

        finalizer = weakref.finalize(storage, self._on_release, size_bytes)

        logger.debug(
            "Allocated storage: shape=%s, dtype=%s, device=%s, bytes=%d",
            shape,
            spec.dtype,
            device,
            size_bytes,
        )

        return storage, finalizer

    def _on_release(self, size_bytes: int) -> None:
        """Return bytes to accounting."""
        with self._lock:
            self._release_count += 1
            self._allocated_bytes -= size_bytes
            if self._allocated_bytes < 0:
                self._allocated_bytes = 0

        logger.debug("Released storage: bytes=%d", size_bytes)

    def reset_stats(self) -> None:
        """Reset allocation statistics."""
        with self._lock:
            self._allocated_bytes = 0
            self._peak_bytes = 0
            self._allocation_count = 0
            self._release_count = 0

    def stats(self) -> dict[str, Any]:
        """Get allocation statistics.

        Returns:
            Dict with allocated_bytes, peak_bytes, allocation_count,
            release_count.
        """
        with self._lock:
            return {
                "allocated_bytes": self._allocated_bytes,
                "peak_bytes": self._peak_bytes,
                "allocation_count": self._allocation_count,
                "release_count": self._release_count,
            }


_default_allocator: Optional[StorageAllocator] = None
_default_allocator_lock = threading.Lock()


def get_default_allocator() -> StorageAllocator:
    """Get the process-wide allocator singleton.

    Creates the allocator on first call.

    Returns:
        Global StorageAllocator instance.
    """
    global _default_allocator

    if _default_allocator is None:
        with _default_allocator_lock:
            if _default_allocator is None:
                _default_allocator = StorageAllocator()

    return _default_allocator


def set_default_allocator(allocator: StorageAllocator) -> None:
    """Set the process-wide allocator.

    Args:
        allocator: StorageAllocator to use as global.
    """
    global _default_allocator

    with _default_allocator_lock:
        _default_allocator = allocator
