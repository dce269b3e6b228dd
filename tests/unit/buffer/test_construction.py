"""Tests for Buffer2D construction (owning and viewing)."""
from __future__ import annotations

import array

import pytest
import torch

from buffer2d import (
    Buffer2D,
    InvalidArgumentError,
    OutOfMemoryError,
    PixelFormat,
    PixelSpec,
)


class TestOwningConstruction:
    """Tests for owning buffers."""

    def test_default_stride_is_width(self, allocator) -> None:
        """Stride defaults to width."""
        buf = Buffer2D(5, 4, allocator=allocator)

        assert buf.width == 5
        assert buf.height == 4
        assert buf.stride == 5
        assert buf.owns_storage is True
        assert len(buf) == 20
        assert buf.storage.shape == (20,)

    def test_explicit_stride(self, allocator) -> None:
        """Storage holds stride * height elements."""
        buf = Buffer2D(5, 4, 8, allocator=allocator)

        assert buf.stride == 8
        assert len(buf) == 32

    def test_index_like_extents(self, allocator) -> None:
        """Extents accept any object implementing __index__."""
        class Extent:
            def __init__(self, value: int) -> None:
                self.value = value

            def __index__(self) -> int:
                return self.value

        buf = Buffer2D(Extent(4), Extent(3), Extent(6), allocator=allocator)

        assert (buf.width, buf.height, buf.stride) == (4, 3, 6)
        assert type(buf.width) is int
        assert len(buf) == 18

    def test_numpy_integer_extents(self, allocator) -> None:
        """NumPy integer scalars are valid extents."""
        np = pytest.importorskip("numpy")

        buf = Buffer2D(np.int64(4), np.int64(3), allocator=allocator)

        assert (buf.width, buf.height, buf.stride) == (4, 3, 4)

    @pytest.mark.parametrize("extent", [True, 2.0, "4"])
    def test_non_integer_extents_rejected(self, allocator, extent) -> None:
        """bool, float and str extents are rejected."""
        with pytest.raises(InvalidArgumentError):
            Buffer2D(extent, 2, allocator=allocator)

    @pytest.mark.gpu
    def test_cuda_allocation(self, cuda_device) -> None:
        """Owning buffers allocate on the requested device."""
        buf = Buffer2D(4, 3, device=cuda_device)

        buf.set_constant(1.5)

        assert buf.device.type == "cuda"
        assert buf.get(3, 2) == 1.5

    def test_default_format_is_float32(self, allocator) -> None:
        """Plain Buffer2D defaults to single-channel float32."""
        buf = Buffer2D(2, 2, allocator=allocator)

        assert buf.dtype == torch.float32
        assert buf.channels == 1

    def test_vector_format_storage_shape(self, allocator) -> None:
        """Vector pixels add a trailing channel dimension."""
        buf = Buffer2D(3, 2, 4, pixel_format=PixelFormat.U8X3, allocator=allocator)

        assert buf.storage.shape == (8, 3)
        assert buf.storage.dtype == torch.uint8
        assert buf.nbytes == 24

    def test_format_from_string(self, allocator) -> None:
        """Pixel format accepts strings."""
        buf = Buffer2D(2, 2, pixel_format="u16", allocator=allocator)

        assert buf.dtype == torch.uint16

    def test_custom_pixel_spec(self, allocator) -> None:
        """Arbitrary element types via PixelSpec."""
        spec = PixelSpec(torch.int32, 2)
        buf = Buffer2D(2, 2, pixel_format=spec, allocator=allocator)

        assert buf.pixel_spec == spec
        assert buf.storage.shape == (4, 2)

    def test_allocation_counted(self, allocator) -> None:
        """Owning construction allocates once."""
        Buffer2D(4, 4, pixel_format="u8", allocator=allocator)

        assert allocator.allocation_count == 1

    @pytest.mark.parametrize(
        "width,height",
        [(0, 4), (4, 0), (-1, 4), (4, -3)],
    )
    def test_non_positive_extent_rejected(self, width: int, height: int) -> None:
        """Non-positive width/height fail fast."""
        with pytest.raises(InvalidArgumentError):
            Buffer2D(width, height)

    def test_stride_less_than_width_rejected(self) -> None:
        """Explicit stride narrower than width fails."""
        with pytest.raises(InvalidArgumentError, match="stride") as exc_info:
            Buffer2D(8, 2, 4)

        assert exc_info.value.argument == "stride"
        assert exc_info.value.value == 4

    def test_non_int_extent_rejected(self) -> None:
        """Float and bool extents are rejected."""
        with pytest.raises(InvalidArgumentError):
            Buffer2D(4.0, 2)
        with pytest.raises(InvalidArgumentError):
            Buffer2D(True, 2)

    def test_invalid_argument_is_value_error(self) -> None:
        """InvalidArgumentError can be caught as ValueError."""
        with pytest.raises(ValueError):
            Buffer2D(0, 1)

    def test_unknown_format_rejected(self) -> None:
        """Unknown format string is an invalid argument."""
        with pytest.raises(InvalidArgumentError, match="Unknown pixel format"):
            Buffer2D(2, 2, pixel_format="rgba64")

    def test_allocation_failure_raises_out_of_memory(self, allocator) -> None:
        """Tensor allocator failures surface as OutOfMemoryError."""
        with pytest.raises(OutOfMemoryError) as exc_info:
            Buffer2D(1 << 31, 1 << 31, pixel_format="u8", allocator=allocator)

        assert exc_info.value.requested_bytes == (1 << 62)
        assert allocator.allocation_count == 0


class TestViewConstruction:
    """Tests for views over external memory."""

    def test_view_does_not_allocate(self, allocator, external_u8) -> None:
        """Views never allocate."""
        view = Buffer2D.from_memory(external_u8, 4, 3, pixel_format="u8")

        assert view.owns_storage is False
        assert allocator.allocation_count == 0

    def test_view_aliases_tensor(self, external_u8) -> None:
        """Writes through the view land in caller memory."""
        view = Buffer2D.from_memory(external_u8, 4, 3, pixel_format="u8")

        view.put(1, 2, 200)

        assert external_u8[9].item() == 200
        assert view.storage.data_ptr() == external_u8.data_ptr()

    def test_view_over_bytearray(self) -> None:
        """Views accept writable buffer-protocol objects."""
        raw = bytearray(6)
        view = Buffer2D.from_memory(raw, 3, 2, pixel_format="u8")

        view.put(2, 1, 7)

        assert raw[5] == 7

    def test_view_over_array(self) -> None:
        """array.array memory is reinterpreted with the pixel dtype."""
        raw = array.array("f", [0.0] * 4)
        view = Buffer2D.from_memory(raw, 2, 2, pixel_format="f32")

        view.put(1, 1, 2.5)

        assert raw[3] == 2.5

    def test_view_trims_to_stride_times_height(self) -> None:
        """Memory beyond stride * height is outside the view."""
        memory = torch.zeros(20, dtype=torch.uint8)
        view = Buffer2D.from_memory(memory, 2, 2, 3, pixel_format="u8")

        assert len(view) == 6

    def test_short_memory_not_verified(self, caplog) -> None:
        """Shortfall is logged, not rejected."""
        memory = torch.zeros(4, dtype=torch.uint8)

        with caplog.at_level("WARNING", logger="buffer2d.buffer"):
            view = Buffer2D.from_memory(memory, 4, 4, pixel_format="u8")

        assert len(view) == 4
        assert "needs 16" in caplog.text

    def test_vector_view(self) -> None:
        """Multi-channel views group consecutive scalars."""
        memory = torch.zeros(2, 2, 3, dtype=torch.float32)
        view = Buffer2D.from_memory(memory, 2, 2, pixel_format="f32x3")

        view.put(1, 0, (1.0, 2.0, 3.0))

        assert memory[0, 1].tolist() == [1.0, 2.0, 3.0]

    def test_dtype_mismatch_rejected(self) -> None:
        """Tensor dtype must match the pixel type."""
        memory = torch.zeros(4, dtype=torch.float32)

        with pytest.raises(InvalidArgumentError, match="dtype mismatch"):
            Buffer2D.from_memory(memory, 2, 2, pixel_format="u8")

    def test_non_contiguous_rejected(self) -> None:
        """Non-contiguous tensors cannot be aliased flat."""
        memory = torch.zeros(4, 4, dtype=torch.uint8).t()

        with pytest.raises(InvalidArgumentError, match="non-contiguous"):
            Buffer2D.from_memory(memory, 4, 4, pixel_format="u8")

    def test_typed_memory_dtype_mismatch_rejected(self) -> None:
        """Typed buffer-protocol memory must match the pixel dtype."""
        raw = array.array("f", [0.0] * 4)

        with pytest.raises(InvalidArgumentError, match="dtype mismatch"):
            Buffer2D.from_memory(raw, 2, 2, pixel_format="u8")

        assert list(raw) == [0.0] * 4

    def test_typed_memory_width_mismatch_rejected(self) -> None:
        """Same-size integer formats of other signedness are rejected."""
        raw = array.array("h", [0] * 4)

        with pytest.raises(InvalidArgumentError, match="dtype mismatch"):
            Buffer2D.from_memory(raw, 2, 2, pixel_format="u16")

    def test_typed_memory_matching_dtype(self) -> None:
        """Unsigned 16-bit memory views as u16 pixels."""
        raw = array.array("H", [0] * 4)
        view = Buffer2D.from_memory(raw, 2, 2, pixel_format="u16")

        view.put(0, 1, 513)

        assert raw[2] == 513

    def test_numpy_dtype_mismatch_rejected(self) -> None:
        """float32 arrays are not reinterpreted as u8 pixels."""
        np = pytest.importorskip("numpy")
        arr = np.zeros((3, 4), np.float32)

        with pytest.raises(InvalidArgumentError, match="dtype mismatch"):
            Buffer2D.from_memory(arr, 4, 3, pixel_format="u8")

        assert not arr.any()

    def test_non_contiguous_memoryview_rejected(self) -> None:
        """Strided buffer-protocol memory cannot be aliased flat."""
        raw = memoryview(bytearray(8))[::2]

        with pytest.raises(InvalidArgumentError, match="non-contiguous"):
            Buffer2D.from_memory(raw, 2, 2, pixel_format="u8")

    def test_non_contiguous_numpy_rejected(self) -> None:
        """Column-strided arrays are rejected before reaching torch."""
        np = pytest.importorskip("numpy")
        arr = np.zeros((3, 8), np.uint8)[:, ::2]

        with pytest.raises(InvalidArgumentError, match="non-contiguous"):
            Buffer2D.from_memory(arr, 4, 3, pixel_format="u8")

    def test_read_only_memory_rejected(self) -> None:
        """bytes objects are read-only."""
        with pytest.raises(InvalidArgumentError, match="read-only"):
            Buffer2D.from_memory(bytes(4), 2, 2, pixel_format="u8")

    def test_non_buffer_rejected(self) -> None:
        """Objects without the buffer protocol are rejected."""
        with pytest.raises(InvalidArgumentError, match="buffer protocol"):
            Buffer2D.from_memory([0, 0, 0, 0], 2, 2, pixel_format="u8")

    def test_channel_mismatch_rejected(self) -> None:
        """Element count must be a multiple of the channel count."""
        memory = torch.zeros(10, dtype=torch.uint8)

        with pytest.raises(InvalidArgumentError, match="channels"):
            Buffer2D.from_memory(memory, 2, 1, pixel_format="u8x3")

    def test_view_validates_extent(self, external_u8) -> None:
        """Views apply the same extent validation."""
        with pytest.raises(InvalidArgumentError):
            Buffer2D.from_memory(external_u8, 4, 3, 2, pixel_format="u8")
