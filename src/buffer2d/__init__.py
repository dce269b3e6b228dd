"""
buffer2d - Strided 2-D Pixel Buffers

Owning and zero-copy viewing pixel buffers backed by PyTorch tensors,
for use as the storage layer of image-processing pipelines.

Main APIs:
- Buffer2D: generic strided buffer (owning or view)
- Buffer2DF / Buffer2DF3 / Buffer2DB / Buffer2DB3 / Buffer2DB16: named formats
- configure() / get_config() / load_config(): allocation settings
"""

__version__ = "0.1.0"

from buffer2d.aliases import (
    ALIASES,
    Buffer2DB,
    Buffer2DB3,
    Buffer2DB16,
    Buffer2DF,
    Buffer2DF3,
)
from buffer2d.allocator import (
    StorageAllocator,
    get_default_allocator,
    set_default_allocator,
)
from buffer2d.buffer import Buffer2D
from buffer2d.config import (
    Buffer2DConfig,
    configure,
    get_config,
    load_config,
)
from buffer2d.exceptions import (
    Buffer2DError,
    ConfigurationError,
    InvalidArgumentError,
    OutOfMemoryError,
    PixelOutOfBoundsError,
    StorageReleasedError,
)
from buffer2d.formats import (
    PixelFormat,
    PixelSpec,
    format_from_string,
    get_pixel_spec,
)

__all__ = [
    "__version__",
    # Buffers
    "Buffer2D",
    "Buffer2DF",
    "Buffer2DF3",
    "Buffer2DB",
    "Buffer2DB3",
    "Buffer2DB16",
    "ALIASES",
    # Formats
    "PixelFormat",
    "PixelSpec",
    "format_from_string",
    "get_pixel_spec",
    # Allocation
    "StorageAllocator",
    "get_default_allocator",
    "set_default_allocator",
    # Config
    "Buffer2DConfig",
    "configure",
    "get_config",
    "load_config",
    # Exceptions
    "Buffer2DError",
    "ConfigurationError",
    "InvalidArgumentError",
    "OutOfMemoryError",
    "PixelOutOfBoundsError",
    "StorageReleasedError",
]
