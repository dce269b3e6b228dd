"""buffer2d Configuration APIs.

Public APIs for configuring buffer allocation:
- configure() - Set global configuration
- get_config() - Get current configuration
- load_config() - Load configuration from a YAML file
- Buffer2DConfig.from_env() - Build configuration from environment variables
"""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Optional

import yaml

from buffer2d.exceptions import ConfigurationError


@dataclass
class Buffer2DConfig:
    """Global buffer2d configuration.

    Attributes:
        default_device: Device for owning allocations when none is given.
        zero_on_alloc: If True, owning allocations start zeroed.
        max_alloc_bytes: Per-allocation cap in bytes. None means unlimited.
    """

    DEFAULT_DEVICE: ClassVar[str] = "cpu"

    default_device: str = "cpu"
    zero_on_alloc: bool = False
    max_alloc_bytes: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not isinstance(self.zero_on_alloc, bool):
            raise ConfigurationError(
                "zero_on_alloc must be a bool",
                config_key="zero_on_alloc",
                expected="bool",
                got=self.zero_on_alloc,
            )
        limit = self.max_alloc_bytes
        if limit is not None and (
            isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0
        ):
            raise ConfigurationError(
                "max_alloc_bytes must be a positive int",
                config_key="max_alloc_bytes",
                expected="positive int or None",
                got=limit,
            )

    @classmethod
    def from_env(cls) -> "Buffer2DConfig":
        """Create config from environment variables.

        Environment variables:
            BUFFER2D_DEFAULT_DEVICE: Device string ("cpu", "cuda:0", ...)
            BUFFER2D_ZERO_ON_ALLOC: "1" or "true" to zero new allocations
            BUFFER2D_MAX_ALLOC_BYTES: Per-allocation cap in bytes

        Returns:
            Buffer2DConfig with values from environment.
        """
        device = os.environ.get("BUFFER2D_DEFAULT_DEVICE", cls.DEFAULT_DEVICE)

        zero_str = os.environ.get("BUFFER2D_ZERO_ON_ALLOC", "0")
        zero_on_alloc = zero_str.lower() in ("1", "true", "yes")

        max_str = os.environ.get("BUFFER2D_MAX_ALLOC_BYTES")
        try:
            max_alloc_bytes = int(max_str) if max_str else None
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid BUFFER2D_MAX_ALLOC_BYTES: {max_str!r}",
                config_key="max_alloc_bytes",
                expected="int",
                got=max_str,
            ) from e

        return cls(
            default_device=device,
            zero_on_alloc=zero_on_alloc,
            max_alloc_bytes=max_alloc_bytes,
        )


@dataclass
class GlobalState:
    """Global state for buffer2d."""
    config: Buffer2DConfig = field(default_factory=Buffer2DConfig)
    _lock: threading.Lock = field(default_factory=threading.Lock)


# Module-level global state
_global_state: Optional[GlobalState] = None
_state_lock = threading.Lock()

_UNSET: Any = object()


def _get_global_state() -> GlobalState:
    """Get or create global state."""
    global _global_state
    if _global_state is None:
        with _state_lock:
            if _global_state is None:
                _global_state = GlobalState()
    return _global_state


def configure(
    default_device: Optional[str] = None,
    zero_on_alloc: Optional[bool] = None,
    max_alloc_bytes: Optional[int] = _UNSET,
    reset: bool = False,
) -> None:
    """Configure buffer2d global settings.

    Settings persist for the lifetime of the process unless reset.

    Args:
        default_device: Device for owning allocations ("cpu", "cuda:0", ...).
        zero_on_alloc: If True, owning allocations start zeroed.
        max_alloc_bytes: Per-allocation cap in bytes. Pass None to remove it.
        reset: If True, reset all settings to defaults first.

    Raises:
        ConfigurationError: If a value is invalid.

    Example:
        >>> import buffer2d
        >>>
        >>> buffer2d.configure(zero_on_alloc=True, max_alloc_bytes=1 << 30)
        >>>
        >>> # Reset to defaults
        >>> buffer2d.configure(reset=True)
    """
    state = _get_global_state()

    with state._lock:
        config = Buffer2DConfig() if reset else state.config

        updates: dict[str, Any] = {}
        if default_device is not None:
            updates["default_device"] = str(default_device)
        if zero_on_alloc is not None:
            updates["zero_on_alloc"] = zero_on_alloc
        if max_alloc_bytes is not _UNSET:
            updates["max_alloc_bytes"] = max_alloc_bytes

        # replace() reruns validation before anything is committed
        state.config = replace(config, **updates)


def get_config() -> Buffer2DConfig:
    """Get current buffer2d configuration.

    Returns:
        Current configuration object (copy for safety).
    """
    state = _get_global_state()
    with state._lock:
        return replace(state.config)


def load_config(path: str) -> None:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ConfigurationError: If config file is invalid.

    YAML format::

        default_device: cpu
        zero_on_alloc: true
        max_alloc_bytes: 1073741824
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {path}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid config file format: {path}",
            expected="mapping",
            got=type(data).__name__,
        )

    known = {"default_device", "zero_on_alloc", "max_alloc_bytes"}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown config keys: {sorted(unknown)}",
            config_key=sorted(unknown)[0],
            expected=sorted(known),
        )

    kwargs: dict[str, Any] = {
        "default_device": data.get("default_device"),
        "zero_on_alloc": data.get("zero_on_alloc"),
    }
    if "max_alloc_bytes" in data:
        kwargs["max_alloc_bytes"] = data["max_alloc_bytes"]

    configure(**kwargs)
