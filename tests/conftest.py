"""
PyTest Configuration for buffer2d Tests

Provides fixtures, markers, and test setup.
"""
import sys
from pathlib import Path

import pytest
import torch

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "gpu: mark test as requiring GPU")


@pytest.fixture(scope="session")
def cuda_device():
    """Get CUDA device if available, otherwise skip."""
    if torch.cuda.is_available():
        return torch.device("cuda:0")
    pytest.skip("CUDA not available")


@pytest.fixture
def reset_config():
    """Restore default global configuration after the test."""
    import buffer2d

    buffer2d.configure(reset=True)
    yield
    buffer2d.configure(reset=True)


@pytest.fixture
def allocator():
    """Fresh allocator with isolated accounting."""
    from buffer2d.allocator import StorageAllocator

    return StorageAllocator()
