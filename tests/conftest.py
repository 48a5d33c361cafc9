"""
Pytest configuration for the wiredfield test suite.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from wiredfield.sources.sources import WireSources, RingSources  # noqa: E402


def pytest_configure(config):
    """Called after command line options have been parsed."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture(params=[np.float64, np.float32], ids=["f64", "f32"])
def dtype(request):
    """Run a test against both kernel precisions."""
    return np.dtype(request.param)


@pytest.fixture
def rtol_for():
    """Relative tolerance appropriate to each precision."""
    return {np.dtype(np.float64): 1e-10, np.dtype(np.float32): 1e-4}


@pytest.fixture
def long_wire():
    """Nearly infinite straight wire along z carrying 1 A."""
    return WireSources({
        'a0': [[0.0, 0.0, -1e6]],
        'a1': [[0.0, 0.0, 1e6]],
        'current': [1.0],
        'radius': [0.1],
    })


@pytest.fixture
def square_loop():
    """Square loop of side 2 in the z=0 plane, four named segments, 10 A."""
    corners = np.array([[-1.0, -1.0, 0.0], [1.0, -1.0, 0.0],
                        [1.0, 1.0, 0.0], [-1.0, 1.0, 0.0]])
    return WireSources({
        'a0': corners,
        'a1': np.roll(corners, -1, axis=0),
        'current': np.full(4, 10.0),
        'radius': np.full(4, 0.01),
        'name': ['S', 'E', 'N', 'W'],
    })


@pytest.fixture
def coil_rings():
    """Two coaxial rings, unit major radius, 5 mm conductor."""
    return RingSources({
        'height': [0.0, 0.0],
        'R': [1.0, 1.5],
        'r': [0.005, 0.005],
        'current': [100.0, -40.0],
    })


@pytest.fixture
def grid_nodes():
    """Off-axis nodes away from every conductor used in the fixtures."""
    rng = np.random.default_rng(1234)
    n = 64
    x = rng.uniform(0.2, 0.6, n) * rng.choice([-1.0, 1.0], n)
    y = rng.uniform(-0.6, 0.6, n)
    z = rng.uniform(0.3, 0.8, n)
    return x, y, z


@pytest.fixture
def zeros3():
    """Factory for zeroed (Bx, By, Bz) output arrays."""
    def make(n, dtype=np.float64):
        return (np.zeros(n, dtype=dtype), np.zeros(n, dtype=dtype), np.zeros(n, dtype=dtype))
    return make
