"""
Tests for the 3-vector helper kernels.
"""

import numpy as np
from numpy.testing import assert_allclose

from wiredfield.geometry.vector_helper import mag3, dot3


class TestMag3:

    def test_pythagorean_triple(self):
        assert mag3(3.0, 4.0, 12.0) == 13.0

    def test_zero_vector(self):
        assert mag3(0.0, 0.0, 0.0) == 0.0

    def test_sign_independent(self):
        assert mag3(-1.0, 2.0, -2.0) == mag3(1.0, -2.0, 2.0) == 3.0

    def test_float32_stays_float32(self):
        v = mag3(np.float32(1.0), np.float32(2.0), np.float32(2.0))
        assert_allclose(v, 3.0)


class TestDot3:

    def test_orthogonal(self):
        assert dot3(1.0, 0.0, 0.0, 0.0, 1.0, 0.0) == 0.0

    def test_matches_numpy(self):
        a = np.array([1.5, -2.0, 0.25])
        b = np.array([4.0, 3.0, -8.0])
        assert_allclose(dot3(a[0], a[1], a[2], b[0], b[1], b[2]), np.dot(a, b))

    def test_self_dot_is_squared_magnitude(self):
        assert_allclose(dot3(3.0, 4.0, 12.0, 3.0, 4.0, 12.0), mag3(3.0, 4.0, 12.0)**2)
