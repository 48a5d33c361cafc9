"""
Physics tests for the straight-wire Biot-Savart kernel.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from wiredfield import constants
from wiredfield.sources.sources import WireSources
from wiredfield.field_solver.node_flags import NodeFlag
from wiredfield.field_solver.vacuum_field_solver import evaluate_wire_field


def infinite_wire_B(I, rho):
    """mu0 I / (2 pi rho)"""
    return constants.mu0 * I / (2.0 * np.pi * rho)


class TestInfiniteWireLimit:

    def test_single_node(self, long_wire, dtype, zeros3):
        out = zeros3(1, dtype)
        nodes = (np.array([1e-3]), np.array([0.0]), np.array([0.0]))
        diag = evaluate_wire_field(out, nodes, long_wire, mu_r=1.0, check_inside=False)

        Bx, By, Bz = out
        assert Bx.dtype == dtype
        assert_allclose(By, [2e-4], rtol=1e-5)
        assert_allclose(By, infinite_wire_B(1.0, 1e-3), rtol=1e-5)
        assert_array_equal(Bx, [0.0])
        assert_array_equal(Bz, [0.0])
        assert diag.ok

    def test_right_hand_rule(self, long_wire, zeros3):
        # current along +z: field circulates counter-clockwise seen from +z
        x = np.array([0.5, 0.0, -0.5, 0.0])
        y = np.array([0.0, 0.5, 0.0, -0.5])
        z = np.zeros(4)
        out = zeros3(4)
        evaluate_wire_field(out, (x, y, z), long_wire)

        Bx, By, _ = out
        B0 = infinite_wire_B(1.0, 0.5)
        assert_allclose(Bx, [0.0, -B0, 0.0, B0], atol=1e-12*B0)
        assert_allclose(By, [B0, 0.0, -B0, 0.0], atol=1e-12*B0)

    def test_reversed_current_flips_field(self, zeros3):
        up = WireSources({'a0': [[0, 0, -1e6]], 'a1': [[0, 0, 1e6]], 'current': [3.0]})
        down = WireSources({'a0': [[0, 0, 1e6]], 'a1': [[0, 0, -1e6]], 'current': [3.0]})
        nodes = (np.array([0.2, -0.1]), np.array([0.3, 0.4]), np.array([0.0, 5.0]))
        out_up, out_down = zeros3(2), zeros3(2)
        evaluate_wire_field(out_up, nodes, up)
        evaluate_wire_field(out_down, nodes, down)
        for Bu, Bd in zip(out_up, out_down):
            assert_allclose(Bu, -Bd, rtol=1e-12, atol=1e-20)


class TestFiniteSegment:

    def test_perpendicular_bisector(self, zeros3):
        # unit half-length segment seen from unit distance: cos(t1) - cos(t2) = 2/sqrt(2)
        wire = WireSources({'a0': [[0, 0, -1]], 'a1': [[0, 0, 1]], 'current': [5.0]})
        out = zeros3(1)
        evaluate_wire_field(out, ([1.0], [0.0], [0.0]), wire)
        assert_allclose(out[1], [np.sqrt(2.0) * 1e-7 * 5.0], rtol=1e-13)

    def test_beyond_endpoint_on_perpendicular(self, zeros3):
        # node level with a0: cos(t1) - cos(t2) = L/sqrt(L^2+d^2) - 0
        L, d = 2.0, 0.5
        wire = WireSources({'a0': [[0, 0, 0]], 'a1': [[0, 0, L]], 'current': [1.0]})
        out = zeros3(1)
        evaluate_wire_field(out, ([d], [0.0], [0.0]), wire)
        expected = 1e-7 / d * (L / np.sqrt(L*L + d*d))
        assert_allclose(out[1], [expected], rtol=1e-13)

    def test_mu_r_scales_field(self, square_loop, grid_nodes, zeros3):
        n = grid_nodes[0].shape[0]
        out1, out3 = zeros3(n), zeros3(n)
        evaluate_wire_field(out1, grid_nodes, square_loop, mu_r=1.0)
        evaluate_wire_field(out3, grid_nodes, square_loop, mu_r=3.0)
        for B1, B3 in zip(out1, out3):
            assert_allclose(B3, 3.0*B1, rtol=1e-13)

    def test_square_loop_center(self, square_loop, zeros3):
        # centre of a square loop of side 2a: Bz = 2 sqrt(2) mu0 I / (pi * 2a)
        out = zeros3(1)
        evaluate_wire_field(out, ([0.0], [0.0], [0.0]), square_loop)
        expected = 2.0*np.sqrt(2.0) * constants.mu0 * 10.0 / (np.pi * 2.0)
        assert_allclose(out[2], [expected], rtol=1e-12)
        assert_allclose(out[0], [0.0], atol=1e-12*expected)
        assert_allclose(out[1], [0.0], atol=1e-12*expected)


class TestSuperpositionAndLinearity:

    def test_superposition(self, square_loop, grid_nodes, zeros3):
        n = grid_nodes[0].shape[0]
        together = zeros3(n)
        evaluate_wire_field(together, grid_nodes, square_loop)

        summed = zeros3(n)
        for iw in range(len(square_loop)):
            one = WireSources({'a0': square_loop.a0[iw:iw+1], 'a1': square_loop.a1[iw:iw+1],
                               'current': square_loop.current[iw:iw+1]})
            part = zeros3(n)
            evaluate_wire_field(part, grid_nodes, one)
            for S, P in zip(summed, part):
                S += P

        for T, S in zip(together, summed):
            assert_allclose(T, S, rtol=1e-12, atol=1e-20)

    def test_doubling_current_is_exact(self, square_loop, grid_nodes, dtype, zeros3):
        n = grid_nodes[0].shape[0]
        out1, out2 = zeros3(n, dtype), zeros3(n, dtype)
        evaluate_wire_field(out1, grid_nodes, square_loop, check_inside=True)
        evaluate_wire_field(out2, grid_nodes, square_loop.scaled(2.0), check_inside=True)
        for B1, B2 in zip(out1, out2):
            assert_array_equal(B2, 2.0*B1)

    def test_linearity_general_factor(self, square_loop, grid_nodes, zeros3):
        n = grid_nodes[0].shape[0]
        out1, outc = zeros3(n), zeros3(n)
        evaluate_wire_field(out1, grid_nodes, square_loop)
        evaluate_wire_field(outc, grid_nodes, square_loop.scaled(-3.7))
        for B1, Bc in zip(out1, outc):
            assert_allclose(Bc, -3.7*B1, rtol=1e-13, atol=1e-22)

    def test_accumulates_into_output(self, square_loop, grid_nodes, zeros3):
        n = grid_nodes[0].shape[0]
        once, twice = zeros3(n), zeros3(n)
        evaluate_wire_field(once, grid_nodes, square_loop)
        evaluate_wire_field(twice, grid_nodes, square_loop)
        evaluate_wire_field(twice, grid_nodes, square_loop)
        for B1, B2 in zip(once, twice):
            assert_allclose(B2, 2.0*B1, rtol=1e-15)


class TestPrecision:

    def test_float32_matches_float64(self, square_loop, grid_nodes, zeros3):
        n = grid_nodes[0].shape[0]
        out64, out32 = zeros3(n, np.float64), zeros3(n, np.float32)
        evaluate_wire_field(out64, grid_nodes, square_loop)
        evaluate_wire_field(out32, grid_nodes, square_loop)

        scale = max(np.abs(B).max() for B in out64)
        for B64, B32 in zip(out64, out32):
            assert B32.dtype == np.float32
            assert_allclose(B32, B64, rtol=1e-4, atol=1e-5*scale)


class TestInteriorCorrection:

    def test_inside_is_weaker_than_filament(self, long_wire, dtype, zeros3):
        rho = np.array([0.01, 0.03, 0.05, 0.09])
        nodes = (rho, np.zeros(4), np.zeros(4))
        thin, thick = zeros3(4, dtype), zeros3(4, dtype)
        evaluate_wire_field(thin, nodes, long_wire, check_inside=False)
        evaluate_wire_field(thick, nodes, long_wire, check_inside=True)

        assert np.all(np.abs(thick[1]) < np.abs(thin[1]))
        # uniform current density: B = mu0 I rho / (2 pi radius^2)
        expected = constants.mu0 * 1.0 * rho / (2.0 * np.pi * 0.1**2)
        assert_allclose(thick[1], expected, rtol=1e-5)

    def test_outside_is_unchanged(self, long_wire, zeros3):
        rho = np.array([0.11, 0.2, 1.0])
        nodes = (rho, np.zeros(3), np.zeros(3))
        thin, thick = zeros3(3), zeros3(3)
        evaluate_wire_field(thin, nodes, long_wire, check_inside=False)
        evaluate_wire_field(thick, nodes, long_wire, check_inside=True)
        for Bt, Bk in zip(thin, thick):
            assert_array_equal(Bt, Bk)

    def test_on_axis_is_exactly_zero(self, long_wire, dtype, zeros3):
        out = zeros3(2, dtype)
        nodes = (np.zeros(2), np.zeros(2), np.array([0.0, 123.0]))
        diag = evaluate_wire_field(out, nodes, long_wire, check_inside=True)
        for B in out:
            assert_array_equal(B, [0.0, 0.0])
        assert diag.ok

    def test_on_axis_without_correction_is_flagged(self, long_wire, zeros3):
        out = zeros3(1)
        diag = evaluate_wire_field(out, ([0.0], [0.0], [0.0]), long_wire, check_inside=False)
        assert not np.isfinite(out[0][0])
        assert_array_equal(diag.nodes_with(NodeFlag.WIRE_AXIS), [0])

    def test_five_nodes_near_axis(self, zeros3):
        wire = WireSources({'a0': [[0, 0, -1e6]], 'a1': [[0, 0, 1e6]],
                            'current': [200.0], 'radius': [0.1]})
        x = np.logspace(-9, -5, 5)
        nodes = (x, np.zeros(5), np.zeros(5))

        inside, filament = zeros3(5), zeros3(5)
        diag = evaluate_wire_field(inside, nodes, wire, mu_r=1.0, check_inside=True)
        evaluate_wire_field(filament, nodes, wire, mu_r=1.0, check_inside=False)

        for B in inside + filament:
            assert np.all(np.isfinite(B))
        assert diag.ok
        assert_allclose(inside[0], 0.0, atol=1e-30)
        assert_allclose(inside[2], 0.0, atol=1e-30)

        # the thin filament follows mu0 I / (2 pi x) and decreases with x
        assert_allclose(filament[1], infinite_wire_B(200.0, x), rtol=1e-9)
        assert np.all(np.diff(filament[1]) < 0)

        # inside the 0.1 m conductor the field is the uniform-density one
        assert_allclose(inside[1], infinite_wire_B(200.0, x) * (x / 0.1)**2, rtol=1e-9)
        assert np.all(np.diff(inside[1]) > 0)


class TestDegenerateNodes:

    def test_node_on_endpoint(self, zeros3):
        wire = WireSources({'a0': [[0, 0, 0]], 'a1': [[1, 0, 0]], 'current': [1.0]})
        nodes = (np.array([0.0, 1.0, 0.5]), np.array([0.0, 0.0, 1.0]), np.zeros(3))
        out = zeros3(3)
        diag = evaluate_wire_field(out, nodes, wire)

        assert_array_equal(diag.nodes_with(NodeFlag.WIRE_ENDPOINT), [0, 1])
        assert np.all(np.isnan(out[2][:2]))
        assert np.isfinite(out[2][2])
        assert diag.counts() == {'WIRE_ENDPOINT': 2}

    def test_collinear_beyond_segment_is_flagged(self, zeros3):
        wire = WireSources({'a0': [[0, 0, 0]], 'a1': [[0, 0, 1]], 'current': [1.0]})
        out = zeros3(1)
        diag = evaluate_wire_field(out, ([0.0], [0.0], [3.0]), wire)
        assert_array_equal(diag.nodes_with(NodeFlag.WIRE_AXIS), [0])

    def test_degenerate_node_does_not_spoil_others(self, long_wire, zeros3):
        nodes = (np.array([0.0, 0.5]), np.zeros(2), np.zeros(2))
        out = zeros3(2)
        diag = evaluate_wire_field(out, nodes, long_wire, check_inside=False)
        assert diag.n_degenerate == 1
        assert_allclose(out[1][1], infinite_wire_B(1.0, 0.5), rtol=1e-10)
