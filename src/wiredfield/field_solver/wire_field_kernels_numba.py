import math

import numpy as np
from numba import njit

from wiredfield import constants
from wiredfield.geometry.vector_helper import mag3, dot3
from wiredfield.field_solver.node_flags import WIRE_ENDPOINT, WIRE_AXIS, NON_FINITE

MU0_OVER_4PI = constants.mu0_over_4pi


def _build_bfield_wires(ftype):
    """
    Build the wire kernel for one floating-point width. Every literal goes
    through ftype so the float32 build never widens to float64 arithmetic.
    """

    @njit(error_model='numpy')
    def bfield_wires(Bx, By, Bz, x, y, z, a0, a1, current, radius, mu_r, check_inside, flags):
        """
        Accumulate into (Bx, By, Bz) the field of Nw straight wire segments at
        Nn nodes (x, y, z). Finite-filament Biot-Savart:

            B = d (c x a) / |c x a|^2 * (a.c/|c| - a.b/|b|),   d = mu_r mu0 I / (4 pi)

        with a = a1 - a0, b = a0 - node, c = a1 - node. If check_inside, the
        contribution at perpendicular distance rho = |c x a|/|a| < radius is
        scaled by (rho/radius)^2 (uniform current density), and is exactly 0
        on the wire axis.
        """
        Nn = x.shape[0]
        Nw = current.shape[0]

        zero = ftype(0.0)
        one = ftype(1.0)
        mu_r_f = ftype(mu_r)
        mu0_4pi = ftype(MU0_OVER_4PI)

        a = np.zeros(3, dtype=ftype)
        bx = np.empty(Nn, dtype=ftype)
        by = np.empty(Nn, dtype=ftype)
        bz = np.empty(Nn, dtype=ftype)
        cx = np.empty(Nn, dtype=ftype)
        cy = np.empty(Nn, dtype=ftype)
        cz = np.empty(Nn, dtype=ftype)
        _Bx = np.empty(Nn, dtype=ftype)
        _By = np.empty(Nn, dtype=ftype)
        _Bz = np.empty(Nn, dtype=ftype)
        g = np.empty(Nn, dtype=ftype)
        # only needed for the interior correction
        Nc = Nn if check_inside else 0
        jc = np.empty(Nc, dtype=ftype)
        r = np.empty(Nc, dtype=ftype)

        # Outer loop over sources (wires)
        for i in range(Nw):

            d = mu_r_f * mu0_4pi * current[i]
            a[0] = a1[i, 0] - a0[i, 0]
            a[1] = a1[i, 1] - a0[i, 1]
            a[2] = a1[i, 2] - a0[i, 2]

            # b, c point from the node to the start and end of the wire.
            # Grouped by component to keep each pass over x, y, z in cache.
            for j in range(Nn):
                bx[j] = a0[i, 0] - x[j]
                cx[j] = a1[i, 0] - x[j]
            for j in range(Nn):
                by[j] = a0[i, 1] - y[j]
                cy[j] = a1[i, 1] - y[j]
            for j in range(Nn):
                bz[j] = a0[i, 2] - z[j]
                cz[j] = a1[i, 2] - z[j]

            # B = c x a
            for j in range(Nn):
                _Bx[j] = cy[j]*a[2] - cz[j]*a[1]
                _By[j] = cz[j]*a[0] - cx[j]*a[2]
                _Bz[j] = cx[j]*a[1] - cy[j]*a[0]

            # rho = |c x a| / |a|, jc = (rho/radius)^2
            if check_inside:
                inv_mag_a = one/mag3(a[0], a[1], a[2])
                for j in range(Nn):
                    r[j] = inv_mag_a*mag3(_Bx[j], _By[j], _Bz[j])

                inv_R2 = one/(radius[i]*radius[i])
                for j in range(Nn):
                    jc[j] = inv_R2*(r[j]*r[j])

            # B = d (c x a) / |c x a|^2
            for j in range(Nn):
                denom = _Bx[j]*_Bx[j] + _By[j]*_By[j] + _Bz[j]*_Bz[j]
                g[j] = d/denom
            for j in range(Nn):
                _Bx[j] *= g[j]
                _By[j] *= g[j]
                _Bz[j] *= g[j]

            # Clamp: pass-through inside, 1 outside, exact 0 on the axis
            if check_inside:
                for j in range(Nn):
                    if r[j] < radius[i]:
                        jc[j] = jc[j] if r[j] > zero else zero
                    else:
                        jc[j] = one
                for j in range(Nn):
                    if jc[j] == zero:
                        _Bx[j] = zero
                        _By[j] = zero
                        _Bz[j] = zero
                    else:
                        _Bx[j] *= jc[j]
                        _By[j] *= jc[j]
                        _Bz[j] *= jc[j]

            # B *= (a.c/|c| - a.b/|b|)
            for j in range(Nn):
                mag_c = mag3(cx[j], cy[j], cz[j])
                mag_b = mag3(bx[j], by[j], bz[j])
                ac_ab = dot3(a[0], a[1], a[2], cx[j], cy[j], cz[j]) / mag_c
                ac_ab -= dot3(a[0], a[1], a[2], bx[j], by[j], bz[j]) / mag_b
                _Bx[j] *= ac_ab
                _By[j] *= ac_ab
                _Bz[j] *= ac_ab

            # Accumulate into the output arrays
            for j in range(Nn):
                Bx[j] += _Bx[j]
                By[j] += _By[j]
                Bz[j] += _Bz[j]

            # Tag nodes whose contribution is not a number
            for j in range(Nn):
                if math.isfinite(_Bx[j]) and math.isfinite(_By[j]) and math.isfinite(_Bz[j]):
                    continue
                at_a0 = bx[j] == zero and by[j] == zero and bz[j] == zero
                at_a1 = cx[j] == zero and cy[j] == zero and cz[j] == zero
                if at_a0 or at_a1:
                    flags[j] |= WIRE_ENDPOINT
                elif not math.isfinite(g[j]):
                    flags[j] |= WIRE_AXIS
                else:
                    flags[j] |= NON_FINITE

    return bfield_wires


bfield_wires_f32 = _build_bfield_wires(np.float32)
bfield_wires_f64 = _build_bfield_wires(np.float64)

BFIELD_WIRES = {
    np.dtype(np.float32): bfield_wires_f32,
    np.dtype(np.float64): bfield_wires_f64,
}
