import math

import numpy as np
from numba import njit

from wiredfield import constants
from wiredfield.elliptic.elliptic_kernels_numba import ellipk_agm, ellipe_agm
from wiredfield.field_solver.node_flags import RING_X_ZERO, NON_FINITE

MU0_OVER_PI = constants.mu0_over_pi


def _build_bfield_rings(ftype):
    """
    Build the ring kernel for one floating-point width. The elliptic integrals
    are always evaluated in float64 and narrowed back to ftype.
    """

    @njit(error_model='numpy')
    def bfield_rings(Bx, By, Bz, x, y, z, height, R_major, r_minor, current,
                     mu_r, check_inside, apply_height, flags):
        """
        Accumulate into (Bx, By, Bz) the field of Nr circular loops (axis z,
        centred at the origin) at Nn nodes. With C = mu_r mu0 I / pi,

            alpha^2 = R^2 + r^2 - 2 R rho,  beta^2 = R^2 + r^2 + 2 R rho,
            k^2 = 1 - alpha^2/beta^2,

            Bx = C x z / (2 alpha^2 beta rho^2) ((R^2 + r^2) E - alpha^2 K)
            By = (y/x) Bx
            Bz = C / (2 alpha^2 beta) ((R^2 - r^2) E + alpha^2 K)

        where rho^2 = x^2 + y^2 and r^2 = x^2 + y^2 + z^2. If apply_height,
        z is taken relative to each ring's height. If check_inside, the
        contribution is scaled by alpha^2/r_minor^2 inside the conductor.
        """
        Nn = x.shape[0]
        Nr = current.shape[0]

        zero = ftype(0.0)
        one = ftype(1.0)
        two = ftype(2.0)
        mu_r_f = ftype(mu_r)
        mu0_pi = ftype(MU0_OVER_PI)

        rho = np.empty(Nn, dtype=ftype)
        rho2 = np.empty(Nn, dtype=ftype)
        r2 = np.empty(Nn, dtype=ftype)
        zl = np.empty(Nn, dtype=ftype)
        alpha2 = np.empty(Nn, dtype=ftype)
        beta = np.empty(Nn, dtype=ftype)
        beta2 = np.empty(Nn, dtype=ftype)
        k2 = np.empty(Nn, dtype=ftype)
        K = np.empty(Nn, dtype=ftype)
        E = np.empty(Nn, dtype=ftype)
        _Bx = np.empty(Nn, dtype=ftype)
        _By = np.empty(Nn, dtype=ftype)
        _Bz = np.empty(Nn, dtype=ftype)
        Nc = Nn if check_inside else 0
        jc = np.empty(Nc, dtype=ftype)
        kstat = np.zeros(Nn, dtype=np.uint8)

        # Node variables shared by every ring
        for j in range(Nn):
            rho2[j] = x[j]*x[j] + y[j]*y[j]
            rho[j] = math.sqrt(rho2[j])
        for j in range(Nn):
            zl[j] = z[j]
            r2[j] = rho2[j] + z[j]*z[j]

        for i in range(Nr):

            if apply_height:
                H = height[i]
                for j in range(Nn):
                    zl[j] = z[j] - H
                    r2[j] = rho2[j] + zl[j]*zl[j]

            R = R_major[i]
            R2 = R*R
            C = mu_r_f * mu0_pi * current[i]

            # alpha, beta, k2 and the elliptic integrals
            for j in range(Nn):
                alpha2[j] = R2 + r2[j] - two*R*rho[j]
            for j in range(Nn):
                beta2[j] = R2 + r2[j] + two*R*rho[j]
                beta[j] = math.sqrt(beta2[j])
            for j in range(Nn):
                k2[j] = one - alpha2[j]/beta2[j]
            for j in range(Nn):
                k_val, status = ellipk_agm(np.float64(k2[j]))
                K[j] = ftype(k_val)
                kstat[j] = status
            for j in range(Nn):
                e_val, status = ellipe_agm(np.float64(k2[j]))
                E[j] = ftype(e_val)
                kstat[j] |= status

            for j in range(Nn):
                _Bx[j] = ((C*x[j]*zl[j]) / (two*alpha2[j]*beta[j]*rho2[j])) * ((R2 + r2[j])*E[j] - alpha2[j]*K[j])
            for j in range(Nn):
                _By[j] = (y[j]/x[j]) * _Bx[j]
            for j in range(Nn):
                _Bz[j] = (C / (two*alpha2[j]*beta[j])) * ((R2 - r2[j])*E[j] + alpha2[j]*K[j])

            # Current density correction, alpha^2 is the squared distance to the filament
            if check_inside:
                a2 = r_minor[i]*r_minor[i]
                for j in range(Nn):
                    if alpha2[j] < a2:
                        jc[j] = alpha2[j]/a2 if alpha2[j] > zero else zero
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

            # Accumulate into the output arrays
            for j in range(Nn):
                Bx[j] += _Bx[j]
                By[j] += _By[j]
                Bz[j] += _Bz[j]

            # Tag untrustworthy nodes; an exact zero from the correction is trusted
            for j in range(Nn):
                if check_inside and jc[j] == zero:
                    continue
                if kstat[j] != 0:
                    flags[j] |= kstat[j]
                if x[j] == zero:
                    flags[j] |= RING_X_ZERO
                elif not (math.isfinite(_Bx[j]) and math.isfinite(_By[j]) and math.isfinite(_Bz[j])):
                    flags[j] |= NON_FINITE

    return bfield_rings


bfield_rings_f32 = _build_bfield_rings(np.float32)
bfield_rings_f64 = _build_bfield_rings(np.float64)

BFIELD_RINGS = {
    np.dtype(np.float32): bfield_rings_f32,
    np.dtype(np.float64): bfield_rings_f64,
}
