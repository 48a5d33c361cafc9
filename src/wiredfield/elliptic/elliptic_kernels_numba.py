import math

import numpy as np
from numba import njit

from wiredfield import constants
from wiredfield.field_solver.node_flags import ELLIPTIC_SINGULAR, ELLIPTIC_NONCONVERGED

ITMAX = constants.ELLIP_ITMAX
ERRMAX = constants.ELLIP_ERRMAX


@njit(cache=True)
def ellipk_agm(k2, itmax=ITMAX):
    """
    Complete elliptic integral of the first kind K(k^2), descending Gauss AGM.

    k2 is the parameter m = k^2 (not the modulus), 0 <= k2 < 1.
    Returns (K, status). At k2 ~ 1 the integral diverges: K = -1 is returned
    as a sentinel with status ELLIPTIC_SINGULAR. If the iteration cap is hit
    (itmax) before |a_n - g_n| <= ERRMAX the last estimate is returned with
    status ELLIPTIC_NONCONVERGED. A NaN parameter never converges.
    """
    if k2 >= 1.0 - ERRMAX:
        return -1.0, ELLIPTIC_SINGULAR

    it = 1
    err = 2.0*ERRMAX
    a0 = 1.0
    g0 = math.sqrt(1.0 - k2)

    while it < itmax and err > ERRMAX:
        a1 = 0.5*(a0 + g0)
        g1 = math.sqrt(a0*g0)
        a0 = a1
        g0 = g1

        err = abs(a0 - g0)
        it += 1

    status = 0 if err <= ERRMAX else ELLIPTIC_NONCONVERGED
    return math.pi/(2.0*a0), status


@njit(cache=True)
def ellipe_agm(k2, itmax=ITMAX):
    """
    Complete elliptic integral of the second kind E(k^2).

    Same AGM sequence as ellipk_agm, accumulating c_n 2^(n-1) with
    c_n = |a_n^2 - g_n^2|:  E = (1 - sum) * pi / (2 a_N).
    E(1) = 1 and E(0) = pi/2 are returned directly.
    """
    if k2 >= 1.0 - ERRMAX:
        return 1.0, 0
    if abs(k2) <= ERRMAX:
        return 0.5*math.pi, 0

    err = 2.0*ERRMAX
    n = 0
    pow2 = 0.5                       # 2^(n-1)
    an = 1.0
    gn = math.sqrt(1.0 - k2)
    cn = abs(an*an - gn*gn)
    esum = cn*pow2

    while n < itmax and err > ERRMAX:
        n += 1
        pow2 *= 2.0

        an1 = 0.5*(an + gn)
        gn1 = math.sqrt(an*gn)
        cn1 = abs(an1*an1 - gn1*gn1)
        esum1 = esum + cn1*pow2

        err = abs(esum1 - esum)

        an = an1
        gn = gn1
        esum = esum1

    status = 0 if err <= ERRMAX else ELLIPTIC_NONCONVERGED
    return (1.0 - esum)*math.pi/(2.0*an), status


@njit(cache=True)
def _ellipke_loop(k2, K, E, flags):
    for j in range(k2.shape[0]):
        k_val, sk = ellipk_agm(k2[j])
        e_val, se = ellipe_agm(k2[j])
        K[j] = k_val
        E[j] = e_val
        flags[j] = sk | se


def ellipke(k2):
    """
    Vectorized K(k^2), E(k^2) over an array of parameters.

    Returns (K, E, flags), float64 arrays of the input shape and a uint8 array
    of node_flags bits (ELLIPTIC_SINGULAR, ELLIPTIC_NONCONVERGED).
    """
    k2 = np.asarray(k2, dtype=np.float64)
    shape = k2.shape
    k2_flat = np.ascontiguousarray(k2.ravel())

    K = np.empty_like(k2_flat)
    E = np.empty_like(k2_flat)
    flags = np.zeros(k2_flat.shape, dtype=np.uint8)
    _ellipke_loop(k2_flat, K, E, flags)

    return K.reshape(shape), E.reshape(shape), flags.reshape(shape)
