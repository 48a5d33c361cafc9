import math

import numba

#################################################################################
################################### Helper kernels ##############################
#################################################################################
@numba.njit(inline='always')
def mag3(x, y, z):
    """Magnitude of a 3-vector, sqrt(x^2 + y^2 + z^2)."""
    return math.sqrt(x*x + y*y + z*z)


@numba.njit(inline='always')
def dot3(a1, a2, a3, b1, b2, b3):
    """Dot product of two 3-vectors given component-wise."""
    return a1*b1 + a2*b2 + a3*b3
