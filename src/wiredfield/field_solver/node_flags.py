import enum

# Per-node diagnostic bits, OR-ed into a uint8 array by the kernels.
# Plain ints so numba can freeze them as compile-time constants.
WIRE_ENDPOINT = 1           # node coincides with a wire endpoint
WIRE_AXIS = 2               # node on a wire's infinite line, contribution not finite
RING_X_ZERO = 4             # ring evaluation at x == 0 (By = (y/x) Bx is singular)
ELLIPTIC_SINGULAR = 8       # k^2 ~ 1, node on a ring filament
ELLIPTIC_NONCONVERGED = 16  # AGM iteration cap reached
NON_FINITE = 32             # any other non-finite contribution


class NodeFlag(enum.IntFlag):
    OK = 0
    WIRE_ENDPOINT = WIRE_ENDPOINT
    WIRE_AXIS = WIRE_AXIS
    RING_X_ZERO = RING_X_ZERO
    ELLIPTIC_SINGULAR = ELLIPTIC_SINGULAR
    ELLIPTIC_NONCONVERGED = ELLIPTIC_NONCONVERGED
    NON_FINITE = NON_FINITE
