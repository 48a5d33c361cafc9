from __future__ import annotations

import logging
from typing import Dict, Tuple

import numpy as np

from wiredfield.sources.sources import as_wire_sources, as_ring_sources
from wiredfield.field_solver.node_flags import NodeFlag
from wiredfield.field_solver.wire_field_kernels_numba import BFIELD_WIRES
from wiredfield.field_solver.ring_field_kernels_numba import BFIELD_RINGS

# Biot-Savart solver for the static field of wire segments and rings at a set
# of nodes. Every call ADDS its contribution to the caller's (Bx, By, Bz);
# zero them first for an absolute field. Calls keep no state and may run
# concurrently as long as they do not share output arrays.

log = logging.getLogger(__name__)

_FLOAT_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))


class InvalidInputError(ValueError):
    """Structural input error. Raised before any output array is touched."""


class FieldDiagnostics:
    """
    Per-node outcome of a field evaluation.

    flags is a uint8 array of NodeFlag bits, 0 where the node's field is
    trustworthy. Values at flagged nodes are whatever the arithmetic produced
    (inf/nan, or a finite value built on the K = -1 sentinel).
    """

    def __init__(self, flags: np.ndarray):
        self.flags = flags

    @classmethod
    def clean(cls, Nn: int) -> "FieldDiagnostics":
        return cls(np.zeros(Nn, dtype=np.uint8))

    @property
    def degenerate(self) -> np.ndarray:
        return self.flags != 0

    @property
    def n_degenerate(self) -> int:
        return int(np.count_nonzero(self.flags))

    @property
    def ok(self) -> bool:
        return self.n_degenerate == 0

    def nodes_with(self, flag: NodeFlag) -> np.ndarray:
        """Indices of the nodes carrying flag."""
        return np.flatnonzero(self.flags & int(flag))

    def counts(self) -> Dict[str, int]:
        """Number of nodes per raised flag."""
        out = {}
        for flag in NodeFlag:
            if flag == NodeFlag.OK:
                continue
            n = int(np.count_nonzero(self.flags & int(flag)))
            if n:
                out[flag.name] = n
        return out

    def merge(self, other: "FieldDiagnostics") -> "FieldDiagnostics":
        if other.flags.shape != self.flags.shape:
            raise ValueError("Cannot merge diagnostics of different node counts.")
        return FieldDiagnostics(self.flags | other.flags)

    def __repr__(self) -> str:
        return f"FieldDiagnostics(n_nodes={self.flags.shape[0]}, n_degenerate={self.n_degenerate}, counts={self.counts()})"


# ----------------------- Input validation -----------------------

def _check_outputs(out) -> Tuple[Tuple[np.ndarray, np.ndarray, np.ndarray], np.dtype]:
    if out is None:
        raise InvalidInputError("Output arrays (Bx, By, Bz) are required.")
    try:
        Bx, By, Bz = out
    except (TypeError, ValueError) as e:
        raise InvalidInputError("out must be a triple (Bx, By, Bz).") from e

    for name, B in zip(("Bx", "By", "Bz"), (Bx, By, Bz)):
        if not isinstance(B, np.ndarray):
            raise InvalidInputError(f"{name} must be a numpy array to accumulate in place.")
        if B.ndim != 1:
            raise InvalidInputError(f"{name} must be one-dimensional, got shape {B.shape}.")
        if B.dtype not in _FLOAT_DTYPES:
            raise InvalidInputError(f"{name} dtype {B.dtype} unsupported; use float32 or float64.")
        if not B.flags.writeable:
            raise InvalidInputError(f"{name} is read-only.")

    if not (Bx.dtype == By.dtype == Bz.dtype):
        raise InvalidInputError("Bx, By, Bz must share one dtype.")
    if not (Bx.shape == By.shape == Bz.shape):
        raise InvalidInputError("Bx, By, Bz must have the same length.")
    return (Bx, By, Bz), Bx.dtype


def _check_nodes(nodes, dtype: np.dtype, Nn: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    if nodes is None:
        raise InvalidInputError("Node coordinates (x, y, z) are required.")
    try:
        x, y, z = nodes
    except (TypeError, ValueError) as e:
        raise InvalidInputError("nodes must be a triple (x, y, z).") from e

    coords = []
    for name, v in zip(("x", "y", "z"), (x, y, z)):
        if v is None:
            raise InvalidInputError(f"Node coordinate '{name}' is missing.")
        v = np.asarray(v)
        if v.dtype.kind not in "biuf":
            raise InvalidInputError(f"Node coordinate '{name}' is not numeric ({v.dtype}).")
        if v.ndim != 1:
            raise InvalidInputError(f"Node coordinate '{name}' must be one-dimensional, got shape {v.shape}.")
        if v.shape[0] != Nn:
            raise InvalidInputError(
                f"Node coordinate '{name}' has {v.shape[0]} entries, output arrays have {Nn}."
            )
        coords.append(np.ascontiguousarray(v, dtype=dtype))
    return coords[0], coords[1], coords[2]


def _check_mu_r(mu_r) -> float:
    try:
        mu_r = float(mu_r)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"mu_r must be a real scalar, got {mu_r!r}.") from e
    if not np.isfinite(mu_r):
        raise InvalidInputError("mu_r must be finite.")
    return mu_r


def _resolve_sources(sources, convert, kind):
    if sources is None:
        raise InvalidInputError(f"{kind} sources are required.")
    try:
        return convert(sources)
    except (TypeError, ValueError, KeyError) as e:
        raise InvalidInputError(f"Invalid {kind} sources: {e}") from e


def _report(diag: FieldDiagnostics, kind: str) -> FieldDiagnostics:
    if not diag.ok:
        log.warning("%d of %d nodes degenerate in %s field evaluation: %s",
                    diag.n_degenerate, diag.flags.shape[0], kind, diag.counts())
    return diag


# ----------------------- Entry points -----------------------

def evaluate_wire_field(out, nodes, sources, mu_r=1.0, check_inside=False) -> FieldDiagnostics:
    """
    Add the field of straight wire segments at the nodes to out.

    Parameters
    ----------
    out : (Bx, By, Bz)
        float32 or float64 arrays of length N, accumulated in place. Their
        dtype selects the kernel precision.
    nodes : (x, y, z)
        Node coordinates [m], length N each. Read only.
    sources : WireSources, wire record array or sequence of WireSegment
    mu_r : float
        Relative permeability of the medium.
    check_inside : bool
        Apply the uniform current density correction inside the conductor.

    Returns
    -------
    FieldDiagnostics
        Per-node flags for endpoint/axis singularities.

    Raises
    ------
    InvalidInputError
        On missing or inconsistent arrays; out is untouched.
    """
    (Bx, By, Bz), dtype = _check_outputs(out)
    Nn = Bx.shape[0]
    x, y, z = _check_nodes(nodes, dtype, Nn)
    mu_r = _check_mu_r(mu_r)
    wires = _resolve_sources(sources, as_wire_sources, "wire")

    diag = FieldDiagnostics.clean(Nn)
    if Nn == 0 or len(wires) == 0:
        return diag

    log.debug("Wire field: %d wires at %d nodes (%s), mu_r=%g, check_inside=%s",
              len(wires), Nn, dtype.name, mu_r, bool(check_inside))

    a0, a1, current, radius = wires.astype(dtype)
    BFIELD_WIRES[dtype](Bx, By, Bz, x, y, z, a0, a1, current, radius,
                        mu_r, bool(check_inside), diag.flags)

    return _report(diag, "wire")


def evaluate_ring_field(out, nodes, sources, mu_r=1.0, check_inside=False,
                        apply_height=False) -> FieldDiagnostics:
    """
    Add the field of circular loops at the nodes to out.

    Rings are centred on the z-axis in the plane z = 0; their height is
    ignored unless apply_height is set, in which case node z is measured
    from each ring's plane. Nodes with x == 0 are singular for the By
    formulation and are flagged RING_X_ZERO.

    Near the axis Bx comes from the difference (R^2 + r^2) E - alpha^2 K,
    which cancels as rho -> 0. Its error is a fraction of |B| rather than of
    Bx: in float32 it can round to exactly 0 (unflagged) a little off the
    axis. Use float64 outputs where the small radial component matters.

    Parameters and errors as evaluate_wire_field, with sources a
    RingSources, ring record array or sequence of RingSource.
    """
    (Bx, By, Bz), dtype = _check_outputs(out)
    Nn = Bx.shape[0]
    x, y, z = _check_nodes(nodes, dtype, Nn)
    mu_r = _check_mu_r(mu_r)
    rings = _resolve_sources(sources, as_ring_sources, "ring")

    diag = FieldDiagnostics.clean(Nn)
    if Nn == 0 or len(rings) == 0:
        return diag

    log.debug("Ring field: %d rings at %d nodes (%s), mu_r=%g, check_inside=%s, apply_height=%s",
              len(rings), Nn, dtype.name, mu_r, bool(check_inside), bool(apply_height))

    height, R, r, current = rings.astype(dtype)
    BFIELD_RINGS[dtype](Bx, By, Bz, x, y, z, height, R, r, current,
                        mu_r, bool(check_inside), bool(apply_height), diag.flags)

    return _report(diag, "ring")


def compute_field(nodes, wires=None, rings=None, mu_r=1.0, check_inside=False,
                  dtype=None, apply_height=False):
    """
    Total field of wires and rings at the nodes, in freshly zeroed arrays.

    dtype defaults to float32 when every node coordinate is float32, float64
    otherwise. Returns ((Bx, By, Bz), FieldDiagnostics).
    """
    if nodes is None:
        raise InvalidInputError("Node coordinates (x, y, z) are required.")
    try:
        coords = [np.asarray(v) for v in nodes]
    except TypeError as e:
        raise InvalidInputError("nodes must be a triple (x, y, z).") from e
    if len(coords) != 3:
        raise InvalidInputError("nodes must be a triple (x, y, z).")

    if dtype is None:
        all_f32 = all(v.dtype == np.float32 for v in coords)
        dtype = np.float32 if all_f32 else np.float64
    dtype = np.dtype(dtype)
    if dtype not in _FLOAT_DTYPES:
        raise InvalidInputError(f"dtype {dtype} unsupported; use float32 or float64.")

    Nn = coords[0].shape[0] if coords[0].ndim == 1 else -1
    if Nn < 0:
        raise InvalidInputError("Node coordinate 'x' must be one-dimensional.")
    out = (np.zeros(Nn, dtype=dtype), np.zeros(Nn, dtype=dtype), np.zeros(Nn, dtype=dtype))

    diag = FieldDiagnostics.clean(Nn)
    if wires is not None:
        diag = diag.merge(evaluate_wire_field(out, coords, wires, mu_r, check_inside))
    if rings is not None:
        diag = diag.merge(evaluate_ring_field(out, coords, rings, mu_r, check_inside, apply_height))

    return out, diag
