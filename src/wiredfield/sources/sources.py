from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

"""
Current sources for the Biot-Savart kernels.

Sources are kept as structure-of-arrays (one contiguous array per field) so
the kernels can sweep them without gathering. The binary record dtypes below
match the caller-side struct layouts field-for-field:

    Wire : a0[3], a1[3], I, R
    Ring : H, R, r, I

and may be used to exchange sources with an external numerical caller as a
flat buffer.
"""

_FLOAT_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))


def _check_float_dtype(dtype) -> np.dtype:
    dtype = np.dtype(dtype)
    if dtype not in _FLOAT_DTYPES:
        raise ValueError(f"Unsupported source dtype {dtype}; use float32 or float64.")
    return dtype


def wire_record_dtype(dtype=np.float64) -> np.dtype:
    """Packed record layout of one wire: a0[3], a1[3], I, R."""
    f = _check_float_dtype(dtype)
    return np.dtype([('a0', f, (3,)), ('a1', f, (3,)), ('I', f), ('R', f)])


def ring_record_dtype(dtype=np.float64) -> np.dtype:
    """Packed record layout of one ring: H, R, r, I."""
    f = _check_float_dtype(dtype)
    return np.dtype([('H', f), ('R', f), ('r', f), ('I', f)])


@dataclass(frozen=True)
class WireSegment:
    """Straight finite wire from a0 to a1 carrying current [A], conductor radius [m]."""
    a0: Tuple[float, float, float]
    a1: Tuple[float, float, float]
    current: float
    radius: float = 0.0


@dataclass(frozen=True)
class RingSource:
    """
    Circular loop in the plane z = height, centred on the z-axis.
    R is the major (loop) radius, r the minor (conductor) radius.
    """
    height: float
    R: float
    r: float
    current: float


class WireSources:
    """
    Set of straight wire segments stored as arrays.

    Parameters
    ----------
    wires_dict : dictionary
        Must contain 'a0' and 'a1' with shape (W, 3) and 'current' with shape (W,).
        'radius' (W,) defaults to 0 (thin filaments). Optional 'name' (W,) labels
        each wire for set_currents_from_external_dict.
    """

    def __init__(self, wires_dict):

        self.a0 = np.array(wires_dict['a0'], dtype=np.float64, ndmin=2)
        self.a1 = np.array(wires_dict['a1'], dtype=np.float64, ndmin=2)
        if self.a0.size == 0 and self.a1.size == 0:
            self.a0 = self.a0.reshape(0, 3)
            self.a1 = self.a1.reshape(0, 3)
        self.Nw = self.a0.shape[0]

        self.current = np.array(wires_dict['current'], dtype=np.float64).reshape(-1)
        if 'radius' in wires_dict:
            self.radius = np.array(wires_dict['radius'], dtype=np.float64).reshape(-1)
        else:
            self.radius = np.zeros(self.Nw, dtype=np.float64)

        if 'name' in wires_dict:
            self.names = [str(n) for n in wires_dict['name']]
        else:
            self.names = [f"W{iw:04d}" for iw in range(self.Nw)]

        self._validate()

    def _validate(self) -> None:
        if self.a0.shape != (self.Nw, 3) or self.a1.shape != (self.Nw, 3):
            raise ValueError("'a0' and 'a1' must both have shape (W, 3).")
        if self.current.shape != (self.Nw,) or self.radius.shape != (self.Nw,):
            raise ValueError("'current' and 'radius' must have shape (W,) matching 'a0'.")
        if len(self.names) != self.Nw:
            raise ValueError("'name' must have one entry per wire.")
        for arr in (self.a0, self.a1, self.current, self.radius):
            if not np.all(np.isfinite(arr)):
                raise ValueError("Wire sources must be finite.")
        if np.any(self.radius < 0):
            raise ValueError("Wire radius must be >= 0.")
        degenerate = np.all(self.a0 == self.a1, axis=1)
        if np.any(degenerate):
            raise ValueError(
                f"Degenerate wire segments (a0 == a1): {np.flatnonzero(degenerate).tolist()}"
            )

    def __len__(self) -> int:
        return self.Nw

    # ----------------------- Constructors -----------------------

    @classmethod
    def from_segments(cls, segments: Iterable[WireSegment]) -> "WireSources":
        segments = list(segments)
        return cls({
            'a0': [s.a0 for s in segments],
            'a1': [s.a1 for s in segments],
            'current': [s.current for s in segments],
            'radius': [s.radius for s in segments],
        })

    @classmethod
    def from_records(cls, records: np.ndarray) -> "WireSources":
        """Build from a structured array with wire_record_dtype layout."""
        records = np.asarray(records)
        if records.dtype.names != ('a0', 'a1', 'I', 'R'):
            raise ValueError(f"Not a wire record array: fields {records.dtype.names}")
        records = records.reshape(-1)
        return cls({'a0': records['a0'], 'a1': records['a1'],
                    'current': records['I'], 'radius': records['R']})

    @classmethod
    def from_polyline(cls, points, current: float, radius: float = 0.0,
                      closed: bool = False) -> "WireSources":
        """
        Chain consecutive points (P, 3) into P-1 segments (P if closed) that all
        carry the same current. Repeated consecutive points are dropped.
        """
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError("points must have shape (P, 3).")

        keep = np.ones(pts.shape[0], dtype=bool)
        keep[1:] = np.any(np.diff(pts, axis=0) != 0.0, axis=1)
        pts = pts[keep]
        if closed and pts.shape[0] > 1 and np.all(pts[0] == pts[-1]):
            pts = pts[:-1]
        if pts.shape[0] < 2:
            raise ValueError("A polyline needs at least two distinct points.")

        a0 = pts
        a1 = np.roll(pts, -1, axis=0)
        if not closed:
            a0, a1 = a0[:-1], a1[:-1]

        Nw = a0.shape[0]
        return cls({'a0': a0, 'a1': a1,
                    'current': np.full(Nw, current, dtype=np.float64),
                    'radius': np.full(Nw, radius, dtype=np.float64)})

    # ----------------------- Currents -----------------------

    def set_currents_from_external_dict(self, ext_dict_currents: Dict[str, float]) -> None:
        """
        Set self.current from an external dictionary of currents keyed by wire names.
        Every wire must be present; ordering of the external keys is irrelevant.
        """
        for iw, name in enumerate(self.names):
            if name in ext_dict_currents:
                self.current[iw] = ext_dict_currents[name]
            else:
                raise KeyError(f"Wire name '{name}' not found in external current dictionary.")

    def scaled(self, factor: float) -> "WireSources":
        return WireSources({'a0': self.a0, 'a1': self.a1,
                            'current': factor*self.current,
                            'radius': self.radius, 'name': self.names})

    # ----------------------- Kernel views -----------------------

    def astype(self, dtype):
        """Contiguous (a0, a1, current, radius) in the evaluation precision."""
        dtype = _check_float_dtype(dtype)
        return (np.ascontiguousarray(self.a0, dtype=dtype),
                np.ascontiguousarray(self.a1, dtype=dtype),
                np.ascontiguousarray(self.current, dtype=dtype),
                np.ascontiguousarray(self.radius, dtype=dtype))

    def to_records(self, dtype=np.float64) -> np.ndarray:
        records = np.empty(self.Nw, dtype=wire_record_dtype(dtype))
        records['a0'] = self.a0
        records['a1'] = self.a1
        records['I'] = self.current
        records['R'] = self.radius
        return records


class RingSources:
    """
    Set of circular current loops stored as arrays.

    Parameters
    ----------
    rings_dict : dictionary
        Must contain 'R' (major radius) and 'current', each with shape (Nr,).
        'height' and 'r' (minor radius) default to 0. Optional 'name' (Nr,).
    """

    def __init__(self, rings_dict):

        self.R = np.array(rings_dict['R'], dtype=np.float64).reshape(-1)
        self.Nr = self.R.shape[0]

        self.current = np.array(rings_dict['current'], dtype=np.float64).reshape(-1)
        self.height = self._optional(rings_dict, 'height')
        self.r = self._optional(rings_dict, 'r')

        if 'name' in rings_dict:
            self.names = [str(n) for n in rings_dict['name']]
        else:
            self.names = [f"R{ir:04d}" for ir in range(self.Nr)]

        self._validate()

    def _optional(self, rings_dict, key) -> np.ndarray:
        if key in rings_dict:
            return np.array(rings_dict[key], dtype=np.float64).reshape(-1)
        return np.zeros(self.Nr, dtype=np.float64)

    def _validate(self) -> None:
        for key in ('current', 'height', 'r'):
            if getattr(self, key).shape != (self.Nr,):
                raise ValueError(f"'{key}' must have shape (Nr,) matching 'R'.")
        if len(self.names) != self.Nr:
            raise ValueError("'name' must have one entry per ring.")
        for arr in (self.R, self.r, self.height, self.current):
            if not np.all(np.isfinite(arr)):
                raise ValueError("Ring sources must be finite.")
        if np.any(self.R <= 0):
            raise ValueError("Ring major radius R must be > 0.")
        if np.any(self.r < 0):
            raise ValueError("Ring minor radius r must be >= 0.")

    def __len__(self) -> int:
        return self.Nr

    @classmethod
    def from_rings(cls, rings: Iterable[RingSource]) -> "RingSources":
        rings = list(rings)
        return cls({
            'height': [s.height for s in rings],
            'R': [s.R for s in rings],
            'r': [s.r for s in rings],
            'current': [s.current for s in rings],
        })

    @classmethod
    def from_records(cls, records: np.ndarray) -> "RingSources":
        """Build from a structured array with ring_record_dtype layout."""
        records = np.asarray(records)
        if records.dtype.names != ('H', 'R', 'r', 'I'):
            raise ValueError(f"Not a ring record array: fields {records.dtype.names}")
        records = records.reshape(-1)
        return cls({'height': records['H'], 'R': records['R'],
                    'r': records['r'], 'current': records['I']})

    def set_currents_from_external_dict(self, ext_dict_currents: Dict[str, float]) -> None:
        for ir, name in enumerate(self.names):
            if name in ext_dict_currents:
                self.current[ir] = ext_dict_currents[name]
            else:
                raise KeyError(f"Ring name '{name}' not found in external current dictionary.")

    def scaled(self, factor: float) -> "RingSources":
        return RingSources({'height': self.height, 'R': self.R, 'r': self.r,
                            'current': factor*self.current, 'name': self.names})

    def astype(self, dtype):
        """Contiguous (height, R, r, current) in the evaluation precision."""
        dtype = _check_float_dtype(dtype)
        return tuple(np.ascontiguousarray(arr, dtype=dtype)
                     for arr in (self.height, self.R, self.r, self.current))

    def to_records(self, dtype=np.float64) -> np.ndarray:
        records = np.empty(self.Nr, dtype=ring_record_dtype(dtype))
        records['H'] = self.height
        records['R'] = self.R
        records['r'] = self.r
        records['I'] = self.current
        return records


def as_wire_sources(sources) -> Optional[WireSources]:
    """Accept WireSources, a wire record array, or a sequence of WireSegment."""
    if sources is None or isinstance(sources, WireSources):
        return sources
    if isinstance(sources, np.ndarray) and sources.dtype.names is not None:
        return WireSources.from_records(sources)
    if isinstance(sources, Sequence) and all(isinstance(s, WireSegment) for s in sources):
        return WireSources.from_segments(sources)
    raise TypeError(f"Cannot interpret {type(sources).__name__} as wire sources.")


def as_ring_sources(sources) -> Optional[RingSources]:
    """Accept RingSources, a ring record array, or a sequence of RingSource."""
    if sources is None or isinstance(sources, RingSources):
        return sources
    if isinstance(sources, np.ndarray) and sources.dtype.names is not None:
        return RingSources.from_records(sources)
    if isinstance(sources, Sequence) and all(isinstance(s, RingSource) for s in sources):
        return RingSources.from_rings(sources)
    raise TypeError(f"Cannot interpret {type(sources).__name__} as ring sources.")
