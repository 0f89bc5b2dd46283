"""
Connectivity descriptors (flat neighbourhoods).

A connectivity is an ordered set of relative ``(x, y, z)`` integer points.
Neighbourhoods used for flooding (N4, N8, N6, N18, N26) never contain the
origin; Euclidean balls used for neighbourhood statistics do.

The negative / positive per-axis extents size the sentinel border the
flooding builder adds around the grid, so every neighbour of an original
pixel is addressable inside the padded array.
"""
from __future__ import annotations

from typing import Iterable, Iterator, Sequence, Tuple

import numpy as np


_NAMES = ("n4", "n8", "n6", "n18", "n26")


class Connectivity:
    """Ordered set of relative ``(x, y, z)`` neighbour offsets."""

    def __init__(self, points: Iterable[Sequence[int]]):
        pts = np.asarray(list(points), dtype=np.int64)
        if pts.size == 0:
            raise ValueError("A connectivity needs at least one point")
        if pts.ndim != 2 or pts.shape[1] not in (2, 3):
            raise ValueError(f"Points must be (x, y) or (x, y, z) triples, got shape {pts.shape}")
        if pts.shape[1] == 2:
            pts = np.hstack([pts, np.zeros((pts.shape[0], 1), dtype=np.int64)])
        self._points = pts

    # ------------------------------------------------------------------ #
    # Factories
    # ------------------------------------------------------------------ #

    @classmethod
    def n4(cls) -> "Connectivity":
        return cls([(-1, 0), (1, 0), (0, -1), (0, 1)])

    @classmethod
    def n8(cls) -> "Connectivity":
        return cls([(dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)
                    if (dx, dy) != (0, 0)])

    @classmethod
    def n6(cls) -> "Connectivity":
        return cls([(-1, 0, 0), (1, 0, 0), (0, -1, 0),
                    (0, 1, 0), (0, 0, -1), (0, 0, 1)])

    @classmethod
    def n18(cls) -> "Connectivity":
        return cls(_cube_points(max_nonzero=2))

    @classmethod
    def n26(cls) -> "Connectivity":
        return cls(_cube_points(max_nonzero=3))

    @classmethod
    def euclidean_ball(cls, radius: int, ndim: int = 2) -> "Connectivity":
        """
        All integer points within Euclidean distance ``radius`` of the origin.

        ``ndim=2`` gives a disk in the xy-plane, ``ndim=3`` a ball.  The
        origin is included.
        """
        if radius < 0:
            raise ValueError("radius must be >= 0")
        if ndim not in (2, 3):
            raise ValueError("ndim must be 2 or 3")
        r = int(radius)
        rz = r if ndim == 3 else 0
        pts = [
            (dx, dy, dz)
            for dz in range(-rz, rz + 1)
            for dy in range(-r, r + 1)
            for dx in range(-r, r + 1)
            if dx * dx + dy * dy + dz * dz <= r * r
        ]
        return cls(pts)

    @classmethod
    def from_name(cls, name: str) -> "Connectivity":
        """Build ``"n4"``, ``"n8"``, ``"n6"``, ``"n18"`` or ``"n26"``."""
        key = name.lower()
        if key not in _NAMES:
            raise ValueError(f"Unknown connectivity {name!r}; expected one of {_NAMES}")
        return getattr(cls, key)()

    @classmethod
    def default_for(cls, volume: np.ndarray) -> "Connectivity":
        """N8 for single-slice grids, N26 for volumes."""
        return cls.n8() if volume.shape[0] == 1 else cls.n26()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def points(self) -> np.ndarray:
        """Copy of the points, shape (N, 3), columns x, y, z."""
        return self._points.copy()

    def __len__(self) -> int:
        return self._points.shape[0]

    def __iter__(self) -> Iterator[Tuple[int, int, int]]:
        for x, y, z in self._points:
            yield int(x), int(y), int(z)

    def __contains__(self, point) -> bool:
        p = tuple(int(v) for v in point)
        if len(p) == 2:
            p = p + (0,)
        return p in set(self)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Connectivity):
            return NotImplemented
        return np.array_equal(self._points, other._points)

    def __repr__(self) -> str:
        return f"Connectivity({len(self)} points)"

    def issubset(self, other: "Connectivity") -> bool:
        """True when every point of ``self`` is also a point of ``other``."""
        return set(self) <= set(other)

    @property
    def negative_offsets(self) -> Tuple[int, int, int]:
        """Border widths needed before the data, per axis ``(x, y, z)``."""
        mins = np.minimum(self._points.min(axis=0), 0)
        return tuple(int(-v) for v in mins)

    @property
    def positive_offsets(self) -> Tuple[int, int, int]:
        """Border widths needed after the data, per axis ``(x, y, z)``."""
        maxs = np.maximum(self._points.max(axis=0), 0)
        return tuple(int(v) for v in maxs)

    def symmetric(self) -> "Connectivity":
        """The reflected set ``{-p}``, as used for dilation."""
        return Connectivity(-self._points)

    def offsets(self, shape: Sequence[int]) -> list:
        """
        Flat offsets of the points inside a grid of ``shape`` = ``(nz, ny, nx)``.

        Only meaningful for pixels at least one extent away from the grid
        edges, which is what the sentinel border guarantees.
        """
        _, ny, nx = shape
        return [int(x + y * nx + z * nx * ny) for x, y, z in self._points]

    def footprint(self, with_center: bool = True) -> np.ndarray:
        """
        Boolean footprint array indexed ``[z, y, x]``, for ``scipy.ndimage``.

        The array is centred on the origin, so each axis has length
        ``2 * max(|extent|) + 1``.
        """
        half = np.abs(self._points).max(axis=0)
        rx, ry, rz = (int(v) for v in half)
        fp = np.zeros((2 * rz + 1, 2 * ry + 1, 2 * rx + 1), dtype=bool)
        for x, y, z in self._points:
            fp[z + rz, y + ry, x + rx] = True
        if with_center:
            fp[rz, ry, rx] = True
        return fp


def _cube_points(max_nonzero: int):
    return [
        (dx, dy, dz)
        for dz in (-1, 0, 1)
        for dy in (-1, 0, 1)
        for dx in (-1, 0, 1)
        if 0 < (dx != 0) + (dy != 0) + (dz != 0) <= max_nonzero
    ]
