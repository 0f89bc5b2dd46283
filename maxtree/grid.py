"""
Sample-grid helpers: a 3-axis view over numpy arrays.

Every grid handled by maxtree is a dense array of shape ``(nz, ny, nx)``.
2-D images ``(ny, nx)`` are viewed as a single slice ``(1, ny, nx)``.
Pixels are addressed either by coordinates ``(x, y, z)`` or by their flat
offset::

    offset = x + y * nx + z * nx * ny

which is exactly numpy's C-order flat index, so ``volume.ravel()[offset]``
is the sample at that offset.

Border extents are always given in ``(x, y, z)`` order, matching
``Connectivity.negative_offsets`` / ``Connectivity.positive_offsets``.
"""
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np


def as_volume(image: np.ndarray) -> np.ndarray:
    """
    Return ``image`` as a 3-axis ``(nz, ny, nx)`` array (a view when possible).

    Raises
    ------
    ValueError
        If the array is empty, has more than 3 axes, or is not numeric.
    """
    image = np.asarray(image)
    if image.size == 0:
        raise ValueError("Cannot build a grid from an empty array")
    if image.dtype == bool:
        image = image.astype(np.uint8)
    if not (np.issubdtype(image.dtype, np.integer) or np.issubdtype(image.dtype, np.floating)):
        raise ValueError(f"Grid samples must be numeric, got dtype {image.dtype}")
    if image.ndim == 1:
        return image[None, None, :]
    if image.ndim == 2:
        return image[None, :, :]
    if image.ndim == 3:
        return image
    raise ValueError(f"Expected at most 3 axes, got shape {image.shape}")


def grid_size(volume: np.ndarray) -> Tuple[int, int, int]:
    """Return ``(nx, ny, nz)`` of a ``(nz, ny, nx)`` volume."""
    nz, ny, nx = volume.shape
    return nx, ny, nz


def coord_to_offset(x: int, y: int, z: int, shape: Sequence[int]) -> int:
    """Flat offset of ``(x, y, z)`` in a grid of ``shape`` = ``(nz, ny, nx)``."""
    _, ny, nx = shape
    return int(x + y * nx + z * nx * ny)


def offset_to_coord(offset: int, shape: Sequence[int]) -> Tuple[int, int, int]:
    """Inverse of :func:`coord_to_offset`; returns ``(x, y, z)``."""
    _, ny, nx = shape
    z, rest = divmod(int(offset), nx * ny)
    y, x = divmod(rest, nx)
    return x, y, z


def is_inside(x: int, y: int, z: int, shape: Sequence[int]) -> bool:
    nz, ny, nx = shape
    return 0 <= x < nx and 0 <= y < ny and 0 <= z < nz


def value_range(volume: np.ndarray) -> Tuple[float, float]:
    """Return ``(min, max)`` of the samples as Python scalars."""
    return volume.min().item(), volume.max().item()


def add_borders(
    volume: np.ndarray,
    back: Sequence[int],
    front: Sequence[int],
    value,
) -> np.ndarray:
    """
    Return a bordered copy of ``volume`` filled with ``value`` outside.

    Parameters
    ----------
    volume : ndarray, shape (nz, ny, nx)
    back, front : sequence of 3 int
        Border widths before / after the data along ``(x, y, z)``.
    value : scalar
        Sentinel written into the border.

    Returns
    -------
    bordered : ndarray, shape (nz + bz + fz, ny + by + fy, nx + bx + fx)
        Same dtype as ``volume``; the original samples start at
        ``(back[0], back[1], back[2])``.
    """
    bx, by, bz = (int(v) for v in back)
    fx, fy, fz = (int(v) for v in front)
    if min(bx, by, bz, fx, fy, fz) < 0:
        raise ValueError("Border widths must be >= 0")
    return np.pad(
        volume,
        ((bz, fz), (by, fy), (bx, fx)),
        mode="constant",
        constant_values=value,
    )


def crop(
    volume: np.ndarray,
    back: Sequence[int],
    front: Sequence[int],
) -> np.ndarray:
    """Remove a border added by :func:`add_borders` (returns a copy)."""
    bx, by, bz = (int(v) for v in back)
    fx, fy, fz = (int(v) for v in front)
    nz, ny, nx = volume.shape
    return volume[bz:nz - fz, by:ny - fy, bx:nx - fx].copy()
