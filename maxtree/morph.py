"""
Morphological gradient: dilation(f, B) - erosion(f, B).

Used by the border-gradient attribute (mean gradient over a node's contour
pixels).  B is the tree connectivity plus its centre, so the gradient is
measured at the same scale the contour was traced with.
"""
from __future__ import annotations

import numpy as np
from scipy.ndimage import grey_dilation, grey_erosion

from .connectivity import Connectivity
from .grid import as_volume


def morphological_gradient(image: np.ndarray, connectivity: Connectivity) -> np.ndarray:
    """
    Return the morphological gradient of ``image`` as float64.

    Parameters
    ----------
    image : ndarray, shape (ny, nx) or (nz, ny, nx)
        Input grid.  Not modified.
    connectivity : Connectivity
        Neighbourhood used for both the dilation and the erosion.

    Returns
    -------
    gradient : ndarray, shape (nz, ny, nx), float64
        Non-negative everywhere; zero on flat zones away from edges.
    """
    volume = as_volume(image).astype(np.float64)
    footprint = connectivity.footprint(with_center=True)
    # mode='nearest' keeps the outside from creating a gradient at the grid edge
    dil = grey_dilation(volume, footprint=footprint, mode="nearest")
    ero = grey_erosion(volume, footprint=footprint, mode="nearest")
    return dil - ero
