"""
Shared fixtures for maxtree tests.

Provides small synthetic grids whose max-trees are known by hand, plus
seeded random images / volumes for property checks.

``nested_image`` (7 x 4, values shown row by row)::

    0 0 0 0 0 0 0
    0 3 3 0 5 5 0
    0 3 3 0 5 9 0
    0 0 0 0 0 0 0

Under 8-connectivity its tree is::

    root (h=0, area 28)
     +-- A (h=3, area 4)          pixels x=1..2, y=1..2
     +-- B (h=5, area 4)          pixels x=4..5, y=1..2
          +-- C (h=9, area 1)     pixel (5, 2)
"""
from __future__ import annotations

import numpy as np
import pytest
from scipy import ndimage


NESTED = np.array([
    [0, 0, 0, 0, 0, 0, 0],
    [0, 3, 3, 0, 5, 5, 0],
    [0, 3, 3, 0, 5, 9, 0],
    [0, 0, 0, 0, 0, 0, 0],
], dtype=np.uint8)


def node_at(tree, x, y, z=0):
    """Owning node of pixel (x, y, z), via the dense index."""
    return tree.coord_to_node(x, y, z, index=tree.node_index)


def assert_components(tree, image, structure):
    """
    Every node's subtree region must be exactly the connected component of
    ``image >= h`` that contains one of its own pixels.
    """
    vol = image if image.ndim == 3 else image[np.newaxis]
    for n in tree:
        assert n.pixels, f"node {n.index} owns no pixel"
        region = np.zeros(vol.size, dtype=bool)
        region[tree.merge_pixels(n)] = True
        labels, _ = ndimage.label(vol >= n.ori_h, structure=structure)
        labels = labels.ravel()
        assert np.array_equal(labels == labels[n.pixels[0]], region), \
            f"node {n.index} (h={n.ori_h}) is not a connected component"


@pytest.fixture
def nested_image():
    return NESTED.copy()


@pytest.fixture
def peak_image():
    """3x3, background 0, centre 5."""
    image = np.zeros((3, 3), dtype=np.uint8)
    image[1, 1] = 5
    return image


@pytest.fixture
def flat_image():
    """4x4 of one constant value."""
    return np.full((4, 4), 7, dtype=np.uint8)


@pytest.fixture
def random_image():
    rng = np.random.default_rng(42)
    return rng.integers(0, 8, size=(12, 15)).astype(np.uint8)


@pytest.fixture
def random_volume():
    rng = np.random.default_rng(7)
    return rng.integers(0, 5, size=(4, 6, 7)).astype(np.int16)
