"""
Tests for sample-grid helpers.
"""
from __future__ import annotations

import numpy as np
import pytest

from maxtree.grid import (
    add_borders,
    as_volume,
    coord_to_offset,
    crop,
    grid_size,
    is_inside,
    offset_to_coord,
    value_range,
)


class TestAsVolume:

    def test_2d_becomes_single_slice_view(self):
        image = np.arange(12, dtype=np.uint8).reshape(3, 4)
        vol = as_volume(image)
        assert vol.shape == (1, 3, 4)
        assert np.shares_memory(vol, image)

    def test_1d_becomes_single_row(self):
        assert as_volume(np.arange(5)).shape == (1, 1, 5)

    def test_3d_unchanged(self):
        vol = np.zeros((2, 3, 4), dtype=np.float32)
        assert as_volume(vol) is vol

    def test_bool_is_converted(self):
        vol = as_volume(np.array([[True, False]]))
        assert vol.dtype == np.uint8
        assert vol.ravel().tolist() == [1, 0]

    def test_four_axes_rejected(self):
        with pytest.raises(ValueError, match="at most 3 axes"):
            as_volume(np.zeros((2, 2, 2, 2)))

    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            as_volume(np.zeros((0, 4)))

    def test_non_numeric_rejected(self):
        with pytest.raises(ValueError, match="numeric"):
            as_volume(np.array([["a", "b"]]))


class TestOffsets:

    def test_offset_matches_numpy_flat_index(self):
        shape = (2, 3, 4)
        for z in range(2):
            for y in range(3):
                for x in range(4):
                    assert coord_to_offset(x, y, z, shape) == \
                        np.ravel_multi_index((z, y, x), shape)

    def test_round_trip(self):
        shape = (2, 3, 4)
        assert coord_to_offset(1, 2, 1, shape) == 21
        assert offset_to_coord(21, shape) == (1, 2, 1)

    def test_grid_size_order(self):
        assert grid_size(np.zeros((2, 3, 4))) == (4, 3, 2)

    def test_is_inside(self):
        shape = (1, 3, 4)
        assert is_inside(3, 2, 0, shape)
        assert not is_inside(4, 0, 0, shape)
        assert not is_inside(0, -1, 0, shape)
        assert not is_inside(0, 0, 1, shape)

    def test_value_range(self):
        lo, hi = value_range(np.array([[[3, 9, -2]]], dtype=np.int16))
        assert (lo, hi) == (-2, 9)
        assert isinstance(lo, int)


class TestBorders:

    def test_add_borders_shape_and_value(self):
        vol = np.ones((1, 2, 3), dtype=np.int64)
        padded = add_borders(vol, back=(1, 2, 0), front=(3, 0, 1), value=-7)
        assert padded.shape == (1 + 0 + 1, 2 + 2 + 0, 3 + 1 + 3)
        assert padded[0, 2, 1] == 1           # first original sample
        assert padded[0, 0, 0] == -7
        assert (padded == 1).sum() == 6

    def test_crop_inverts_add_borders(self):
        vol = np.arange(24).reshape(2, 3, 4)
        back, front = (1, 1, 1), (2, 0, 1)
        assert np.array_equal(crop(add_borders(vol, back, front, 0), back, front), vol)

    def test_negative_border_rejected(self):
        with pytest.raises(ValueError):
            add_borders(np.zeros((1, 2, 2)), (-1, 0, 0), (0, 0, 0), 0)
