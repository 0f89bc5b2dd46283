"""
Tests for connectivity descriptors.
"""
from __future__ import annotations

import numpy as np
import pytest

from maxtree.connectivity import Connectivity


class TestNeighbourhoods:

    @pytest.mark.parametrize("name,size", [
        ("n4", 4), ("n8", 8), ("n6", 6), ("n18", 18), ("n26", 26),
    ])
    def test_sizes(self, name, size):
        conn = Connectivity.from_name(name)
        assert len(conn) == size
        assert (0, 0, 0) not in conn

    def test_membership(self):
        assert (1, 1) in Connectivity.n8()
        assert (1, 1) not in Connectivity.n4()
        assert (1, 1, 1) in Connectivity.n26()
        assert (1, 1, 1) not in Connectivity.n18()

    def test_subsets(self):
        assert Connectivity.n4().issubset(Connectivity.n8())
        assert Connectivity.n6().issubset(Connectivity.n18())
        assert Connectivity.n18().issubset(Connectivity.n26())
        assert Connectivity.n8().issubset(Connectivity.n26())
        assert not Connectivity.n8().issubset(Connectivity.n4())

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            Connectivity.from_name("n5")

    def test_default_for(self):
        assert Connectivity.default_for(np.zeros((1, 4, 4))) == Connectivity.n8()
        assert Connectivity.default_for(np.zeros((3, 4, 4))) == Connectivity.n26()


class TestExtents:

    def test_symmetric_neighbourhood(self):
        conn = Connectivity.n8()
        assert conn.negative_offsets == (1, 1, 0)
        assert conn.positive_offsets == (1, 1, 0)
        assert Connectivity.n26().negative_offsets == (1, 1, 1)

    def test_asymmetric_points(self):
        conn = Connectivity([(2, 0), (0, -1)])
        assert conn.negative_offsets == (0, 1, 0)
        assert conn.positive_offsets == (2, 0, 0)

    def test_symmetric_reflects(self):
        conn = Connectivity([(2, 0), (0, -1)])
        sym = conn.symmetric()
        assert (-2, 0, 0) in sym and (0, 1, 0) in sym
        assert sym.symmetric() == conn

    def test_flat_offsets(self):
        offsets = Connectivity.n6().offsets((3, 4, 5))
        assert sorted(offsets) == [-20, -5, -1, 1, 5, 20]

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            Connectivity([])


class TestEuclideanBall:

    def test_disk_radius_one(self):
        ball = Connectivity.euclidean_ball(1, ndim=2)
        assert len(ball) == 5
        assert (0, 0, 0) in ball

    def test_disk_radius_two(self):
        assert len(Connectivity.euclidean_ball(2, ndim=2)) == 13

    def test_ball_radius_one(self):
        ball = Connectivity.euclidean_ball(1, ndim=3)
        assert len(ball) == 7
        assert (0, 0, 1) in ball

    def test_negative_radius(self):
        with pytest.raises(ValueError):
            Connectivity.euclidean_ball(-1)


class TestFootprint:

    def test_n4_footprint(self):
        fp = Connectivity.n4().footprint()
        assert fp.shape == (1, 3, 3)
        assert fp[0, 1, 1]
        assert fp.sum() == 5
        assert not fp[0, 0, 0]

    def test_without_center(self):
        assert Connectivity.n4().footprint(with_center=False).sum() == 4

    def test_n26_is_full_cube(self):
        assert Connectivity.n26().footprint().all()
