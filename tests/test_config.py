"""
Tests for TreeConfig validation and derived settings.
"""
from __future__ import annotations

import numpy as np
import pytest

from maxtree import ComputedAttributes, Connectivity, ConstructionDecision, TreeConfig

F = ComputedAttributes


class TestDefaults:

    def test_defaults(self):
        cfg = TreeConfig()
        assert cfg.connectivity == "auto"
        assert cfg.filter_attribute == "area"
        assert cfg.decision is ConstructionDecision.DIRECT
        assert cfg.selection == F.AREA

    def test_case_is_normalised(self):
        cfg = TreeConfig(connectivity="N4", rule="MAX")
        assert cfg.connectivity == "n4"
        assert cfg.decision is ConstructionDecision.MAX


class TestSelection:

    def test_filter_prerequisites_added(self):
        cfg = TreeConfig(filter_attribute="otsu")
        assert cfg.selection == F.OTSU | F.MEAN_VARIANCE | F.NEIGHBORHOOD | F.AREA

    def test_extra_families_are_added(self):
        cfg = TreeConfig(attributes=("area", "contour_length", "complexity_compacity"))
        assert cfg.selection == F.AREA | F.CONTOUR_LENGTH | F.COMPLEXITY_COMPACITY

    @pytest.mark.parametrize("names", [("otsu",), ("volume",), ("complexity_compacity",)])
    def test_missing_prerequisite_is_an_error(self, names):
        with pytest.raises(ValueError, match="prerequisite"):
            TreeConfig(attributes=names)

    def test_filter_attribute_does_not_excuse_listed_families(self):
        with pytest.raises(ValueError, match="prerequisite"):
            TreeConfig(filter_attribute="otsu", attributes=("otsu",))

    def test_attributes_list_becomes_tuple(self):
        cfg = TreeConfig(attributes=["area", "volume"])
        assert cfg.attributes == ("area", "volume")
        assert F.VOLUME in cfg.selection


class TestConnectivity:

    def test_auto(self):
        cfg = TreeConfig()
        assert cfg.connectivity_for(np.zeros((1, 3, 3))) == Connectivity.n8()
        assert cfg.connectivity_for(np.zeros((2, 3, 3))) == Connectivity.n26()

    def test_named(self):
        assert TreeConfig(connectivity="n6").connectivity_for(np.zeros((1, 3, 3))) \
            == Connectivity.n6()


class TestValidation:

    @pytest.mark.parametrize("kwargs,match", [
        ({"connectivity": "n5"}, "connectivity"),
        ({"delta": -1}, "delta"),
        ({"neighborhood_radius": -2}, "neighborhood_radius"),
        ({"filter_attribute": "perimeter"}, "perimeter"),
        ({"attributes": ("bogus",)}, "bogus"),
        ({"tmin": 10, "tmax": 1}, "tmin"),
        ({"rule": "median"}, "rule"),
        ({"figure_dpi": 0}, "figure_dpi"),
    ])
    def test_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            TreeConfig(**kwargs)
