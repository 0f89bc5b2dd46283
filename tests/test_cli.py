"""
Tests for the command-line entry points.
"""
from __future__ import annotations

import numpy as np
import pytest

from maxtree.cli import attrs_main, filter_main
from maxtree.io import read_image, read_node_csv


@pytest.fixture
def image_file(tmp_path, nested_image):
    path = tmp_path / "cells.npy"
    np.save(path, nested_image)
    return path


class TestFilterMain:

    def test_filters_file(self, tmp_path, image_file, capsys):
        out = tmp_path / "out"
        rc = filter_main(["-i", str(image_file), "-o", str(out), "--tmin", "2", "-q"])
        assert rc == 0
        assert read_image(out / "cells_filtered.tif")[2, 5] == 5
        assert (out / "maxtree_summary.csv").exists()
        assert "Nodes removed: 1" in capsys.readouterr().out

    def test_directory_with_csv(self, tmp_path, image_file):
        out = tmp_path / "out"
        rc = filter_main(["-i", str(tmp_path), "-o", str(out), "--csv", "-q",
                          "-f", "volume", "--tmin", "5", "-r", "min"])
        assert rc == 0
        rows = read_node_csv(out / "cells_nodes.csv")
        assert "volume" in rows[0]
        assert sum(1 for r in rows if not r["active"]) == 1

    def test_missing_input(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            filter_main(["-i", str(tmp_path / "nope.tif"), "-o", str(tmp_path)])
        assert exc.value.code == 1

    def test_bad_rule(self, tmp_path, image_file):
        with pytest.raises(SystemExit) as exc:
            filter_main(["-i", str(image_file), "-o", str(tmp_path), "-r", "median"])
        assert exc.value.code == 2

    def test_bad_threshold_range(self, tmp_path, image_file):
        with pytest.raises(SystemExit) as exc:
            filter_main(["-i", str(image_file), "-o", str(tmp_path),
                         "--tmin", "10", "--tmax", "1"])
        assert exc.value.code == 2

    def test_family_without_prerequisites(self, tmp_path, image_file, capsys):
        with pytest.raises(SystemExit) as exc:
            filter_main(["-i", str(image_file), "-o", str(tmp_path), "-a", "otsu"])
        assert exc.value.code == 2
        assert "prerequisite" in capsys.readouterr().err


class TestAttrsMain:

    def test_writes_table(self, tmp_path, image_file, capsys):
        out = tmp_path / "out"
        rc = attrs_main(["-i", str(image_file), "-o", str(out), "-q"])
        assert rc == 0
        rows = read_node_csv(out / "cells_nodes.csv")
        assert len(rows) == 4
        assert "4 nodes" in capsys.readouterr().out

    def test_histogram(self, tmp_path, image_file):
        attrs_main(["-i", str(image_file), "-o", str(tmp_path), "--histogram", "area", "-q"])
        assert (tmp_path / "cells_area_hist.png").exists()

    def test_missing_input(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            attrs_main(["-i", str(tmp_path / "nope.npy"), "-o", str(tmp_path)])
        assert exc.value.code == 1
