"""
Tests for tree traversal, pixel aggregation and lookup utilities.
"""
from __future__ import annotations

import pytest

from maxtree import Connectivity, build_tree
from maxtree.grid import coord_to_offset
from conftest import node_at


@pytest.fixture
def nested_tree(nested_image):
    return build_tree(nested_image)


class TestTraversal:

    def test_bfs_starts_at_root(self, nested_tree):
        order = nested_tree.bfs()
        assert order[0] == nested_tree.root_id
        assert sorted(order) == list(range(4))

    def test_bfs_from_subtree(self, nested_tree):
        b, c = node_at(nested_tree, 4, 1), node_at(nested_tree, 5, 2)
        assert nested_tree.bfs(b.index) == [b.index, c.index]

    def test_depth_and_leaves(self, nested_tree):
        c = node_at(nested_tree, 5, 2)
        assert nested_tree.depth(c) == 2
        assert nested_tree.depth(nested_tree.root) == 0
        leaves = {n.index for n in nested_tree.leaves()}
        assert leaves == {node_at(nested_tree, 1, 1).index, c.index}

    def test_iteration_is_breadth_first(self, nested_tree):
        assert [n.index for n in nested_tree] == nested_tree.bfs()

    def test_clear_releases_each_node_once(self, nested_tree):
        assert nested_tree.clear() == 4
        assert nested_tree.root is None
        assert len(nested_tree) == 0
        assert nested_tree.bfs() == []


class TestPixels:

    def test_merge_pixels(self, nested_tree):
        b = node_at(nested_tree, 4, 1)
        shape = nested_tree.shape
        expected = {coord_to_offset(x, y, 0, shape) for x, y in [(4, 1), (5, 1), (4, 2), (5, 2)]}
        assert set(nested_tree.merge_pixels(b)) == expected
        assert len(nested_tree.merge_pixels(nested_tree.root)) == 28

    def test_merge_pixels_false_nodes(self, nested_tree):
        b, c = node_at(nested_tree, 4, 1), node_at(nested_tree, 5, 2)
        assert nested_tree.merge_pixels_false_nodes(b) == []

        b.active = False
        # C is active: only B's own pixels
        assert sorted(nested_tree.merge_pixels_false_nodes(b)) == sorted(b.pixels)

        c.active = False
        assert len(nested_tree.merge_pixels_false_nodes(b)) == 4


class TestLookup:

    def test_offset_lookup_with_and_without_index(self, nested_tree):
        offset = coord_to_offset(5, 2, 0, nested_tree.shape)
        scanned = nested_tree.offset_to_node(offset)
        indexed = nested_tree.offset_to_node(offset, index=nested_tree.node_index)
        assert scanned is indexed
        assert scanned.h == 9

    def test_coord_outside_rejected(self, nested_tree):
        with pytest.raises(ValueError, match="outside"):
            nested_tree.coord_to_node(7, 0)


class TestInclusion:

    def test_se_fits_in_block(self, nested_tree):
        a = node_at(nested_tree, 1, 1)
        region = nested_tree.merge_pixels(a)
        se = Connectivity([(1, 0), (0, 1)])
        assert nested_tree.is_include(se, region)

    def test_n4_does_not_fit_in_2x2_block(self, nested_tree):
        a = node_at(nested_tree, 1, 1)
        assert not nested_tree.is_include(Connectivity.n4(), nested_tree.merge_pixels(a))

    def test_larger_se_never_fits(self, nested_tree):
        c = node_at(nested_tree, 5, 2)
        assert not nested_tree.is_include(Connectivity.n8(), c.pixels)

    def test_translation_does_not_wrap(self, nested_tree):
        """A row-end pixel shifted by +x must not match the next row's start."""
        row0 = [coord_to_offset(6, 0, 0, nested_tree.shape),
                coord_to_offset(0, 1, 0, nested_tree.shape)]
        assert not nested_tree.is_include(Connectivity([(1, 0)]), row0)


class TestNodeTable:

    def test_columns_follow_computed_attributes(self, nested_tree):
        rows = nested_tree.node_table()
        assert len(rows) == 4
        first = rows[0]
        assert first["node"] == nested_tree.root_id
        assert first["father"] == nested_tree.root_id
        assert first["area"] == 28
        assert "volume" in first
        assert "otsu" not in first

    def test_explicit_columns(self, nested_tree):
        rows = nested_tree.node_table(attributes=[])
        assert set(rows[0]) == {"node", "father", "level", "n_children", "active"}
