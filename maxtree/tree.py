"""
Component-tree data model.

Nodes live in an arena (``ComponentTree.nodes``) and refer to each other by
index: ``father`` is the parent's index, ``children`` a list of indices.
The root is its own father.  Every pixel offset of the grid belongs to
exactly one node's ``pixels`` list; a node's *subtree region* is its own
pixels plus those of all its descendants.

The tree is built by :func:`maxtree.flooding.build_tree` and never changes
shape afterwards: filtering and reconstruction only touch ``active`` and
``h``.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import numpy as np

from .connectivity import Connectivity
from .grid import coord_to_offset, is_inside, offset_to_coord


_BIG = np.iinfo(np.int64).max


@dataclass
class Node:
    """A maximal connected region at grey level ``ori_h``."""

    index: int
    h: float
    ori_h: float
    label: int = 0
    father: int = -1
    children: List[int] = field(default_factory=list)
    pixels: List[int] = field(default_factory=list)
    active: bool = True

    # Cumulative over the subtree once attributes are computed; the
    # builder fills in the node's own-pixel contribution.
    area: int = 0
    sum: float = 0.0
    sum_square: float = 0.0

    volume: float = 0.0
    contrast: float = 0.0
    mean: float = 0.0
    variance: float = 0.0

    area_nghb: int = 0
    sum_nghb: float = 0.0
    sum_square_nghb: float = 0.0
    mean_nghb: float = 0.0
    variance_nghb: float = 0.0
    otsu: float = 0.0

    mser: float = 0.0
    area_derivative_h: float = 0.0
    area_derivative_area_n: float = 0.0
    area_derivative_area_n_h: float = 0.0
    area_derivative_area_n_h_derivative: float = 0.0
    area_derivative_delta_h: float = 0.0
    area_derivative_delta_area_f: float = 0.0

    contour_length: int = 0
    pixels_border: List[int] = field(default_factory=list)
    mean_gradient_border: float = 0.0
    complexity: int = 0
    compacity: int = 0

    xmin: int = _BIG
    xmax: int = -1
    ymin: int = _BIG
    ymax: int = -1
    zmin: int = _BIG
    zmax: int = -1

    sub_nodes: int = 0

    @property
    def bounding_box(self):
        """``(xmin, xmax, ymin, ymax, zmin, zmax)``."""
        return self.xmin, self.xmax, self.ymin, self.ymax, self.zmin, self.zmax


class ComponentTree:
    """
    Max-tree of a grid: an arena of :class:`Node` plus the dense pixel index.

    Attributes
    ----------
    nodes : list of Node
        The arena; ``nodes[i].index == i``.
    root_id : int or None
        Index of the root, ``None`` for an empty (cleared) tree.
    node_index : ndarray of int64, shape (nz, ny, nx)
        Owning node index of every pixel.
    image : ndarray, shape (nz, ny, nx)
        The source grid (read only).
    connectivity : Connectivity
    input_shape : tuple
        Shape of the array the tree was built from; reconstructed images
        come back in this shape.
    computed : ComputedAttributes
        Attribute families computed so far.
    """

    def __init__(
        self,
        nodes: List[Node],
        root_id: Optional[int],
        node_index: np.ndarray,
        image: np.ndarray,
        connectivity: Connectivity,
        input_shape: Optional[tuple] = None,
    ):
        from .attributes import ComputedAttributes

        self.nodes = nodes
        self.root_id = root_id
        self.node_index = node_index
        self.image = image
        self.connectivity = connectivity
        self.input_shape = tuple(image.shape if input_shape is None else input_shape)
        self.computed = ComputedAttributes.NONE

    # ------------------------------------------------------------------ #
    # Structure
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Node]:
        return (self.nodes[i] for i in self.bfs())

    @property
    def shape(self):
        return self.image.shape

    @property
    def root(self) -> Optional[Node]:
        return None if self.root_id is None else self.nodes[self.root_id]

    def node(self, index: int) -> Node:
        return self.nodes[index]

    def father(self, node: Node) -> Node:
        return self.nodes[node.father]

    def children(self, node: Node) -> List[Node]:
        return [self.nodes[c] for c in node.children]

    @staticmethod
    def is_root(node: Node) -> bool:
        return node.father == node.index

    def bfs(self, start: Optional[int] = None) -> List[int]:
        """Node indices in breadth-first order from ``start`` (default root)."""
        if start is None:
            start = self.root_id
        if start is None:
            return []
        order = [start]
        i = 0
        while i < len(order):
            order.extend(self.nodes[order[i]].children)
            i += 1
        return order

    def postorder(self, start: Optional[int] = None) -> List[int]:
        """Node indices with every child before its father."""
        return self.bfs(start)[::-1]

    def depth(self, node: Node) -> int:
        d = 0
        while node.father != node.index:
            node = self.nodes[node.father]
            d += 1
        return d

    def leaves(self) -> List[Node]:
        return [self.nodes[i] for i in self.bfs() if not self.nodes[i].children]

    def clear(self) -> int:
        """Release every node (once each); returns the number released."""
        released = 0
        for i in self.bfs():
            node = self.nodes[i]
            node.children = []
            node.pixels = []
            node.pixels_border = []
            released += 1
        self.nodes = []
        self.root_id = None
        return released

    # ------------------------------------------------------------------ #
    # Pixel aggregation
    # ------------------------------------------------------------------ #

    def merge_pixels(self, node: Node) -> List[int]:
        """All pixel offsets of the subtree rooted at ``node``."""
        res: List[int] = []
        for i in self.bfs(node.index):
            res.extend(self.nodes[i].pixels)
        return res

    def merge_pixels_false_nodes(self, node: Node) -> List[int]:
        """
        Pixels of the contiguous run of inactive nodes starting at ``node``.

        The walk stops at (and excludes) every active node, so the pixels of
        active descendants and of anything below them are not collected.
        """
        res: List[int] = []
        fifo = deque([node.index])
        while fifo:
            tmp = self.nodes[fifo.popleft()]
            if not tmp.active:
                res.extend(tmp.pixels)
                fifo.extend(tmp.children)
        return res

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def indexed_nodes(self) -> np.ndarray:
        """Rebuild the dense ``(nz, ny, nx)`` node index from the pixel lists."""
        index = np.full(self.image.size, -1, dtype=np.int64)
        for i in self.bfs():
            pixels = self.nodes[i].pixels
            if pixels:
                index[np.asarray(pixels, dtype=np.int64)] = i
        return index.reshape(self.image.shape)

    def offset_to_node(self, offset: int, index: Optional[np.ndarray] = None) -> Optional[Node]:
        """
        Node owning ``offset``.

        With ``index`` (e.g. ``tree.node_index``) this is a table lookup;
        without it the tree is scanned breadth-first.
        """
        if index is not None:
            i = int(index.ravel()[offset])
            return None if i < 0 else self.nodes[i]
        for i in self.bfs():
            if offset in self.nodes[i].pixels:
                return self.nodes[i]
        return None

    def coord_to_node(self, x: int, y: int, z: int = 0,
                      index: Optional[np.ndarray] = None) -> Optional[Node]:
        if not is_inside(x, y, z, self.shape):
            raise ValueError(f"({x}, {y}, {z}) is outside grid of shape {self.shape}")
        return self.offset_to_node(coord_to_offset(x, y, z, self.shape), index=index)

    # ------------------------------------------------------------------ #
    # Structuring-element inclusion
    # ------------------------------------------------------------------ #

    def is_include(self, se: Connectivity, pixels: List[int]) -> bool:
        """
        True when ``se`` translated to some pixel of ``pixels`` fits entirely
        inside ``pixels``.

        Translations are done in coordinates, so points falling outside the
        grid never match.
        """
        if len(se) > len(pixels):
            return False
        members = set(pixels)
        shape = self.shape
        for p in pixels:
            px, py, pz = offset_to_coord(p, shape)
            fits = True
            for dx, dy, dz in se:
                qx, qy, qz = px + dx, py + dy, pz + dz
                if not is_inside(qx, qy, qz, shape) or \
                        coord_to_offset(qx, qy, qz, shape) not in members:
                    fits = False
                    break
            if fits:
                return True
        return False

    # ------------------------------------------------------------------ #
    # Export
    # ------------------------------------------------------------------ #

    def node_table(self, attributes=None) -> List[Dict]:
        """
        One dict per node (breadth-first), for CSV export.

        Parameters
        ----------
        attributes : sequence of Attribute or None
            Columns to include besides ``node``, ``father`` and ``level``.
            ``None`` includes every attribute whose family was computed.
        """
        from .attributes import available_attributes, get_attribute

        if attributes is None:
            attributes = available_attributes(self.computed)
        rows = []
        for i in self.bfs():
            n = self.nodes[i]
            row = {"node": n.index, "father": n.father, "level": n.ori_h,
                   "n_children": len(n.children), "active": n.active}
            for attr in attributes:
                row[attr.value] = get_attribute(n, attr)
            rows.append(row)
        return rows
