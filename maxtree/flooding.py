"""
Max-tree construction by hierarchical flooding (Salembier et al., 1998).

Algorithm:
  1. Pad the grid with a sentinel border sized by the connectivity, and a
     parallel status array (ACTIVE / QUEUED / BORDER / owning node).
  2. Rank the distinct grey values; allocate one FIFO per rank.
  3. Seed the lowest queue with the first pixel at the minimum value and
     flood: pop a pixel, assign it to the open node of its level (creating
     it on first use), then queue every ACTIVE neighbour at its own level.
     A neighbour strictly above the current level is flooded to completion
     first, so higher components close (and get linked) before any lower
     ancestor closes over them.
  4. When a level's queue empties, its node is finished: it is linked as a
     child of the open node at the nearest lower level that has one, or
     becomes the self-parented root when there is none.
  5. Crop the status array back to the grid size: that is the dense
     per-pixel node index.

The level-crossing recursion of the textbook algorithm is run on an
explicit stack of frames ``[level, pixel, next_neighbour]``, so the call
depth does not grow with the number of grey levels.
"""
from __future__ import annotations

from collections import deque
from typing import List, Optional

import numpy as np

from .attributes import ComputedAttributes, compute_attributes, validate_selection
from .connectivity import Connectivity
from .grid import add_borders, as_volume, crop
from .tree import ComponentTree, Node


ACTIVE = -1
QUEUED = -2
BORDER = -3

_NO_LEVEL = -1


class _FloodContext:
    """Mutable state of one build.  Never shared between builds."""

    def __init__(self, volume: np.ndarray, connectivity: Connectivity):
        self.shape = volume.shape
        self.back = connectivity.negative_offsets
        self.front = connectivity.positive_offsets

        # Rank grey values: level k <-> values[k]
        values, ranks = np.unique(volume, return_inverse=True)
        self.values = values.tolist()
        n_levels = len(self.values)

        ranks = ranks.reshape(volume.shape).astype(np.int64)
        padded = add_borders(ranks, self.back, self.front, _NO_LEVEL)
        self.padded_shape = padded.shape
        self.levels: List[int] = padded.ravel().tolist()

        status = np.full(volume.shape, ACTIVE, dtype=np.int64)
        self.status: List[int] = add_borders(status, self.back, self.front, BORDER).ravel().tolist()

        self.offsets = connectivity.offsets(self.padded_shape)

        self.queues = [deque() for _ in range(n_levels)]
        self.number_nodes = [0] * n_levels
        self.node_at_level = [False] * n_levels
        # per level: component number -> node index
        self.index: List[dict] = [dict() for _ in range(n_levels)]

        self.nodes: List[Node] = []
        self.root_id: Optional[int] = None

    # ------------------------------------------------------------------ #

    def new_node(self, level: int, label: int) -> int:
        i = len(self.nodes)
        h = self.values[level]
        self.nodes.append(Node(index=i, h=h, ori_h=h, label=label))
        self.index[level][label] = i
        return i

    def link_node(self, father: int, child: int) -> None:
        self.nodes[child].father = father
        self.nodes[father].children.append(child)

    def assign(self, p: int, level: int) -> None:
        """Give padded pixel ``p`` to the open node at ``level``."""
        label = self.number_nodes[level]
        node_id = self.index[level].get(label)
        if node_id is None:
            node_id = self.new_node(level, label)
        self.status[p] = node_id

        _, py, px = self.padded_shape
        z, rest = divmod(p, px * py)
        y, x = divmod(rest, px)
        x -= self.back[0]
        y -= self.back[1]
        z -= self.back[2]
        _, ny, nx = self.shape

        n = self.nodes[node_id]
        n.pixels.append(x + y * nx + z * nx * ny)
        n.area += 1
        n.sum += n.ori_h
        n.sum_square += n.ori_h * n.ori_h
        if x < n.xmin:
            n.xmin = x
        if x > n.xmax:
            n.xmax = x
        if y < n.ymin:
            n.ymin = y
        if y > n.ymax:
            n.ymax = y
        if z < n.zmin:
            n.zmin = z
        if z > n.zmax:
            n.zmax = z

    def close_level(self, h: int) -> int:
        """
        Finish the open node at level ``h`` and link it downwards.

        Returns the level of the father node, or -1 when the finished node
        is the root.
        """
        self.number_nodes[h] += 1
        child = self.index[h][self.number_nodes[h] - 1]

        m = h - 1
        while m >= 0 and not self.node_at_level[m]:
            m -= 1

        if m >= 0:
            label = self.number_nodes[m]
            father = self.index[m].get(label)
            if father is None:
                father = self.new_node(m, label)
            self.link_node(father, child)
        else:
            self.nodes[child].father = child
            self.root_id = child
        self.node_at_level[h] = False
        return m

    def flood(self, seed: int) -> None:
        queues = self.queues
        status = self.status
        levels = self.levels
        offsets = self.offsets

        h0 = levels[seed]
        queues[h0].append(seed)
        status[seed] = QUEUED
        self.node_at_level[h0] = True

        # frame = [level, current pixel or None, next neighbour position]
        stack = [[h0, None, 0]]
        ret = None
        while stack:
            frame = stack[-1]
            h = frame[0]

            if ret is not None:
                m, ret = ret, None
                if m != h:
                    stack.append([m, None, 0])
                    continue

            p = frame[1]
            if p is None:
                if not queues[h]:
                    ret = self.close_level(h)
                    stack.pop()
                    continue
                p = queues[h].popleft()
                self.assign(p, h)
                frame[1] = p
                frame[2] = 0

            descended = False
            for j in range(frame[2], len(offsets)):
                q = p + offsets[j]
                if status[q] == ACTIVE:
                    lq = levels[q]
                    queues[lq].append(q)
                    status[q] = QUEUED
                    self.node_at_level[lq] = True
                    if lq > h:
                        frame[2] = j + 1
                        stack.append([lq, None, 0])
                        descended = True
                        break
            if not descended:
                frame[1] = None

    def node_index(self) -> np.ndarray:
        status = np.asarray(self.status, dtype=np.int64).reshape(self.padded_shape)
        return crop(status, self.back, self.front)


def flood_tree(image: np.ndarray, connectivity: Optional[Connectivity] = None) -> ComponentTree:
    """
    Build the (unattributed) max-tree of ``image``.

    Parameters
    ----------
    image : ndarray, shape (ny, nx) or (nz, ny, nx)
        Integer, float or bool samples.
    connectivity : Connectivity or None
        Adjacency; defaults to N8 (2-D) / N26 (3-D).

    Returns
    -------
    tree : ComponentTree
        Nodes carry their own-pixel area, sums and bounding box only.
    """
    volume = as_volume(image)
    if connectivity is None:
        connectivity = Connectivity.default_for(volume)

    ctx = _FloodContext(volume, connectivity)

    # first pixel (scan order) at the minimum level
    seed = ctx.levels.index(0)
    ctx.flood(seed)

    return ComponentTree(
        nodes=ctx.nodes,
        root_id=ctx.root_id,
        node_index=ctx.node_index(),
        image=volume,
        connectivity=connectivity,
        input_shape=np.shape(image),
    )


def build_tree(
    image: np.ndarray,
    connectivity: Optional[Connectivity] = None,
    attributes: ComputedAttributes = ComputedAttributes.DEFAULT,
    delta: float = 1,
    neighborhood_radius: Optional[int] = None,
) -> ComponentTree:
    """
    Build the max-tree of ``image`` and compute the selected attributes.

    Parameters
    ----------
    image : ndarray, shape (ny, nx) or (nz, ny, nx)
    connectivity : Connectivity or None
        Defaults to N8 (2-D) / N26 (3-D).
    attributes : ComputedAttributes
        Families to compute; every prerequisite must be included
        (see :func:`maxtree.attributes.with_prerequisites`).
    delta : float
        MSER grey-level window.
    neighborhood_radius : int or None
        Ball radius for neighbourhood statistics (defaults to ``delta``).

    Returns
    -------
    tree : ComponentTree
    """
    validate_selection(ComputedAttributes(attributes))
    tree = flood_tree(image, connectivity)
    compute_attributes(tree, attributes, delta=delta,
                       neighborhood_radius=neighborhood_radius)
    return tree
