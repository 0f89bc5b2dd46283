"""
Image reconstruction from a (filtered) tree.

Grey-level images, ``construct_image``:

  MIN     Active nodes keep their level.  An inactive node and everything
          below it is flattened to the level of its nearest surviving
          ancestor.  An inactive root gives an all-zero image.
  MAX     A node survives when it or any descendant is active; survivors
          are then painted with the MIN rule.
  DIRECT  Starting from the topmost active nodes, active nodes keep their
          level and each inactive node takes its father's current level
          (``h`` is overwritten, ``restore`` undoes it); the descent
          continues below inactive nodes, so active descendants keep their
          own level.  Pixels with no active ancestor stay 0.

Attribute images, ``construct_attribute_image``: every pixel starts at its
owning node and walks towards (never into) the root:

  MIN     keep the ancestor with the smallest positive selection value
  MAX     keep the ancestor with the largest finite selection value
  DIRECT  keep the starting node

and writes the value attribute of the kept node.  An optional limit
attribute first skips ancestors whose limit value is below ``limit_min``,
then stops the walk once it reaches ``limit_max``.
"""
from __future__ import annotations

import enum
import math
from typing import Optional

import numpy as np

from .attributes import as_attribute, family_of, get_attribute
from .tree import ComponentTree, Node


class ConstructionDecision(str, enum.Enum):
    MIN = "min"
    MAX = "max"
    DIRECT = "direct"


def _as_rule(rule) -> ConstructionDecision:
    try:
        return ConstructionDecision(str(getattr(rule, "value", rule)).lower())
    except ValueError:
        raise ValueError(f"Unknown reconstruction rule {rule!r}; use min, max or direct") from None


def _output(tree: ComponentTree, out: Optional[np.ndarray], dtype) -> np.ndarray:
    if out is None:
        return np.zeros(tree.input_shape, dtype=dtype)
    if out.size != tree.image.size or out.shape not in (tuple(tree.input_shape), tuple(tree.shape)):
        raise ValueError(
            f"Output buffer shape {out.shape} does not match grid shape {tree.input_shape}"
        )
    out[...] = 0
    return out


def _require(tree: ComponentTree, attribute) -> None:
    family = family_of(attribute)
    if (tree.computed & family) != family:
        raise ValueError(f"Attribute {as_attribute(attribute).value!r} was not computed on this tree")


def _paint(out: np.ndarray, pixels, value) -> None:
    if pixels:
        np.put(out, pixels, value)


# --------------------------------------------------------------------------- #
# Grey-level reconstruction
# --------------------------------------------------------------------------- #

def construct_image(
    tree: ComponentTree,
    rule=ConstructionDecision.DIRECT,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Rebuild a grey-level image from the tree's ``active`` flags.

    Parameters
    ----------
    tree : ComponentTree
    rule : ConstructionDecision or {"min", "max", "direct"}
    out : ndarray or None
        Buffer to write into (grid shape); a new array of the source dtype
        is allocated when omitted.

    Returns
    -------
    image : ndarray
        ``out`` when given.
    """
    rule = _as_rule(rule)
    res = _output(tree, out, tree.image.dtype)
    if tree.root_id is None:
        return res

    if rule is ConstructionDecision.MIN:
        _construct_min(tree, res, lambda n: n.active)
    elif rule is ConstructionDecision.MAX:
        survives = _survivors(tree)
        _construct_min(tree, res, lambda n: survives[n.index])
    else:
        _construct_direct(tree, res)
    return res


def _construct_min(tree: ComponentTree, res: np.ndarray, keep) -> None:
    root = tree.root
    if not keep(root):
        return
    fifo = [root.index]
    while fifo:
        tmp = tree.nodes[fifo.pop()]
        _paint(res, tmp.pixels, tmp.h)
        for c in tmp.children:
            child = tree.nodes[c]
            if keep(child):
                fifo.append(c)
            else:
                _paint(res, tree.merge_pixels(child), tmp.h)


def _survivors(tree: ComponentTree) -> list:
    """``survives[i]``: node i or one of its descendants is active."""
    survives = [False] * len(tree.nodes)
    for i in tree.postorder():
        n = tree.nodes[i]
        survives[i] = n.active or any(survives[c] for c in n.children)
    return survives


def _construct_direct(tree: ComponentTree, res: np.ndarray) -> None:
    nodes = tree.nodes
    tops = []
    fifo = [tree.root_id]
    while fifo:
        tmp = nodes[fifo.pop()]
        if tmp.active:
            tops.append(tmp.index)
        else:
            fifo.extend(tmp.children)

    fifo = tops
    while fifo:
        tmp = nodes[fifo.pop()]
        _paint(res, tmp.pixels, tmp.h)
        for c in tmp.children:
            child = nodes[c]
            if not child.active:
                child.h = tmp.h
            fifo.append(c)


def construct_node(tree: ComponentTree, node: Node, out: np.ndarray) -> np.ndarray:
    """Paint the subtree of ``node`` into ``out``, each node at its own level."""
    for i in tree.bfs(node.index):
        n = tree.nodes[i]
        _paint(out, n.pixels, n.h)
    return out


def construct_node_direct(tree: ComponentTree, node: Node, out: np.ndarray) -> np.ndarray:
    """Paint the whole subtree region of ``node`` at ``node.h``."""
    _paint(out, tree.merge_pixels(node), node.h)
    return out


# --------------------------------------------------------------------------- #
# Attribute images
# --------------------------------------------------------------------------- #

def construct_attribute_image(
    tree: ComponentTree,
    value_attribute,
    selection_attribute=None,
    rule=ConstructionDecision.MIN,
    limit_attribute=None,
    limit_min: Optional[float] = None,
    limit_max: Optional[float] = None,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Map every pixel to an attribute value chosen along its ancestor path.

    Parameters
    ----------
    tree : ComponentTree
    value_attribute : Attribute or str
        Attribute written to the output.
    selection_attribute : Attribute or str
        Attribute minimised (MIN) or maximised (MAX) along the path.
        Not used by DIRECT.
    rule : ConstructionDecision or {"min", "max", "direct"}
    limit_attribute : Attribute or str or None
        Restricts the walk to ancestors whose limit value lies in
        ``[limit_min, limit_max)``; ``None`` bounds are open.
    out : ndarray or None
        Floating-point buffer to write into; float64 is allocated when
        omitted.  Undefined scores are written as ``inf``.

    Returns
    -------
    image : ndarray of float64 (or ``out``)
    """
    rule = _as_rule(rule)
    _require(tree, value_attribute)
    if rule is not ConstructionDecision.DIRECT:
        if selection_attribute is None:
            raise ValueError(f"Rule {rule.value!r} needs a selection attribute")
        _require(tree, selection_attribute)
    if limit_attribute is not None:
        _require(tree, limit_attribute)
    if out is not None and not np.issubdtype(out.dtype, np.floating):
        raise ValueError(
            f"Attribute images need a floating-point buffer, got dtype {out.dtype}"
        )
    lo = -math.inf if limit_min is None else limit_min
    hi = math.inf if limit_max is None else limit_max

    res = _output(tree, out, np.float64)
    if tree.root_id is None:
        return res

    nodes = tree.nodes
    root_id = tree.root_id
    selected = np.empty(len(nodes), dtype=np.float64)

    # The result only depends on the starting node, so walk once per node.
    for start in nodes:
        n = start
        if limit_attribute is not None:
            while n.father != root_id and get_attribute(nodes[n.father], limit_attribute) < lo:
                n = nodes[n.father]

        n_s = n
        if rule is not ConstructionDecision.DIRECT:
            best = get_attribute(n, selection_attribute)
            while n.father != root_id and (
                limit_attribute is None
                or get_attribute(nodes[n.father], limit_attribute) < hi
            ):
                n = nodes[n.father]
                value = get_attribute(n, selection_attribute)
                if rule is ConstructionDecision.MIN:
                    if value < best and value > 0:
                        n_s, best = n, value
                elif value > best and math.isfinite(value):
                    n_s, best = n, value

        selected[start.index] = get_attribute(n_s, value_attribute)

    res[...] = selected[tree.node_index].reshape(res.shape)
    return res
