"""
Attribute filtering on a built tree.

Filters never reshape the tree: they only switch nodes off
(``active = False``).  A threshold filter deactivates every node whose
attribute lies outside the closed range ``[tmin, tmax]``, so for a fixed
starting state a narrower range can only deactivate more nodes.
``restore`` undoes every filter and every level change made by
reconstruction.
"""
from __future__ import annotations

from typing import Optional

from .attributes import Attribute, as_attribute, family_of, get_attribute
from .tree import ComponentTree


def restore(tree: ComponentTree) -> None:
    """Reset every node to ``active = True`` and ``h = ori_h``."""
    for i in tree.bfs():
        n = tree.nodes[i]
        n.active = True
        n.h = n.ori_h


def set_false(tree: ComponentTree) -> None:
    """Deactivate every node."""
    for i in tree.bfs():
        tree.nodes[i].active = False


def threshold_filter(
    tree: ComponentTree,
    attribute,
    tmin: Optional[float] = None,
    tmax: Optional[float] = None,
) -> int:
    """
    Deactivate nodes whose ``attribute`` falls outside ``[tmin, tmax]``.

    Parameters
    ----------
    tree : ComponentTree
    attribute : Attribute or str
    tmin, tmax : float or None
        Inclusive bounds; ``None`` leaves that side open.

    Returns
    -------
    n_deactivated : int
        Nodes switched from active to inactive by this call.

    Raises
    ------
    ValueError
        If the attribute's family was not computed on this tree, or
        ``tmin > tmax``.
    """
    attribute = as_attribute(attribute)
    family = family_of(attribute)
    if (tree.computed & family) != family:
        raise ValueError(
            f"Attribute {attribute.value!r} was not computed on this tree "
            f"(needs {family!r})"
        )
    if tmin is not None and tmax is not None and tmin > tmax:
        raise ValueError(f"tmin ({tmin}) must be <= tmax ({tmax})")

    n_deactivated = 0
    for i in tree.bfs():
        n = tree.nodes[i]
        value = get_attribute(n, attribute)
        if (tmin is not None and value < tmin) or (tmax is not None and value > tmax):
            if n.active:
                n_deactivated += 1
            n.active = False
    return n_deactivated


# --------------------------------------------------------------------------- #
# Per-family entry points
# --------------------------------------------------------------------------- #

def area_filter(tree: ComponentTree, tmin=None, tmax=None) -> int:
    return threshold_filter(tree, Attribute.AREA, tmin, tmax)


def volume_filter(tree: ComponentTree, tmin=None, tmax=None) -> int:
    return threshold_filter(tree, Attribute.VOLUME, tmin, tmax)


def contrast_filter(tree: ComponentTree, tmin=None, tmax=None) -> int:
    return threshold_filter(tree, Attribute.CONTRAST, tmin, tmax)


def mser_filter(tree: ComponentTree, tmin=None, tmax=None) -> int:
    return threshold_filter(tree, Attribute.MSER, tmin, tmax)


def otsu_filter(tree: ComponentTree, tmin=None, tmax=None) -> int:
    return threshold_filter(tree, Attribute.OTSU, tmin, tmax)


def complexity_filter(tree: ComponentTree, tmin=None, tmax=None) -> int:
    return threshold_filter(tree, Attribute.COMPLEXITY, tmin, tmax)


def compacity_filter(tree: ComponentTree, tmin=None, tmax=None) -> int:
    return threshold_filter(tree, Attribute.COMPACITY, tmin, tmax)
