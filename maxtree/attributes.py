"""
Node attributes: identifiers, capability flags and the traversals that
compute them.

Families and their prerequisites:

    AREA                  -
    CONTRAST              -
    VOLUME                AREA
    MEAN_VARIANCE         AREA
    NEIGHBORHOOD          -
    OTSU                  MEAN_VARIANCE, NEIGHBORHOOD
    AREA_DERIVATIVES      AREA            (includes MSER)
    CONTOUR_LENGTH        -
    BORDER_GRADIENT       CONTOUR_LENGTH
    COMPLEXITY_COMPACITY  AREA, CONTOUR_LENGTH
    BOUNDING_BOX          -
    SUB_NODES             -

A selection missing a prerequisite is rejected before anything runs.

Cumulative attributes restart from each node's own pixels, so running a
traversal twice gives the same result.  All grey-level arithmetic uses
``ori_h``.  Ratios with a zero denominator, and MSER scores without a
``delta``-distant ancestor, are set to ``UNDEFINED`` (+inf).
"""
from __future__ import annotations

import enum
import math
from typing import Iterable, List, Optional

import numpy as np
from scipy.ndimage import binary_dilation

from .connectivity import Connectivity
from .grid import add_borders
from .morph import morphological_gradient
from .tree import ComponentTree, Node


UNDEFINED = math.inf

_BORDER = -1


class ComputedAttributes(enum.IntFlag):
    """Attribute families a build can compute."""

    NONE = 0
    AREA = 1
    CONTRAST = 2
    VOLUME = 4
    MEAN_VARIANCE = 8
    NEIGHBORHOOD = 16
    OTSU = 32
    AREA_DERIVATIVES = 64
    CONTOUR_LENGTH = 128
    BORDER_GRADIENT = 256
    COMPLEXITY_COMPACITY = 512
    BOUNDING_BOX = 1024
    SUB_NODES = 2048

    DEFAULT = (AREA | CONTRAST | VOLUME | CONTOUR_LENGTH
               | COMPLEXITY_COMPACITY | BOUNDING_BOX | SUB_NODES)
    ALL = 4095

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "ComputedAttributes":
        """``["area", "volume"]`` -> ``AREA | VOLUME`` (case-insensitive)."""
        sel = cls.NONE
        for name in names:
            key = name.strip().upper().replace("-", "_")
            try:
                sel |= cls[key]
            except KeyError:
                raise ValueError(f"Unknown attribute family {name!r}") from None
        return sel


_F = ComputedAttributes

_SINGLE_FLAGS = [f for f in _F if f.value and (f.value & (f.value - 1)) == 0]

PREREQUISITES = {
    _F.VOLUME: _F.AREA,
    _F.MEAN_VARIANCE: _F.AREA,
    _F.OTSU: _F.MEAN_VARIANCE | _F.NEIGHBORHOOD,
    _F.AREA_DERIVATIVES: _F.AREA,
    _F.BORDER_GRADIENT: _F.CONTOUR_LENGTH,
    _F.COMPLEXITY_COMPACITY: _F.AREA | _F.CONTOUR_LENGTH,
}


class Attribute(str, enum.Enum):
    """Per-node values usable for filtering and attribute images."""

    H = "h"
    AREA = "area"
    AREA_D_AREAN_H = "area_d_arean_h"
    AREA_D_AREAN_H_D = "area_d_arean_h_d"
    AREA_D_H = "area_d_h"
    AREA_D_AREAN = "area_d_arean"
    MSER = "mser"
    AREA_D_DELTA_H = "area_d_delta_h"
    AREA_D_DELTA_AREAF = "area_d_delta_areaf"
    MEAN = "mean"
    VARIANCE = "variance"
    MEAN_NGHB = "mean_nghb"
    VARIANCE_NGHB = "variance_nghb"
    OTSU = "otsu"
    CONTRAST = "contrast"
    VOLUME = "volume"
    MGB = "mgb"
    CONTOUR_LENGTH = "contour_length"
    COMPLEXITY = "complexity"
    COMPACITY = "compacity"
    SUB_NODES = "sub_nodes"


# attribute -> (Node field, family that computes it)
_ATTRIBUTE_FIELDS = {
    Attribute.H: ("h", _F.NONE),
    Attribute.AREA: ("area", _F.AREA),
    Attribute.AREA_D_AREAN_H: ("area_derivative_area_n_h", _F.AREA_DERIVATIVES),
    Attribute.AREA_D_AREAN_H_D: ("area_derivative_area_n_h_derivative", _F.AREA_DERIVATIVES),
    Attribute.AREA_D_H: ("area_derivative_h", _F.AREA_DERIVATIVES),
    Attribute.AREA_D_AREAN: ("area_derivative_area_n", _F.AREA_DERIVATIVES),
    Attribute.MSER: ("mser", _F.AREA_DERIVATIVES),
    Attribute.AREA_D_DELTA_H: ("area_derivative_delta_h", _F.AREA_DERIVATIVES),
    Attribute.AREA_D_DELTA_AREAF: ("area_derivative_delta_area_f", _F.AREA_DERIVATIVES),
    Attribute.MEAN: ("mean", _F.MEAN_VARIANCE),
    Attribute.VARIANCE: ("variance", _F.MEAN_VARIANCE),
    Attribute.MEAN_NGHB: ("mean_nghb", _F.NEIGHBORHOOD),
    Attribute.VARIANCE_NGHB: ("variance_nghb", _F.NEIGHBORHOOD),
    Attribute.OTSU: ("otsu", _F.OTSU),
    Attribute.CONTRAST: ("contrast", _F.CONTRAST),
    Attribute.VOLUME: ("volume", _F.VOLUME),
    Attribute.MGB: ("mean_gradient_border", _F.BORDER_GRADIENT),
    Attribute.CONTOUR_LENGTH: ("contour_length", _F.CONTOUR_LENGTH),
    Attribute.COMPLEXITY: ("complexity", _F.COMPLEXITY_COMPACITY),
    Attribute.COMPACITY: ("compacity", _F.COMPLEXITY_COMPACITY),
    Attribute.SUB_NODES: ("sub_nodes", _F.SUB_NODES),
}


# --------------------------------------------------------------------------- #
# Attribute lookup and selection helpers
# --------------------------------------------------------------------------- #

def as_attribute(attribute) -> Attribute:
    if isinstance(attribute, Attribute):
        return attribute
    try:
        return Attribute(str(attribute).lower())
    except ValueError:
        raise ValueError(f"Unknown attribute {attribute!r}") from None


def get_attribute(node: Node, attribute) -> float:
    """Value of ``attribute`` on ``node``."""
    return getattr(node, _ATTRIBUTE_FIELDS[as_attribute(attribute)][0])


def family_of(attribute) -> ComputedAttributes:
    """The capability flag that produces ``attribute``."""
    return _ATTRIBUTE_FIELDS[as_attribute(attribute)][1]


def available_attributes(computed: ComputedAttributes) -> List[Attribute]:
    """Attributes readable after computing the families in ``computed``."""
    return [a for a, (_, fam) in _ATTRIBUTE_FIELDS.items()
            if fam == _F.NONE or (computed & fam) == fam]


def missing_prerequisites(selection: ComputedAttributes) -> ComputedAttributes:
    missing = 0
    for family, needs in PREREQUISITES.items():
        if selection & family:
            missing |= int(needs) & ~int(selection)
    return _F(missing)


def validate_selection(selection: ComputedAttributes) -> None:
    """
    Raise ``ValueError`` when a selected family's prerequisite is absent.

    Callers that want prerequisites filled in must say so explicitly with
    :func:`with_prerequisites`.
    """
    missing = missing_prerequisites(selection)
    if missing:
        names = ", ".join(f.name for f in _SINGLE_FLAGS if missing & f)
        raise ValueError(
            f"Attribute selection {selection!r} is missing prerequisite(s): {names}"
        )


def with_prerequisites(selection: ComputedAttributes) -> ComputedAttributes:
    """Close ``selection`` over its prerequisites."""
    sel = _F(selection)
    while True:
        missing = missing_prerequisites(sel)
        if not missing:
            return sel
        sel |= missing


def required_for(attribute) -> ComputedAttributes:
    """Smallest closed selection that makes ``attribute`` available."""
    return with_prerequisites(family_of(attribute))


# --------------------------------------------------------------------------- #
# Engine
# --------------------------------------------------------------------------- #

def compute_attributes(
    tree: ComponentTree,
    selection: ComputedAttributes = ComputedAttributes.DEFAULT,
    delta: float = 1,
    neighborhood_radius: Optional[int] = None,
) -> ComputedAttributes:
    """
    Run the traversals for ``selection`` on ``tree``, in dependency order.

    Parameters
    ----------
    tree : ComponentTree
    selection : ComputedAttributes
        Families to compute.  Must already contain every prerequisite.
    delta : float
        Grey-level gap of the MSER ancestor window.
    neighborhood_radius : int or None
        Radius of the ball used for neighbourhood statistics.  ``None``
        falls back to ``delta``.

    Returns
    -------
    computed : ComputedAttributes
        ``tree.computed`` after the call.
    """
    selection = _F(selection)
    validate_selection(selection)
    if delta < 0:
        raise ValueError("delta must be >= 0")
    if tree.root_id is None:
        return tree.computed

    order = tree.postorder()

    if selection & _F.AREA:
        compute_area(tree, order)
    if selection & _F.MEAN_VARIANCE:
        compute_mean_variance(tree, order)
    if selection & _F.NEIGHBORHOOD:
        radius = int(delta if neighborhood_radius is None else neighborhood_radius)
        compute_neighborhood(tree, radius)
    if selection & _F.OTSU:
        compute_otsu(tree)
    if selection & _F.AREA_DERIVATIVES:
        compute_area_derivatives(tree)
        compute_mser(tree, delta)
    if selection & _F.CONTRAST:
        compute_contrast(tree, order)
    if selection & _F.VOLUME:
        compute_volume(tree, order)
    if selection & (_F.CONTOUR_LENGTH | _F.BORDER_GRADIENT):
        compute_contour(tree, save_pixels=bool(selection & _F.BORDER_GRADIENT))
    if selection & _F.BORDER_GRADIENT:
        compute_border_gradient(tree)
    if selection & _F.COMPLEXITY_COMPACITY:
        compute_complexity_compacity(tree)
    if selection & _F.BOUNDING_BOX:
        compute_bounding_box(tree, order)
    if selection & _F.SUB_NODES:
        compute_sub_nodes(tree, order)

    tree.computed |= selection
    return tree.computed


# --------------------------------------------------------------------------- #
# Bottom-up sums
# --------------------------------------------------------------------------- #

def compute_area(tree: ComponentTree, order: Optional[List[int]] = None) -> None:
    """area(n) = own pixel count + sum of children's areas."""
    nodes = tree.nodes
    for i in order if order is not None else tree.postorder():
        n = nodes[i]
        n.area = len(n.pixels) + sum(nodes[c].area for c in n.children)


def compute_mean_variance(tree: ComponentTree, order: Optional[List[int]] = None) -> None:
    """Grey sum / square sum over the subtree, then mean and variance."""
    nodes = tree.nodes
    for i in order if order is not None else tree.postorder():
        n = nodes[i]
        own = len(n.pixels)
        n.sum = own * n.ori_h + sum(nodes[c].sum for c in n.children)
        n.sum_square = own * n.ori_h * n.ori_h + sum(nodes[c].sum_square for c in n.children)
        if n.area > 0:
            n.mean = n.sum / n.area
            n.variance = max(n.sum_square / n.area - n.mean * n.mean, 0.0)
        else:
            n.mean = 0.0
            n.variance = 0.0


def compute_contrast(tree: ComponentTree, order: Optional[List[int]] = None) -> None:
    """contrast(n) = max over children c of (h(c) - h(n) + contrast(c)); 0 for leaves."""
    nodes = tree.nodes
    for i in order if order is not None else tree.postorder():
        n = nodes[i]
        best = 0
        for c in n.children:
            child = nodes[c]
            best = max(best, child.ori_h - n.ori_h + child.contrast)
        n.contrast = best


def compute_volume(tree: ComponentTree, order: Optional[List[int]] = None) -> None:
    """
    volume(n) = area(n) * (h(n) - h(father)) + sum of children's volumes.

    The root uses its own level as multiplier, so its volume is the total
    grey mass of the grid.
    """
    nodes = tree.nodes
    for i in order if order is not None else tree.postorder():
        n = nodes[i]
        if n.father == n.index:
            local_contrast = n.ori_h
        else:
            local_contrast = n.ori_h - nodes[n.father].ori_h
        n.volume = n.area * local_contrast + sum(nodes[c].volume for c in n.children)


def compute_sub_nodes(tree: ComponentTree, order: Optional[List[int]] = None) -> None:
    nodes = tree.nodes
    for i in order if order is not None else tree.postorder():
        n = nodes[i]
        n.sub_nodes = sum(1 + nodes[c].sub_nodes for c in n.children)


def compute_bounding_box(tree: ComponentTree, order: Optional[List[int]] = None) -> None:
    """Merge each finalized child box into its father's."""
    nodes = tree.nodes
    for i in order if order is not None else tree.postorder():
        n = nodes[i]
        if n.father == n.index:
            continue
        f = nodes[n.father]
        f.xmin = min(f.xmin, n.xmin)
        f.xmax = max(f.xmax, n.xmax)
        f.ymin = min(f.ymin, n.ymin)
        f.ymax = max(f.ymax, n.ymax)
        f.zmin = min(f.zmin, n.zmin)
        f.zmax = max(f.zmax, n.zmax)


# --------------------------------------------------------------------------- #
# Neighbourhood statistics and Otsu score
# --------------------------------------------------------------------------- #

def compute_neighborhood(tree: ComponentTree, radius: int) -> None:
    """
    Grey statistics of the pixels within ``radius`` of each subtree region,
    excluding the region itself.

    Each node is handled on the window spanned by its subtree plus
    ``radius``, so the cost follows the subtree size rather than the grid.
    """
    image = tree.image
    nz, ny, nx = image.shape
    ball = Connectivity.euclidean_ball(radius, ndim=2 if nz == 1 else 3)
    footprint = ball.footprint()
    rz, ry, rx = (s // 2 for s in footprint.shape)

    for i in tree.bfs():
        n = tree.nodes[i]
        pixels = np.asarray(tree.merge_pixels(n), dtype=np.int64)
        zs, rest = np.divmod(pixels, nx * ny)
        ys, xs = np.divmod(rest, nx)

        z0, z1 = max(zs.min() - rz, 0), min(zs.max() + rz + 1, nz)
        y0, y1 = max(ys.min() - ry, 0), min(ys.max() + ry + 1, ny)
        x0, x1 = max(xs.min() - rx, 0), min(xs.max() + rx + 1, nx)

        # Pad the window by the footprint extent so the dilation sees
        # the region up to the clip edge.
        mask = np.zeros((z1 - z0 + 2 * rz, y1 - y0 + 2 * ry, x1 - x0 + 2 * rx), dtype=bool)
        mask[zs - z0 + rz, ys - y0 + ry, xs - x0 + rx] = True
        ring = binary_dilation(mask, structure=footprint) & ~mask
        ring = ring[rz:rz + z1 - z0, ry:ry + y1 - y0, rx:rx + x1 - x0]

        values = image[z0:z1, y0:y1, x0:x1][ring].astype(np.float64)
        n.area_nghb = int(values.size)
        n.sum_nghb = float(values.sum())
        n.sum_square_nghb = float((values * values).sum())
        if n.area_nghb > 0:
            n.mean_nghb = n.sum_nghb / n.area_nghb
            n.variance_nghb = max(n.sum_square_nghb / n.area_nghb - n.mean_nghb ** 2, 0.0)
        else:
            n.mean_nghb = 0.0
            n.variance_nghb = 0.0


def compute_otsu(tree: ComponentTree) -> None:
    """(mean - mean_nghb)^2 / (variance + variance_nghb); UNDEFINED on a zero denominator."""
    for n in tree.nodes:
        denom = n.variance + n.variance_nghb
        if denom > 0:
            n.otsu = (n.mean - n.mean_nghb) ** 2 / denom
        else:
            n.otsu = UNDEFINED


# --------------------------------------------------------------------------- #
# Area derivatives and MSER
# --------------------------------------------------------------------------- #

def _ratio(num: float, denom: float) -> float:
    if denom == 0 or not math.isfinite(num) or not math.isfinite(denom):
        return UNDEFINED
    return num / denom


def compute_area_derivatives(tree: ComponentTree) -> None:
    """Area change towards the father, raw and normalised by level gap and area."""
    nodes = tree.nodes
    order = tree.bfs()
    for i in order:
        n = nodes[i]
        if n.father == n.index:
            n.area_derivative_h = UNDEFINED
            n.area_derivative_area_n = UNDEFINED
            n.area_derivative_area_n_h = UNDEFINED
            continue
        f = nodes[n.father]
        grow = f.area - n.area
        n.area_derivative_h = _ratio(grow, n.ori_h - f.ori_h)
        n.area_derivative_area_n = _ratio(grow, n.area)
        n.area_derivative_area_n_h = _ratio(n.area_derivative_h, n.area)

    for i in order:
        n = nodes[i]
        if n.father == n.index:
            n.area_derivative_area_n_h_derivative = UNDEFINED
            continue
        f = nodes[n.father]
        a, b = f.area_derivative_area_n_h, n.area_derivative_area_n_h
        if math.isfinite(a) and math.isfinite(b):
            n.area_derivative_area_n_h_derivative = a - b
        else:
            n.area_derivative_area_n_h_derivative = UNDEFINED


def compute_mser(tree: ComponentTree, delta: float) -> None:
    """
    MSER stability: relative area growth to the first ancestor at least
    ``delta`` grey levels below the node.

    The walk stops before the root; nodes without such an ancestor keep
    ``UNDEFINED`` scores.
    """
    nodes = tree.nodes
    for n in nodes:
        n.mser = UNDEFINED
        n.area_derivative_delta_h = UNDEFINED
        n.area_derivative_delta_area_f = UNDEFINED

        anc = n
        while n.ori_h - anc.ori_h < delta and anc.father != nodes[anc.father].father:
            anc = nodes[anc.father]

        if n.ori_h - anc.ori_h >= delta:
            grow = anc.area - n.area
            n.mser = _ratio(grow, n.area)
            n.area_derivative_delta_h = _ratio(grow, n.ori_h - anc.ori_h)
            n.area_derivative_delta_area_f = _ratio(grow, anc.area)


# --------------------------------------------------------------------------- #
# Contour length, border gradient, shape ratios
# --------------------------------------------------------------------------- #

def compute_contour(tree: ComponentTree, save_pixels: bool = False) -> None:
    """
    Contour length of every node in one pass over the padded grid.

    A pixel is a contour pixel of its node when one of its neighbours is
    strictly lower, or lies outside the grid (the outside counts as level
    hMin).  It is then counted for every node from its owner up to, but
    excluding, the first ancestor at or below the lowest neighbour level;
    touching the outside counts it up to and including the root.
    """
    nodes = tree.nodes
    for n in nodes:
        n.contour_length = 0
        n.pixels_border = []

    image = tree.image
    conn = tree.connectivity
    back, front = conn.negative_offsets, conn.positive_offsets
    nz, ny, nx = image.shape

    owners = add_borders(tree.node_index, back, front, _BORDER)
    values = add_borders(image.astype(np.float64), back, front, 0.0)
    offsets = conn.offsets(owners.shape)
    owner_flat = owners.ravel().tolist()
    value_flat = values.ravel().tolist()
    pz, py, px = owners.shape
    bx, by, bz = back

    for p, owner in enumerate(owner_flat):
        if owner == _BORDER:
            continue
        v = value_flat[p]
        contour = False
        hits_border = False
        min_value = v
        for off in offsets:
            q = p + off
            if owner_flat[q] == _BORDER:
                contour = True
                hits_border = True
                break
            if value_flat[q] < v:
                contour = True
                if value_flat[q] < min_value:
                    min_value = value_flat[q]
        if not contour:
            continue

        if save_pixels:
            z, rest = divmod(p, px * py)
            y, x = divmod(rest, px)
            im_offset = (x - bx) + (y - by) * nx + (z - bz) * nx * ny

        tmp = nodes[owner]
        while True:
            if not hits_border and tmp.ori_h <= min_value:
                break
            tmp.contour_length += 1
            if save_pixels:
                tmp.pixels_border.append(im_offset)
            if tmp.father == tmp.index:
                break
            tmp = nodes[tmp.father]


def compute_border_gradient(tree: ComponentTree) -> None:
    """Mean morphological gradient over each node's contour pixels."""
    gradient = morphological_gradient(tree.image, tree.connectivity).ravel()
    for n in tree.nodes:
        if n.pixels_border:
            n.mean_gradient_border = float(gradient[np.asarray(n.pixels_border)].mean())
        else:
            n.mean_gradient_border = 0.0


def compute_complexity_compacity(tree: ComponentTree) -> None:
    """
    complexity = 1000 * contour / area, compacity = 1000 * 4 pi area / contour^2,
    truncated to int; 0 when the denominator is 0.
    """
    for n in tree.nodes:
        n.complexity = int(1000.0 * n.contour_length / n.area) if n.area else 0
        if n.contour_length:
            n.compacity = int(4 * math.pi * n.area / (n.contour_length * n.contour_length) * 1000)
        else:
            n.compacity = 0
