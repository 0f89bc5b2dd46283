"""
maxtree: max-tree (component tree) construction, attribute filtering and
reconstruction for greyscale images and volumes.

Quick start:
    from maxtree import build_tree, area_filter, construct_image
    from maxtree.io import read_image

    image = read_image("cells.tif")
    tree = build_tree(image)                     # default attributes, N8 / N26
    area_filter(tree, tmin=50)                   # drop components under 50 px
    filtered = construct_image(tree, "direct")
    # or: process one file end-to-end
    result = process_image("cells.tif", outdir="outputs/", cfg=TreeConfig(tmin=50))
"""

__version__ = "0.1.0"

from .attributes import (
    UNDEFINED,
    Attribute,
    ComputedAttributes,
    compute_attributes,
    get_attribute,
    required_for,
    with_prerequisites,
)
from .config import TreeConfig
from .connectivity import Connectivity
from .filtering import (
    area_filter,
    compacity_filter,
    complexity_filter,
    contrast_filter,
    mser_filter,
    otsu_filter,
    restore,
    set_false,
    threshold_filter,
    volume_filter,
)
from .flooding import build_tree, flood_tree
from .pipeline import export_attributes, filter_image, process_batch, process_image
from .reconstruct import (
    ConstructionDecision,
    construct_attribute_image,
    construct_image,
    construct_node,
    construct_node_direct,
)
from .tree import ComponentTree, Node

__all__ = [
    "UNDEFINED",
    "Attribute",
    "ComputedAttributes",
    "compute_attributes",
    "get_attribute",
    "required_for",
    "with_prerequisites",
    "TreeConfig",
    "Connectivity",
    "area_filter",
    "compacity_filter",
    "complexity_filter",
    "contrast_filter",
    "mser_filter",
    "otsu_filter",
    "restore",
    "set_false",
    "threshold_filter",
    "volume_filter",
    "build_tree",
    "flood_tree",
    "export_attributes",
    "filter_image",
    "process_batch",
    "process_image",
    "ConstructionDecision",
    "construct_attribute_image",
    "construct_image",
    "construct_node",
    "construct_node_direct",
    "ComponentTree",
    "Node",
    "__version__",
]
