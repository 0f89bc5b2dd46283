"""
TreeConfig: all tunable parameters of a build / filter / reconstruct run.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from .attributes import ComputedAttributes, as_attribute, required_for, validate_selection
from .connectivity import Connectivity
from .reconstruct import ConstructionDecision


CONNECTIVITY_NAMES = ("auto", "n4", "n8", "n6", "n18", "n26")


@dataclass
class TreeConfig:
    # ------------------------------------------------------------------ #
    # Tree construction
    # ------------------------------------------------------------------ #
    connectivity: str = "auto"              # "auto" -> n8 (2-D) / n26 (3-D)
    neighborhood_radius: Optional[int] = None   # None -> delta
    delta: float = 1.0                      # MSER grey-level window

    # ------------------------------------------------------------------ #
    # Attribute families to compute.
    # None -> whatever the filter attribute needs.
    # Listed families must include their prerequisites (ValueError).
    # ------------------------------------------------------------------ #
    attributes: Optional[Tuple[str, ...]] = None

    # ------------------------------------------------------------------ #
    # Filtering: keep nodes with tmin <= attribute <= tmax
    # ------------------------------------------------------------------ #
    filter_attribute: str = "area"
    tmin: Optional[float] = None
    tmax: Optional[float] = None

    # ------------------------------------------------------------------ #
    # Reconstruction
    # ------------------------------------------------------------------ #
    rule: str = "direct"                    # "min", "max" or "direct"

    # ------------------------------------------------------------------ #
    # Output
    # ------------------------------------------------------------------ #
    write_image: bool = True
    write_csv: bool = False
    write_figure: bool = False
    figure_dpi: int = 150
    figure_formats: Tuple[str, ...] = ("png",)

    def __post_init__(self):
        self.connectivity = self.connectivity.lower()
        if self.connectivity not in CONNECTIVITY_NAMES:
            raise ValueError(
                f"connectivity must be one of {', '.join(CONNECTIVITY_NAMES)}"
            )
        if self.delta < 0:
            raise ValueError("delta must be >= 0")
        if self.neighborhood_radius is not None and self.neighborhood_radius < 0:
            raise ValueError("neighborhood_radius must be >= 0")
        # raises ValueError on unknown names
        as_attribute(self.filter_attribute)
        if self.attributes is not None:
            self.attributes = tuple(self.attributes)
            # named families must carry their own prerequisites
            validate_selection(ComputedAttributes.from_names(self.attributes))
        if self.tmin is not None and self.tmax is not None and self.tmin > self.tmax:
            raise ValueError("tmin must be <= tmax")
        self.rule = self.rule.lower()
        if self.rule not in [d.value for d in ConstructionDecision]:
            raise ValueError("rule must be 'min', 'max', or 'direct'")
        if self.figure_dpi <= 0:
            raise ValueError("figure_dpi must be > 0")

    @property
    def selection(self) -> ComputedAttributes:
        """Families to build with: the filter attribute's closure plus ``attributes``."""
        sel = required_for(self.filter_attribute)
        if self.attributes is not None:
            sel |= ComputedAttributes.from_names(self.attributes)
        return sel

    @property
    def decision(self) -> ConstructionDecision:
        return ConstructionDecision(self.rule)

    def connectivity_for(self, volume) -> Connectivity:
        """Resolve ``connectivity`` for a ``(nz, ny, nx)`` grid."""
        if self.connectivity == "auto":
            return Connectivity.default_for(volume)
        return Connectivity.from_name(self.connectivity)
