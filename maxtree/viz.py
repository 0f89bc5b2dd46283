"""
Diagnostic figures: before/after comparison, attribute histogram, save_figure.

Volumes are shown through their middle z-slice.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import numpy as np
import matplotlib
matplotlib.use("Agg")   # headless
import matplotlib.pyplot as plt


def save_figure(
    fig: plt.Figure,
    name: str,
    outdir: str | Path,
    formats: Sequence[str] = ("png",),
    dpi: int = 150,
) -> List[Path]:
    """
    Save a matplotlib Figure to one or more formats.

    Parameters
    ----------
    fig : Figure
    name : str
        Base filename without extension.
    outdir : str or Path
        Output directory (created if needed).
    formats : sequence of str
    dpi : int
        Resolution for raster formats.

    Returns
    -------
    list of Path
    """
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    saved = []
    for fmt in formats:
        p = outdir / f"{name}.{fmt}"
        fig.savefig(str(p), dpi=dpi, bbox_inches="tight")
        saved.append(p)
    return saved


def _display_slice(image: np.ndarray) -> np.ndarray:
    image = np.asarray(image)
    if image.ndim == 3:
        image = image[image.shape[0] // 2]
    elif image.ndim == 1:
        image = image[np.newaxis, :]
    return image


def plot_filter_result(
    original: np.ndarray,
    filtered: np.ndarray,
    outdir: str | Path,
    name: str = "filter_result",
    title: str = "",
    formats: Sequence[str] = ("png",),
    dpi: int = 150,
) -> plt.Figure:
    """
    Side-by-side original / filtered / removed (original - filtered).

    Both panels share the original's grey range so removed structures show
    as dark spots.
    """
    a = _display_slice(original).astype(np.float64)
    b = _display_slice(filtered).astype(np.float64)
    vmin, vmax = float(a.min()), float(a.max())

    fig, axes = plt.subplots(1, 3, figsize=(13, 4.5))
    panels = [(a, "Original", "gray"), (b, "Filtered", "gray"), (a - b, "Removed", "magma")]
    for ax, (img, label, cmap) in zip(axes, panels):
        if cmap == "gray":
            ax.imshow(img, cmap=cmap, vmin=vmin, vmax=vmax, interpolation="nearest")
        else:
            ax.imshow(img, cmap=cmap, interpolation="nearest")
        ax.set_title(label, fontsize=10)
        ax.set_xticks([])
        ax.set_yticks([])

    if title:
        fig.suptitle(title, fontsize=11)
    fig.tight_layout()
    save_figure(fig, name, outdir, formats=formats, dpi=dpi)
    return fig


def plot_attribute_histogram(
    values: Sequence[float],
    attribute: str,
    outdir: str | Path,
    name: str = "attribute_histogram",
    tmin: float | None = None,
    tmax: float | None = None,
    log_scale: bool = True,
    formats: Sequence[str] = ("png",),
    dpi: int = 150,
) -> plt.Figure:
    """
    Histogram of one node attribute, with optional filter bounds.

    Non-finite values (undefined ratios) are counted in the title but not
    binned.
    """
    values = np.asarray(values, dtype=np.float64)
    finite = values[np.isfinite(values)]
    n_undefined = len(values) - len(finite)

    fig, ax = plt.subplots(figsize=(7, 4))
    if len(finite) > 0:
        ax.hist(finite, bins=50, color="steelblue", edgecolor="white", linewidth=0.5)
        if log_scale:
            ax.set_yscale("log")
        for bound, label in ((tmin, "tmin"), (tmax, "tmax")):
            if bound is not None:
                ax.axvline(bound, color="#e74c3c", linestyle="--", linewidth=1.2,
                           label=f"{label} = {bound:g}")
        if tmin is not None or tmax is not None:
            ax.legend(fontsize=8, loc="upper right")

    ax.set_xlabel(attribute, fontsize=11)
    ax.set_ylabel("Nodes", fontsize=11)
    title = f"{attribute}: {len(values)} nodes"
    if n_undefined:
        title += f" ({n_undefined} undefined)"
    ax.set_title(title, fontsize=11)
    fig.tight_layout()
    save_figure(fig, name, outdir, formats=formats, dpi=dpi)
    return fig
