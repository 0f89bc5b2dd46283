"""
I/O helpers: read images / volumes (TIFF / MRC / NPY), write filtered
images (TIFF / NPY) and node attribute tables (CSV).
"""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import numpy as np


IMAGE_EXTENSIONS = (".tif", ".tiff", ".mrc", ".mrcs", ".npy")


# --------------------------------------------------------------------------- #
# Reading
# --------------------------------------------------------------------------- #

def read_image(path: str | Path) -> np.ndarray:
    """
    Load a 2-D image or 3-D volume, keeping its sample type.

    Supports:
      - TIFF           (.tif, .tiff)  pages are stacked along z
      - MRC / MRC2014  (.mrc, .mrcs)
      - NumPy          (.npy)

    Returns array with shape (ny, nx) or (nz, ny, nx).
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in {".tif", ".tiff"}:
        data = _read_tiff(path)
    elif suffix in {".mrc", ".mrcs"}:
        data = _read_mrc(path)
    elif suffix == ".npy":
        data = np.load(str(path), allow_pickle=False)
    else:
        raise ValueError(f"Unsupported file format: {suffix!r}. Use .tif/.tiff, .mrc or .npy")

    if data.ndim == 3 and data.shape[0] == 1:
        data = data[0]
    if data.ndim not in (2, 3):
        raise ValueError(f"Expected a 2-D image or 3-D volume, got shape {data.shape}")
    return data


def _read_tiff(path: Path) -> np.ndarray:
    try:
        import tifffile
    except ImportError:
        raise ImportError("tifffile is required to read TIFF files: pip install tifffile")

    with tifffile.TiffFile(str(path)) as tif:
        series = tif.series[0]
        data = series.asarray()
        axes = series.axes
    if axes.endswith("S") and data.ndim == 3:
        # stored as RGB(A) samples: average the colour channels
        data = data[..., :3].mean(axis=2)
    return data


def _read_mrc(path: Path) -> np.ndarray:
    try:
        import mrcfile
    except ImportError:
        raise ImportError("mrcfile is required to read MRC files: pip install mrcfile")

    with mrcfile.open(str(path), mode="r", permissive=True) as mrc:
        data = np.array(mrc.data)
    return data


# --------------------------------------------------------------------------- #
# Writing: images
# --------------------------------------------------------------------------- #

def write_image(image: np.ndarray, path: str | Path) -> Path:
    """Write ``image`` as TIFF (.tif/.tiff) or NumPy (.npy)."""
    path = Path(path)
    suffix = path.suffix.lower()
    path.parent.mkdir(parents=True, exist_ok=True)

    if suffix in {".tif", ".tiff"}:
        try:
            import tifffile
        except ImportError:
            raise ImportError("tifffile is required to write TIFF files: pip install tifffile")
        tifffile.imwrite(str(path), np.asarray(image), photometric="minisblack")
    elif suffix == ".npy":
        np.save(str(path), np.asarray(image))
    else:
        raise ValueError(f"Unsupported output format: {suffix!r}. Use .tif/.tiff or .npy")
    return path


# --------------------------------------------------------------------------- #
# Writing: CSV
# --------------------------------------------------------------------------- #

NODE_CSV_FIELDS = ["node", "father", "level", "n_children", "active"]

_INT_FIELDS = {"node", "father", "n_children", "sub_nodes", "contour_length",
               "complexity", "compacity"}


def write_node_csv(
    rows: List[dict],
    path: str | Path,
    attributes: Optional[Iterable] = None,
) -> None:
    """
    Write a node table (see ``ComponentTree.node_table``) to CSV.

    Columns are ``NODE_CSV_FIELDS`` followed by ``attributes`` (names or
    ``Attribute`` members); when omitted, the remaining keys of the first
    row are used.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if attributes is None:
        extra = [k for k in (rows[0] if rows else {}) if k not in NODE_CSV_FIELDS]
    else:
        extra = [getattr(a, "value", a) for a in attributes]
    fields = NODE_CSV_FIELDS + extra
    with open(path, "w", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=fields)
        writer.writeheader()
        for r in rows:
            writer.writerow({k: r.get(k, "") for k in fields})


def read_node_csv(path: str | Path) -> List[dict]:
    """Read a node table CSV back into a list of dicts."""
    path = Path(path)
    rows = []
    with open(path, newline="") as fh:
        reader = csv.DictReader(fh)
        for row in reader:
            parsed: Dict[str, object] = {}
            for key, value in row.items():
                if key == "active":
                    parsed[key] = value == "True"
                elif key in _INT_FIELDS:
                    parsed[key] = int(float(value))
                else:
                    parsed[key] = float(value)
            rows.append(parsed)
    return rows


SUMMARY_CSV_FIELDS = [
    "image", "shape", "n_nodes", "n_active", "n_deactivated",
    "attribute", "tmin", "tmax", "rule",
    "t_build", "t_filter", "t_reconstruct", "t_total",
]


def write_summary_csv(results: List[dict], path: str | Path) -> None:
    """One row per processed image (see ``pipeline.process_batch``)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=SUMMARY_CSV_FIELDS)
        writer.writeheader()
        for r in results:
            row = {k: r.get(k, "") for k in SUMMARY_CSV_FIELDS}
            timings = r.get("timings", {})
            for k in ("t_build", "t_filter", "t_reconstruct", "t_total"):
                if k in timings:
                    row[k] = f"{timings[k]:.4f}"
            if "shape" in r:
                row["shape"] = "x".join(str(s) for s in r["shape"])
            writer.writerow(row)


# --------------------------------------------------------------------------- #
# Utility
# --------------------------------------------------------------------------- #

def list_images(directory: str | Path, extensions=IMAGE_EXTENSIONS) -> List[Path]:
    """Return sorted list of image paths in a directory."""
    directory = Path(directory)
    paths = []
    for ext in extensions:
        paths.extend(directory.glob(f"*{ext}"))
    return sorted(set(paths))
