"""
CLI entry points for maxtree.

Installed via ``pip install maxtree``:
    maxtree        filter images / volumes by a node attribute threshold
    maxtree-attrs  export the node attribute table of one image
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path


# ======================================================================= #
# Shared argument helpers
# ======================================================================= #

def _add_tree_args(parser: argparse.ArgumentParser) -> None:
    """Add tree-construction arguments shared by both commands."""
    parser.add_argument("--outdir", "-o", type=str, required=True,
                        help="Output directory")
    parser.add_argument("--connectivity", "-c", type=str, default="auto",
                        choices=["auto", "n4", "n8", "n6", "n18", "n26"],
                        help="Pixel adjacency (auto = n8 for 2-D, n26 for 3-D)")
    parser.add_argument("--delta", type=float, default=1.0,
                        help="MSER grey-level window")
    parser.add_argument("--radius", type=int, default=None,
                        help="Neighbourhood ball radius (default: delta)")
    parser.add_argument("--attributes", "-a", type=str, nargs="+", default=None,
                        help="Attribute families to compute, prerequisites included (e.g. area volume)")
    parser.add_argument("--dpi", type=int, default=150,
                        help="Figure DPI")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress progress output")


def _cfg_from_args(args: argparse.Namespace, parser: argparse.ArgumentParser, **overrides):
    """Build a TreeConfig from parsed CLI arguments."""
    from maxtree import TreeConfig

    kwargs = dict(
        connectivity=args.connectivity,
        delta=args.delta,
        neighborhood_radius=args.radius,
        attributes=tuple(args.attributes) if args.attributes else None,
        figure_dpi=args.dpi,
    )
    kwargs.update(overrides)
    try:
        return TreeConfig(**kwargs)
    except ValueError as exc:
        parser.error(str(exc))


def _gather_inputs(inputs) -> list:
    from maxtree.io import list_images

    paths = []
    for ip in (Path(p) for p in inputs):
        if ip.is_dir():
            paths.extend(list_images(ip))
        elif ip.is_file():
            paths.append(ip)
        else:
            print(f"ERROR: Input not found: {ip}", file=sys.stderr)
            sys.exit(1)
    if not paths:
        print("ERROR: No images found in input path(s)", file=sys.stderr)
        sys.exit(1)
    return sorted(set(paths))


# ======================================================================= #
# maxtree: attribute filtering
# ======================================================================= #

def filter_main(argv=None):
    """Entry point for ``maxtree`` command."""
    p = argparse.ArgumentParser(
        prog="maxtree",
        description="Max-tree attribute filtering of greyscale images and volumes",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--input", "-i", type=str, nargs="+", required=True,
                   help="Image file(s) or directories (.tif, .mrc, .npy)")
    _add_tree_args(p)
    p.add_argument("--filter", "-f", dest="filter_attribute", type=str, default="area",
                   help="Attribute to threshold (area, volume, contrast, mser, otsu, ...)")
    p.add_argument("--tmin", type=float, default=None,
                   help="Keep nodes with attribute >= tmin")
    p.add_argument("--tmax", type=float, default=None,
                   help="Keep nodes with attribute <= tmax")
    p.add_argument("--rule", "-r", type=str, default="direct",
                   choices=["min", "max", "direct"],
                   help="Reconstruction rule")
    p.add_argument("--csv", action="store_true",
                   help="Also write the node attribute table per image")
    p.add_argument("--figure", action="store_true",
                   help="Write a before/after comparison figure per image")
    args = p.parse_args(argv)

    cfg = _cfg_from_args(
        args, p,
        filter_attribute=args.filter_attribute,
        tmin=args.tmin,
        tmax=args.tmax,
        rule=args.rule,
        write_csv=args.csv,
        write_figure=args.figure,
    )

    from maxtree import process_batch

    paths = _gather_inputs(args.input)
    outdir = Path(args.outdir)

    verbose = not args.quiet
    if verbose:
        lo = "-inf" if args.tmin is None else f"{args.tmin:g}"
        hi = "inf" if args.tmax is None else f"{args.tmax:g}"
        print(f"maxtree  |  {args.filter_attribute} in [{lo}, {hi}]"
              f"  rule={args.rule}  connectivity={args.connectivity}")
        print(f"  Output: {outdir}")

    results = process_batch(paths, outdir, cfg=cfg, verbose=verbose)

    total = sum(r["n_deactivated"] for r in results)
    print(f"\nNodes removed: {total}")
    return 0


# ======================================================================= #
# maxtree-attrs: node attribute export
# ======================================================================= #

def attrs_main(argv=None):
    """Entry point for ``maxtree-attrs`` command."""
    p = argparse.ArgumentParser(
        prog="maxtree-attrs",
        description="Export max-tree node attributes of one image to CSV",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--input", "-i", type=str, required=True,
                   help="Image file (.tif, .mrc, .npy)")
    _add_tree_args(p)
    p.add_argument("--histogram", type=str, default=None,
                   help="Also plot a histogram of this attribute")
    args = p.parse_args(argv)

    if args.attributes is None:
        args.attributes = ["default"]
    cfg = _cfg_from_args(args, p)

    from maxtree import export_attributes

    image_path = Path(args.input)
    if not image_path.is_file():
        print(f"ERROR: Input not found: {image_path}", file=sys.stderr)
        sys.exit(1)

    try:
        result = export_attributes(
            image_path, Path(args.outdir), cfg=cfg,
            histogram_attribute=args.histogram,
            verbose=not args.quiet,
        )
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"\n{result['n_nodes']} nodes -> {result['nodes_csv']}")
    return 0


if __name__ == "__main__":
    sys.exit(filter_main())
