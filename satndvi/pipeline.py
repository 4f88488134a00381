"""NDVI workflows and the ``satndvi`` command line."""

from __future__ import annotations

import argparse
import json
import shutil
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import numpy as np

from . import analysis, data_loader, plotting
from .config import load_config
from .download import DEFAULT_SAMPLE_URL, download_sample_data
from .exceptions import SatNdviError
from .logging_config import get_module_logger, setup_logging

logger = get_module_logger(__name__)

# Colours for classify_ndvi classes 1..5 (water .. high vegetation)
CLASS_COLORMAP = {
    1: {
        0: (0, 0, 0, 0),
        1: (70, 130, 180, 255),
        2: (210, 180, 140, 255),
        3: (255, 255, 150, 255),
        4: (130, 200, 90, 255),
        5: (20, 110, 40, 255),
    }
}


def _ndvi_meta(meta: Dict[str, Any]) -> Dict[str, Any]:
    meta = dict(meta)
    meta.update(count=1, dtype="float32", nodata=np.nan)
    return meta


def run_pipeline(
    red_path: str | Path,
    nir_path: str | Path,
    out_path: str | Path,
    plot_path: Optional[str | Path] = None,
) -> np.ndarray:
    """Compute NDVI from a red and a near-infrared GeoTIFF and write it to ``out_path``."""
    red, meta = data_loader.load_band(red_path)
    nir, nir_meta = data_loader.load_band(nir_path)
    data_loader.check_same_grid(meta, nir_meta, Path(nir_path))
    ndvi = analysis.compute_ndvi(red, nir).astype("float32")
    data_loader.write_raster(out_path, ndvi, _ndvi_meta(meta))

    if plot_path is not None:
        ax = plotting.plot_ndvi(ndvi)
        plotting.save_figure(ax.figure, plot_path)
    return ndvi


def run_from_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Run download, stacking, NDVI, classification and plotting from a config.

    ``cfg`` is the dict returned by :func:`satndvi.config.load_config`.
    Returns the written paths and the NDVI summary.
    """
    download = cfg.get("download")
    if download is not None:
        input_dir = download_sample_data(
            url=download.get("url", DEFAULT_SAMPLE_URL),
            dest_dir=download.get("dest_dir", "data"),
            name=download.get("name"),
            force=download.get("force", False),
        )
        if cfg.get("input_dir"):
            input_dir = input_dir / cfg["input_dir"]
    else:
        input_dir = Path(cfg["input_dir"])

    output_dir = Path(cfg["output_dir"])
    output_dir.mkdir(parents=True, exist_ok=True)
    results: Dict[str, Any] = {}

    band_paths = data_loader.list_band_files(input_dir, cfg["pattern"])
    stack_path = output_dir / "stack.tif" if cfg["write_stack"] else None
    stack, meta = data_loader.stack_bands(band_paths, out_path=stack_path)
    logger.info(f"Stack info: {data_loader.raster_info(meta)}")
    if stack_path is not None:
        results["stack"] = stack_path

    ndvi = analysis.ndvi_from_stack(stack, cfg["red_index"], cfg["nir_index"]).astype("float32")
    results["ndvi"] = data_loader.write_raster(output_dir / "ndvi.tif", ndvi, _ndvi_meta(meta))

    classes = analysis.classify_ndvi(ndvi, cfg["ndvi_bins"])
    class_meta = dict(meta, count=1, dtype="uint8", nodata=0)
    results["classes"] = data_loader.write_raster(
        output_dir / "ndvi_classes.tif", classes, class_meta, colormap=CLASS_COLORMAP
    )

    summary = analysis.ndvi_summary(ndvi)
    summary_path = output_dir / "ndvi_summary.json"
    with open(summary_path, "w") as f:
        json.dump(summary, f, indent=2)
    results["summary"] = summary
    results["summary_path"] = summary_path

    if cfg["plots"]:
        titles = cfg.get("band_names") or [p.stem for p in band_paths]
        results["bands_plot"] = plotting.save_figure(
            plotting.plot_bands(stack, titles=titles), output_dir / "bands.png"
        )
        ax = plotting.plot_ndvi(ndvi)
        results["ndvi_plot"] = plotting.save_figure(ax.figure, output_dir / "ndvi.png")

    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="satndvi", description="NDVI from satellite GeoTIFF bands")
    parser.add_argument("--log-level", default=None, help="Logging level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_ndvi = sub.add_parser("ndvi", help="Compute NDVI from red and NIR band files")
    p_ndvi.add_argument("red", help="Path to red band raster")
    p_ndvi.add_argument("nir", help="Path to near-infrared band raster")
    p_ndvi.add_argument("output", help="Output path for NDVI result")
    p_ndvi.add_argument("--plot", help="Optional PNG path for an NDVI figure")

    p_run = sub.add_parser("run", help="Run the full workflow from a YAML config")
    p_run.add_argument("--config", required=True, help="YAML config file")

    p_dl = sub.add_parser("download", help="Download and unpack a sample dataset")
    p_dl.add_argument("--url", default=DEFAULT_SAMPLE_URL, help="Archive URL")
    p_dl.add_argument("--output", default="data", help="Destination directory")
    p_dl.add_argument("--name", help="Folder name for the dataset")
    p_dl.add_argument("--force", action="store_true", help="Download even if cached")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "run":
            cfg = load_config(args.config)
            setup_logging(args.log_level or cfg["log_level"])
            results = run_from_config(cfg)
            cfg_copy = Path(cfg["output_dir"]) / Path(args.config).name
            if cfg_copy.resolve() != Path(args.config).resolve():
                shutil.copy(args.config, cfg_copy)
            print(f"Saved NDVI to {results['ndvi']}")
        elif args.command == "ndvi":
            setup_logging(args.log_level)
            run_pipeline(args.red, args.nir, args.output, plot_path=args.plot)
            print(f"Saved NDVI to {args.output}")
        else:
            setup_logging(args.log_level)
            out = download_sample_data(args.url, args.output, name=args.name, force=args.force)
            print(f"Sample data in {out}")
    except (SatNdviError, FileNotFoundError, ValueError, IndexError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
