"""Reading, stacking and writing single-band GeoTIFF rasters."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import rasterio

from .exceptions import BandShapeError
from .logging_config import get_module_logger

logger = get_module_logger(__name__)


def list_band_files(directory: str | Path, pattern: str = "*.tif") -> List[Path]:
    """Return the files in ``directory`` matching ``pattern``, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Band directory not found: {directory}")
    paths = sorted(p for p in directory.glob(pattern) if p.is_file())
    if not paths:
        raise FileNotFoundError(f"No files matching '{pattern}' in {directory}")
    logger.info(f"Found {len(paths)} band files in {directory}")
    return paths


def _read_band(src, band: int) -> np.ndarray:
    data = src.read(band).astype("float32")
    if src.nodata is not None:
        if np.isnan(src.nodata):
            return data
        data[data == src.nodata] = np.nan
    return data


def load_band(path: str | Path, band: int = 1) -> Tuple[np.ndarray, Dict[str, Any]]:
    """Read one band as float32 with nodata pixels set to NaN.

    Parameters
    ----------
    path : str or Path
        GeoTIFF to read.
    band : int
        One-based band number.

    Returns
    -------
    tuple
        The band array and the rasterio ``meta`` of the file.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raster not found: {path}")
    with rasterio.open(path) as src:
        if not 1 <= band <= src.count:
            raise IndexError(f"Band {band} out of range for {path.name} ({src.count} bands)")
        data = _read_band(src, band)
        meta = src.meta.copy()
        if src.nodata is None:
            logger.warning(f"{path.name} has no nodata value; all pixels treated as valid")
    logger.info(f"Loaded {path.name} with shape {data.shape}")
    return data, meta


def check_same_grid(reference: Mapping[str, Any], meta: Mapping[str, Any], path: Path) -> None:
    """Raise ``BandShapeError`` unless ``meta`` has the grid of ``reference``."""
    ref_shape = (reference["height"], reference["width"])
    shape = (meta["height"], meta["width"])
    if shape != ref_shape:
        raise BandShapeError(f"{path.name} has shape {shape}, expected {ref_shape}")
    if meta.get("crs") != reference.get("crs"):
        raise BandShapeError(f"{path.name} has CRS {meta.get('crs')}, expected {reference.get('crs')}")
    ref_transform = reference.get("transform")
    transform = meta.get("transform")
    if ref_transform is not None and transform is not None and not np.allclose(
        tuple(transform)[:6], tuple(ref_transform)[:6]
    ):
        raise BandShapeError(f"{path.name} is not aligned with the first band")


def stack_bands(
    band_paths: Sequence[str | Path],
    out_path: Optional[str | Path] = None,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """Stack single-band rasters into one ``(bands, rows, cols)`` array.

    All bands must share shape, CRS and transform. If ``out_path`` is given
    the stack is also written there as a multi-band GeoTIFF.
    """
    band_paths = [Path(p) for p in band_paths]
    if not band_paths:
        raise ValueError("No band paths given to stack")

    arrays = []
    meta = None
    for path in band_paths:
        band, band_meta = load_band(path)
        if meta is None:
            meta = band_meta
        else:
            check_same_grid(meta, band_meta, path)
        arrays.append(band)
    stack = np.stack(arrays)
    meta.update(count=len(band_paths), dtype="float32", nodata=np.nan)

    if out_path is not None:
        write_raster(out_path, stack, meta)
    return stack, meta


def write_raster(
    path: str | Path,
    array: np.ndarray,
    meta: Mapping[str, Any],
    colormap: Optional[Mapping[int, Mapping[int, Tuple[int, int, int, int]]]] = None,
) -> Path:
    """Write a 2D band or 3D stack to disk using ``meta`` for georeferencing."""
    path = Path(path)
    if array.ndim == 2:
        array = array[np.newaxis, ...]
    if array.ndim != 3:
        raise ValueError(f"Expected a 2D or 3D array, got {array.ndim} dimensions")

    meta = dict(meta)
    meta.update(
        driver="GTiff",
        count=array.shape[0],
        height=array.shape[1],
        width=array.shape[2],
        dtype=str(array.dtype),
    )
    if meta.get("nodata") is not None and np.isnan(meta["nodata"]) and not np.issubdtype(array.dtype, np.floating):
        meta["nodata"] = None

    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **meta) as dst:
        dst.write(array)
        if colormap:
            for band, cmap in colormap.items():
                dst.write_colormap(band, dict(cmap))
    logger.info(f"Wrote {array.shape[0]} band(s) to {path}")
    return path


def split_band_stack(stack_path: str | Path, names: Iterable[str]) -> List[Path]:
    """Split a multi-band GeoTIFF into ``<name>.tif`` files beside it."""
    stack_path = Path(stack_path)
    names = list(names)
    outputs = []
    with rasterio.open(stack_path) as src:
        meta = src.meta.copy()
        if src.count < len(names):
            raise ValueError("Band stack has fewer layers than expected")
        meta.update(count=1)
        for i, name in enumerate(names, 1):
            out = stack_path.parent / f"{name}.tif"
            if out.resolve() == stack_path.resolve():
                raise ValueError(f"Band name '{name}' would overwrite {stack_path.name}")
            with rasterio.open(out, "w", **meta) as dst:
                dst.write(src.read(i), 1)
            outputs.append(out)
    return outputs


def raster_info(meta: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the spatial metadata of a raster in plain Python types."""
    crs = meta.get("crs")
    transform = meta.get("transform")
    res = (abs(transform.a), abs(transform.e)) if transform is not None else None
    return {
        "width": meta.get("width"),
        "height": meta.get("height"),
        "count": meta.get("count"),
        "crs": crs.to_string() if crs is not None and hasattr(crs, "to_string") else crs,
        "dtype": meta.get("dtype"),
        "res": res,
    }
