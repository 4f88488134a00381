"""Vegetation index routines for stacked or single-band raster arrays."""

from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np

from .config import DEFAULT_NDVI_BINS
from .exceptions import BandShapeError
from .logging_config import get_module_logger

logger = get_module_logger(__name__)


def _as_float(band) -> np.ndarray:
    if isinstance(band, np.ma.MaskedArray):
        return band.astype(np.float64).filled(np.nan)
    return np.asarray(band, dtype=np.float64)


def normalized_difference(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Return ``(a - b) / (a + b)`` per pixel.

    Pixels where ``a + b == 0`` are NaN, and NaN inputs stay NaN.
    """
    a = _as_float(a)
    b = _as_float(b)
    if a.shape != b.shape:
        raise BandShapeError(f"Band shapes differ: {a.shape} vs {b.shape}")

    denominator = a + b
    with np.errstate(divide="ignore", invalid="ignore"):
        result = np.where(denominator == 0, np.nan, (a - b) / denominator)
    return result


def compute_ndvi(red: np.ndarray, nir: np.ndarray) -> np.ndarray:
    """Compute the Normalized Difference Vegetation Index (NDVI)."""
    ndvi = normalized_difference(nir, red)
    if ndvi.size and np.isnan(ndvi).all():
        logger.warning("NDVI has no valid pixels")
    return ndvi


def ndvi_from_stack(stack: np.ndarray, red_idx: int, nir_idx: int) -> np.ndarray:
    """Compute NDVI from a ``(bands, rows, cols)`` stack.

    Parameters
    ----------
    stack : numpy.ndarray
        Band stack as returned by :func:`satndvi.data_loader.stack_bands`.
    red_idx, nir_idx : int
        Zero-based positions of the red and near-infrared bands.
    """
    if stack.ndim != 3:
        raise ValueError(f"Expected a (bands, rows, cols) stack, got {stack.ndim} dimensions")
    count = stack.shape[0]
    for name, idx in (("red", red_idx), ("nir", nir_idx)):
        if not 0 <= idx < count:
            raise IndexError(f"{name} band index {idx} out of range for {count} bands")
    logger.debug(f"NDVI from stack bands red={red_idx} nir={nir_idx}")
    return compute_ndvi(stack[red_idx], stack[nir_idx])


def classify_ndvi(ndvi: np.ndarray, bins: Sequence[float] = DEFAULT_NDVI_BINS) -> np.ndarray:
    """Bin NDVI values into classes ``1..len(bins) + 1``; NaN pixels are 0."""
    edges = np.asarray(bins, dtype=np.float64)
    if edges.ndim != 1 or edges.size == 0:
        raise ValueError("bins must be a non-empty sequence")
    if np.any(np.diff(edges) <= 0):
        raise ValueError("bins must be strictly increasing")

    ndvi = _as_float(ndvi)
    valid = ~np.isnan(ndvi)
    classes = np.zeros(ndvi.shape, dtype=np.uint8)
    classes[valid] = np.digitize(ndvi[valid], edges) + 1
    return classes


def ndvi_summary(ndvi: np.ndarray) -> Dict[str, Optional[float]]:
    """Summary statistics over the valid (non-NaN) NDVI pixels."""
    ndvi = _as_float(ndvi)
    valid = ndvi[~np.isnan(ndvi)]
    summary: Dict[str, Optional[float]] = {
        "valid_pixels": int(valid.size),
        "total_pixels": int(ndvi.size),
    }
    if valid.size == 0:
        summary.update(min=None, max=None, mean=None, std=None)
        return summary
    summary.update(
        min=float(valid.min()),
        max=float(valid.max()),
        mean=float(valid.mean()),
        std=float(valid.std()),
    )
    return summary
