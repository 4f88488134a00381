"""Matplotlib figures for band stacks and NDVI rasters."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .logging_config import get_module_logger

logger = get_module_logger(__name__)


def _stretch(x: np.ndarray, lower: float = 2, upper: float = 98) -> np.ndarray:
    valid = np.isfinite(x)
    if not np.any(valid):
        return np.zeros_like(x, dtype=np.float32)
    lo, hi = np.percentile(x[valid], [lower, upper])
    out = np.clip((x - lo) / (hi - lo + 1e-6), 0, 1)
    return np.where(valid, out, 0).astype(np.float32)


def plot_bands(
    stack: np.ndarray,
    titles: Optional[Sequence[str]] = None,
    cols: int = 3,
    cmap: str = "Greys_r",
    figsize: Optional[Tuple[float, float]] = None,
) -> plt.Figure:
    """Plot every band of a ``(bands, rows, cols)`` stack in a grid.

    Parameters
    ----------
    stack : numpy.ndarray
        A 3D stack, or a single 2D band.
    titles : sequence of str, optional
        One title per band. Defaults to ``Band 1``, ``Band 2``, ...
    cols : int
        Number of subplot columns.
    cmap : str
        Matplotlib colormap.
    figsize : tuple, optional
        Figure size; scales with the grid by default.
    """
    if stack.ndim == 2:
        stack = stack[np.newaxis, ...]
    if stack.ndim != 3:
        raise ValueError(f"Expected a 2D band or 3D stack, got {stack.ndim} dimensions")
    count = stack.shape[0]
    if titles is None:
        titles = [f"Band {i}" for i in range(1, count + 1)]
    if len(titles) != count:
        raise ValueError(f"Got {len(titles)} titles for {count} bands")

    cols = max(1, min(cols, count))
    rows = math.ceil(count / cols)
    if figsize is None:
        figsize = (4 * cols, 4 * rows)
    fig, axes = plt.subplots(rows, cols, figsize=figsize, squeeze=False)

    for ax, band, title in zip(axes.flat, stack, titles):
        ax.imshow(np.ma.masked_invalid(band), cmap=cmap)
        ax.set_title(title)
        ax.set_axis_off()
    for ax in axes.flat[count:]:
        ax.set_visible(False)

    fig.tight_layout()
    return fig


def plot_rgb(
    stack: np.ndarray,
    rgb: Tuple[int, int, int] = (2, 1, 0),
    stretch: bool = True,
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = None,
) -> plt.Axes:
    """Show three bands of a stack as a colour composite.

    ``rgb`` holds zero-based band indexes for the red, green and blue
    channels. With ``stretch`` each channel is scaled to its 2-98
    percentile range; NaN pixels are drawn black.
    """
    if stack.ndim != 3:
        raise ValueError("plot_rgb needs a (bands, rows, cols) stack")
    for idx in rgb:
        if not 0 <= idx < stack.shape[0]:
            raise IndexError(f"Band index {idx} out of range for {stack.shape[0]} bands")

    channels = []
    for idx in rgb:
        band = stack[idx].astype(np.float32)
        if stretch:
            band = _stretch(band)
        else:
            band = np.clip(np.nan_to_num(band, nan=0.0), 0, 1)
        channels.append(band)
    img = np.dstack(channels)

    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))
    ax.imshow(img)
    ax.set_axis_off()
    if title:
        ax.set_title(title)
    return ax


def plot_ndvi(
    ndvi: np.ndarray,
    title: str = "NDVI",
    cmap: str = "RdYlGn",
    ax: Optional[plt.Axes] = None,
) -> plt.Axes:
    """Plot NDVI on a fixed -1..1 colour scale with a colorbar."""
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 6))
    im = ax.imshow(np.ma.masked_invalid(ndvi), cmap=cmap, vmin=-1, vmax=1)
    ax.figure.colorbar(im, ax=ax, label="NDVI")
    ax.set_title(title)
    ax.set_axis_off()
    return ax


def save_figure(fig: plt.Figure, path: str | Path, dpi: int = 150) -> Path:
    """Save ``fig`` to ``path`` and close it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved plot to {path}")
    return path
