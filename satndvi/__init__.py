"""Satellite band stacking and NDVI utilities."""

from .analysis import classify_ndvi, compute_ndvi, ndvi_from_stack, ndvi_summary, normalized_difference
from .config import load_config
from .data_loader import list_band_files, load_band, raster_info, split_band_stack, stack_bands, write_raster
from .download import download_sample_data
from .exceptions import BandShapeError, ConfigError, SatNdviError
from .pipeline import run_from_config, run_pipeline

__version__ = "0.1.0"

__all__ = [
    "BandShapeError",
    "ConfigError",
    "SatNdviError",
    "classify_ndvi",
    "compute_ndvi",
    "download_sample_data",
    "list_band_files",
    "load_band",
    "load_config",
    "ndvi_from_stack",
    "ndvi_summary",
    "normalized_difference",
    "raster_info",
    "run_from_config",
    "run_pipeline",
    "split_band_stack",
    "stack_bands",
    "write_raster",
]
