"""Default settings and YAML config loading for NDVI runs."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

import yaml

from .exceptions import ConfigError

# Class edges used by ``classify_ndvi``: water / bare / low / moderate / high
DEFAULT_NDVI_BINS = (0.0, 0.1, 0.25, 0.4)

# Landsat 8 band order (B1..B7): red is band 4, near-infrared is band 5
DEFAULT_RED_INDEX = 3
DEFAULT_NIR_INDEX = 4

PIPELINE_CONFIG: Dict[str, Any] = {
    "input_dir": None,
    "pattern": "*band*.tif",
    "red_index": DEFAULT_RED_INDEX,
    "nir_index": DEFAULT_NIR_INDEX,
    "output_dir": "outputs",
    "write_stack": True,
    "plots": True,
    "ndvi_bins": list(DEFAULT_NDVI_BINS),
    "band_names": None,
    "download": None,
    "log_level": "INFO",
}

DOWNLOAD_KEYS = {"url", "dest_dir", "name", "force"}

LOGGING_CONFIG: Dict[str, Any] = {
    "level": "INFO",
    "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


def merge_config(overrides: Dict[str, Any] | None) -> Dict[str, Any]:
    """Return ``PIPELINE_CONFIG`` updated with ``overrides`` after validation."""
    cfg = copy.deepcopy(PIPELINE_CONFIG)
    overrides = overrides or {}
    if not isinstance(overrides, dict):
        raise ConfigError("Config must be a mapping of keys to values")

    unknown = set(overrides) - set(PIPELINE_CONFIG)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    cfg.update(overrides)

    download = cfg.get("download")
    if download is not None:
        if not isinstance(download, dict):
            raise ConfigError("'download' must be a mapping")
        bad = set(download) - DOWNLOAD_KEYS
        if bad:
            raise ConfigError(f"Unknown download keys: {', '.join(sorted(bad))}")

    if cfg["input_dir"] is None and download is None:
        raise ConfigError("Config must set 'input_dir' or a 'download' section")

    for key in ("red_index", "nir_index"):
        if isinstance(cfg[key], bool) or not isinstance(cfg[key], int) or cfg[key] < 0:
            raise ConfigError(f"'{key}' must be a non-negative integer")
    if cfg["red_index"] == cfg["nir_index"]:
        raise ConfigError("'red_index' and 'nir_index' must differ")

    return cfg


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load a YAML run configuration merged over the defaults."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return merge_config(raw)
