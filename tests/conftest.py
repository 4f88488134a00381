import logging

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
import rasterio
from rasterio.crs import CRS
from rasterio.transform import from_origin


def write_band(path, data, nodata=None, crs="EPSG:32613", transform=None):
    """Write ``data`` as a single-band GeoTIFF."""
    if transform is None:
        transform = from_origin(500000, 4100000, 30, 30)
    meta = {
        "driver": "GTiff",
        "height": data.shape[0],
        "width": data.shape[1],
        "count": 1,
        "dtype": str(data.dtype),
        "crs": CRS.from_string(crs),
        "transform": transform,
        "nodata": nodata,
    }
    with rasterio.open(path, "w", **meta) as dst:
        dst.write(data, 1)
    return path


@pytest.fixture
def band_dir(tmp_path):
    """Seven Landsat-like bands; band 4 is red and band 5 is NIR."""
    d = tmp_path / "landsat"
    d.mkdir()
    rng = np.random.default_rng(0)
    for i in range(1, 8):
        data = rng.integers(100, 3000, size=(6, 8)).astype("int16")
        if i == 4:
            data[:] = 1000
        if i == 5:
            data[:] = 3000
            data[0, 0] = -9999
        write_band(d / f"LC08_sr_band{i}.tif", data, nodata=-9999)
    return d


@pytest.fixture
def make_band():
    return write_band


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger("satndvi")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
