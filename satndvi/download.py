"""Download and unpack sample satellite datasets with local caching."""

from __future__ import annotations

import shutil
import tarfile
import time
import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm

from .logging_config import get_module_logger

logger = get_module_logger(__name__)

# Landsat 8 scene subset (bands 1-7) used by the earthpy vignettes
DEFAULT_SAMPLE_URL = "https://ndownloader.figshare.com/files/21856578"
DEFAULT_SAMPLE_NAME = "landsat-8-sample"

ARCHIVE_SUFFIXES = (".zip", ".tar", ".tar.gz", ".tgz")


def download_file(url: str, dst: str | Path, retries: int = 3, chunk: int = 1 << 20) -> Path:
    """Stream ``url`` to ``dst``.

    Data is written to ``<dst>.part`` first and renamed on success.
    Failed attempts are retried with a linear backoff; the last error is
    re-raised.
    """
    if retries < 1:
        raise ValueError("retries must be at least 1")
    dst = Path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    tmp = dst.with_suffix(dst.suffix + ".part")

    for attempt in range(retries):
        try:
            with requests.get(url, stream=True, timeout=120) as r:
                r.raise_for_status()
                total = int(r.headers.get("Content-Length", 0))
                with open(tmp, "wb") as f:
                    with tqdm(
                        total=total or None, unit="B", unit_scale=True,
                        desc=dst.name, leave=False
                    ) as pbar:
                        for part in r.iter_content(chunk_size=chunk):
                            if part:
                                f.write(part)
                                pbar.update(len(part))
            tmp.replace(dst)
            logger.info(f"Downloaded {url} -> {dst}")
            return dst
        except (requests.RequestException, OSError) as e:
            if tmp.exists():
                tmp.unlink()
            if attempt + 1 == retries:
                raise
            logger.warning(f"Download of {url} failed ({e}); retry {attempt + 1}/{retries - 1}")
            time.sleep(2 * (attempt + 1))
    return dst


def _archive_name(url: str) -> str:
    name = Path(urlparse(url).path).name
    return name or "download"


def _strip_archive_suffix(name: str) -> str:
    for suffix in ARCHIVE_SUFFIXES:
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return name


def _check_member(target: Path, member_name: str) -> None:
    dest = (target / member_name).resolve()
    if target.resolve() not in dest.parents and dest != target.resolve():
        raise ValueError(f"Archive member escapes extraction directory: {member_name}")


def _check_link(target: Path, member: tarfile.TarInfo) -> None:
    if member.issym():
        dest = (target / Path(member.name).parent / member.linkname).resolve()
    else:
        dest = (target / member.linkname).resolve()
    root = target.resolve()
    if root not in dest.parents and dest != root:
        raise ValueError(f"Archive link escapes extraction directory: {member.name} -> {member.linkname}")


def extract_archive(archive: Path, target: Path) -> Path:
    """Unpack a zip or tar archive into ``target``; other files are copied."""
    target.mkdir(parents=True, exist_ok=True)
    if zipfile.is_zipfile(archive):
        with zipfile.ZipFile(archive) as zf:
            for name in zf.namelist():
                _check_member(target, name)
            zf.extractall(target)
    elif tarfile.is_tarfile(archive):
        with tarfile.open(archive) as tar:
            for member in tar.getmembers():
                _check_member(target, member.name)
                if member.issym() or member.islnk():
                    _check_link(target, member)
            tar.extractall(path=target)
    else:
        shutil.copy(archive, target / archive.name.lstrip("."))
    return target


def download_sample_data(
    url: str = DEFAULT_SAMPLE_URL,
    dest_dir: str | Path = "data",
    name: Optional[str] = None,
    force: bool = False,
) -> Path:
    """Download a dataset archive and unpack it into ``dest_dir/<name>``.

    Parameters
    ----------
    url : str
        Location of a ``.zip``/``.tar`` archive or a single file.
    dest_dir : str or Path
        Parent directory for the dataset.
    name : str, optional
        Folder name; defaults to the archive name without its suffix.
    force : bool
        Download again even if the folder already has content.

    Returns
    -------
    Path
        Directory holding the extracted files.
    """
    dest_dir = Path(dest_dir)
    archive_name = _archive_name(url)
    if name is None:
        name = _strip_archive_suffix(archive_name)
        if url == DEFAULT_SAMPLE_URL:
            name = DEFAULT_SAMPLE_NAME
    target = dest_dir / name

    if target.is_dir() and any(target.iterdir()) and not force:
        logger.info(f"Using cached data in {target}")
        return target
    if target.exists() and force:
        shutil.rmtree(target)

    archive = download_file(url, dest_dir / f".{archive_name}")
    try:
        extract_archive(archive, target)
    except Exception:
        # never leave a partial dataset behind
        shutil.rmtree(target, ignore_errors=True)
        raise
    finally:
        archive.unlink()
    logger.info(f"Sample data ready in {target}")
    return target
