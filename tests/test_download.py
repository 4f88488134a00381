import io
import tarfile
import zipfile

import pytest
import requests

from satndvi import download
from satndvi.download import download_file, download_sample_data
from satndvi.pipeline import main


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status
        self.headers = {"Content-Length": str(len(payload))}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"status {self.status}")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.payload), chunk_size):
            yield self.payload[i:i + chunk_size]


def _zip_bytes(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


@pytest.fixture
def fake_get(monkeypatch):
    calls = []

    def install(payloads):
        payloads = list(payloads)

        def _get(url, stream=True, timeout=None):
            calls.append(url)
            payload = payloads.pop(0)
            if isinstance(payload, Exception):
                raise payload
            return payload

        monkeypatch.setattr(download.requests, "get", _get)
        monkeypatch.setattr(download.time, "sleep", lambda s: None)
        return calls

    return install


def test_download_file(tmp_path, fake_get):
    fake_get([FakeResponse(b"x" * 10)])
    out = download_file("https://example.com/a.bin", tmp_path / "a.bin", chunk=3)
    assert out.read_bytes() == b"x" * 10
    assert not (tmp_path / "a.bin.part").exists()


def test_download_file_retries(tmp_path, fake_get):
    calls = fake_get([requests.ConnectionError("boom"), FakeResponse(b"ok")])
    out = download_file("https://example.com/a.bin", tmp_path / "a.bin")
    assert out.read_bytes() == b"ok"
    assert len(calls) == 2


def test_download_file_gives_up(tmp_path, fake_get):
    fake_get([FakeResponse(b"", status=500), FakeResponse(b"", status=500)])
    with pytest.raises(requests.HTTPError):
        download_file("https://example.com/a.bin", tmp_path / "a.bin", retries=2)
    assert not (tmp_path / "a.bin").exists()


def test_download_sample_data_zip(tmp_path, fake_get):
    payload = _zip_bytes({"landsat/band4.tif": b"r", "landsat/band5.tif": b"n"})
    fake_get([FakeResponse(payload)])
    target = download_sample_data("https://example.com/files/sample.zip", tmp_path)
    assert target == tmp_path / "sample"
    assert (target / "landsat" / "band5.tif").read_bytes() == b"n"
    assert not list(tmp_path.glob(".sample.zip*"))


def test_download_sample_data_tar(tmp_path, fake_get):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        info = tarfile.TarInfo("b4.tif")
        info.size = 1
        tar.addfile(info, io.BytesIO(b"r"))
    fake_get([FakeResponse(buf.getvalue())])
    target = download_sample_data("https://example.com/scene.tar.gz", tmp_path, name="scene")
    assert (target / "b4.tif").read_bytes() == b"r"


def test_download_sample_data_uses_cache(tmp_path, fake_get):
    cached = tmp_path / "sample"
    cached.mkdir()
    (cached / "band1.tif").write_bytes(b"old")
    calls = fake_get([])
    assert download_sample_data("https://example.com/sample.zip", tmp_path) == cached
    assert calls == []


def test_download_sample_data_force(tmp_path, fake_get):
    cached = tmp_path / "sample"
    cached.mkdir()
    (cached / "stale.tif").write_bytes(b"old")
    fake_get([FakeResponse(_zip_bytes({"fresh.tif": b"new"}))])
    target = download_sample_data("https://example.com/sample.zip", tmp_path, force=True)
    assert not (target / "stale.tif").exists()
    assert (target / "fresh.tif").read_bytes() == b"new"


def test_download_rejects_path_traversal(tmp_path, fake_get):
    fake_get([FakeResponse(_zip_bytes({"../evil.tif": b"x"}))])
    with pytest.raises(ValueError):
        download_sample_data("https://example.com/bad.zip", tmp_path / "data")
    assert not (tmp_path / "evil.tif").exists()


def test_default_sample_name(tmp_path, fake_get):
    fake_get([FakeResponse(_zip_bytes({"band1.tif": b"1"}))])
    target = download_sample_data(dest_dir=tmp_path)
    assert target.name == download.DEFAULT_SAMPLE_NAME


def test_download_rejects_tar_symlink_escape(tmp_path, fake_get):
    outside = tmp_path / "outside"
    outside.mkdir()
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        link = tarfile.TarInfo("link")
        link.type = tarfile.SYMTYPE
        link.linkname = str(outside)
        tar.addfile(link)
        info = tarfile.TarInfo("link/evil.tif")
        info.size = 1
        tar.addfile(info, io.BytesIO(b"x"))
    fake_get([FakeResponse(buf.getvalue())])
    with pytest.raises(ValueError):
        download_sample_data("https://example.com/bad.tar", tmp_path / "data")
    assert not (outside / "evil.tif").exists()
    assert not (tmp_path / "data" / "bad").exists()


def test_failed_extraction_is_not_cached(tmp_path, fake_get):
    good = _zip_bytes({"a.tif": b"A" * 64, "b.tif": b"B" * 64})
    broken = good.replace(b"B" * 64, b"X" * 64)
    fake_get([FakeResponse(broken), FakeResponse(good)])

    with pytest.raises(zipfile.BadZipFile):
        download_sample_data("https://example.com/sample.zip", tmp_path)
    assert not (tmp_path / "sample").exists()

    target = download_sample_data("https://example.com/sample.zip", tmp_path)
    assert (target / "b.tif").read_bytes() == b"B" * 64


def test_cli_download(tmp_path, fake_get, capsys):
    calls = fake_get([FakeResponse(_zip_bytes({"band1.tif": b"1"}))])
    code = main(["download", "--url", "https://example.com/sample.zip", "--output", str(tmp_path)])
    assert code == 0
    assert calls == ["https://example.com/sample.zip"]
    assert (tmp_path / "sample" / "band1.tif").read_bytes() == b"1"
    assert "Sample data in" in capsys.readouterr().out


def test_cli_download_reports_bad_archive(tmp_path, fake_get, capsys):
    fake_get([FakeResponse(_zip_bytes({"../evil.tif": b"x"}))])
    code = main(["download", "--url", "https://example.com/bad.zip", "--output", str(tmp_path / "data")])
    assert code == 1
    assert "escapes" in capsys.readouterr().err


def test_progress_bar_closed_when_stream_breaks(tmp_path, fake_get, monkeypatch):
    bars = []

    class RecordingBar:
        def __init__(self, **kwargs):
            self.closed = False
            bars.append(self)

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            self.closed = True
            return False

        def update(self, n):
            pass

    class BrokenResponse(FakeResponse):
        def iter_content(self, chunk_size=1):
            yield self.payload[:2]
            raise requests.ConnectionError("reset")

    monkeypatch.setattr(download, "tqdm", RecordingBar)
    fake_get([BrokenResponse(b"abcdef")])
    with pytest.raises(requests.ConnectionError):
        download_file("https://example.com/a.bin", tmp_path / "a.bin", retries=1)
    assert len(bars) == 1
    assert bars[0].closed
    assert not (tmp_path / "a.bin.part").exists()
