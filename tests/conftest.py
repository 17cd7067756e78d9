import json
import subprocess
import threading
from pathlib import Path

import pytest

from streaming import StreamingConfig
from streaming import probe as probe_module


def make_probe_data(
    *,
    width: int = 1920,
    height: int = 1080,
    duration: float = 30.0,
    audio: bool = True,
    rate: str = "30/1",
    bit_rate: str | None = "4500000",
) -> dict:
    streams = [
        {"index": 0, "codec_type": "video", "width": width, "height": height, "r_frame_rate": rate},
    ]
    if audio:
        streams.append({"index": 1, "codec_type": "audio", "sample_rate": "48000"})
    fmt = {"duration": str(duration)}
    if bit_rate is not None:
        fmt["bit_rate"] = bit_rate
    return {"streams": streams, "format": fmt}


class FakeStore:
    """In-memory object store; `fail_on` holds filenames whose put raises."""

    def __init__(self, sources=None, fail_on=()):
        self.sources = dict(sources or {})
        self.fail_on = set(fail_on)
        self.puts: list[tuple[str, str]] = []
        self.fetches: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, location, dest: Path) -> Path:
        self.fetches.append(location)
        if location not in self.sources:
            raise FileNotFoundError(location)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.sources[location])
        return dest

    def put(self, local_path, key, content_type):
        assert Path(local_path).is_file(), local_path
        if Path(key).name in self.fail_on:
            raise ConnectionError(f"refused {key}")
        with self._lock:
            self.puts.append((key, content_type))
        return f"https://cdn.example.com/{key}"


class FakeTracker:
    def __init__(self):
        self.calls: list[tuple] = []

    def set_processing(self, job_id):
        self.calls.append(("processing", job_id))

    def set_ready(self, job_id, result):
        self.calls.append(("ready", job_id, result))

    def set_failed(self, job_id, error=""):
        self.calls.append(("failed", job_id, error))

    @property
    def states(self):
        return [c[0] for c in self.calls]


class FakeTools:
    """
    Stands in for subprocess.run when the pipeline calls ffmpeg/ffprobe.
    Writes the files a real encoder would write.
    """

    def __init__(self, probe_data=None):
        self.commands: list[list[str]] = []
        self.cwds: list = []
        self.fail: set[str] = set()
        self.probe_data = probe_data or make_probe_data()
        self.stray_root: Path | None = None

    @staticmethod
    def kind(cmd) -> str:
        if "ffprobe" in Path(cmd[0]).name:
            return "ffprobe"
        if "-f" in cmd:
            return cmd[cmd.index("-f") + 1]
        if "-frames:v" in cmd:
            return "thumbnail"
        return "unknown"

    def commands_for(self, kind):
        return [c for c in self.commands if self.kind(c) == kind]

    def __call__(self, cmd, check=False, stdout=None, stderr=None, timeout=None, cwd=None, **kwargs):
        self.commands.append(list(cmd))
        self.cwds.append(cwd)
        kind = self.kind(cmd)
        if kind in self.fail:
            if check:
                raise subprocess.CalledProcessError(1, cmd, output=b"", stderr=b"encoder blew up")
            return subprocess.CompletedProcess(cmd, 1, b"", b"encoder blew up")

        if kind == "ffprobe":
            return subprocess.CompletedProcess(cmd, 0, json.dumps(self.probe_data).encode(), b"")

        out = Path(cmd[-1])
        if kind == "dash":
            out.write_text("<MPD/>")
            reps = ["0", "1"] if "0:a:0" in cmd else ["0"]
            for rep in reps:
                (out.parent / f"init_{rep}.mp4").write_bytes(b"init")
                for n in (1, 2):
                    (out.parent / f"segment_{rep}_{n}.m4s").write_bytes(b"seg")
            if self.stray_root is not None:
                (self.stray_root / "segment_0_3.m4s").write_bytes(b"stray")
        elif kind == "hls":
            out.write_text("#EXTM3U\n")
            (out.parent / "init.mp4").write_bytes(b"init")
            for n in (20261018120000, 20261018120001):
                (out.parent / f"hls_{n}.m4s").write_bytes(b"seg")
        elif kind == "thumbnail":
            out.write_bytes(b"\xff\xd8jpeg")
        return subprocess.CompletedProcess(cmd, 0, b"", b"")


@pytest.fixture
def fallback_root(tmp_path) -> Path:
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path, fallback_root) -> StreamingConfig:
    return StreamingConfig(
        ffmpeg_path="ffmpeg",
        ffprobe_path="ffprobe",
        bucket="test-bucket",
        delivery_domain="cdn.example.com",
        work_root=tmp_path / "work",
        fallback_root=fallback_root,
        upload_workers=4,
    )


@pytest.fixture
def tools(monkeypatch):
    fake = FakeTools()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def primary_probe(monkeypatch):
    """Controls what ffmpeg.probe (the primary probe path) returns."""
    state = {"data": make_probe_data(), "error": None}

    def fake_probe(filename, cmd="ffprobe", **kwargs):
        if state["error"] is not None:
            raise state["error"]
        return state["data"]

    monkeypatch.setattr(probe_module.ffmpeg, "probe", fake_probe)
    return state


@pytest.fixture
def tracker():
    return FakeTracker()
