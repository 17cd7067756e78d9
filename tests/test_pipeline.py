import os
import time

import pytest
from PIL import Image

from streaming import (
    DownloadError,
    EncodeError,
    ProbeError,
    UploadError,
    run_image_pipeline,
    run_pipeline,
)
from streaming.upload import content_type_for

from .conftest import FakeStore, FakeTracker, make_probe_data

SOURCE = "uploads/abc.mp4"
AUDIO_FLAGS = {"0:a:0", "-c:a", "-b:a", "-ac", "-ar"}


@pytest.fixture
def store():
    return FakeStore(sources={SOURCE: b"fake mp4 bytes"})


def _run(job_id, config, store, tracker):
    return run_pipeline(
        job_id, SOURCE, config.job_dir(job_id), config=config, store=store, tracker=tracker
    )


def test_1080p_with_audio_is_published(config, store, tracker, tools, primary_probe):
    primary_probe["data"] = make_probe_data(width=1920, height=1080, duration=30.0, audio=True)

    result = _run("job-1", config, store, tracker)

    assert result.dash_url == "https://cdn.example.com/streaming/job-1/dash.mpd"
    assert result.hls_url == "https://cdn.example.com/streaming/job-1/hls.m3u8"
    assert result.thumbnail_url == "https://cdn.example.com/streaming/job-1/thumbnail.jpg"
    assert result.metadata.has_audio is True

    dash, = tools.commands_for("dash")
    hls, = tools.commands_for("hls")
    thumb, = tools.commands_for("thumbnail")
    for cmd in (dash, hls):
        assert cmd[cmd.index("-maxrate") + 1] == "5000K"
        assert AUDIO_FLAGS <= set(cmd)
    assert thumb[thumb.index("-ss") + 1] == "3.000"
    # DASH before HLS before thumbnail
    assert [tools.kind(c) for c in tools.commands] == ["dash", "hls", "thumbnail"]

    assert tracker.states == ["processing", "ready"]
    assert tracker.calls[-1][2] is result
    assert not config.job_dir("job-1").exists()


def test_every_artifact_uploaded_exactly_once(config, store, tracker, tools, primary_probe, fallback_root):
    tools.stray_root = fallback_root

    _run("job-2", config, store, tracker)

    keys = [k for k, _ in store.puts]
    assert len(keys) == len(set(keys))
    names = {k.rsplit("/", 1)[1] for k in keys}
    assert names == {
        "dash.mpd", "init_0.mp4", "init_1.mp4",
        "segment_0_1.m4s", "segment_0_2.m4s", "segment_1_1.m4s", "segment_1_2.m4s",
        "segment_0_3.m4s",
        "hls.m3u8", "init.mp4", "hls_20261018120000.m4s", "hls_20261018120001.m4s",
        "thumbnail.jpg",
    }
    assert "input.mp4" not in names
    for key, ctype in store.puts:
        assert key.startswith("streaming/job-2/")
        assert ctype == content_type_for(key)
    # stray encoder output in the working root is swept after upload
    assert list(fallback_root.iterdir()) == []


def test_480p_without_audio(config, store, tracker, tools, primary_probe):
    primary_probe["data"] = make_probe_data(width=854, height=480, duration=8.0, audio=False)

    result = _run("job-3", config, store, tracker)

    assert result.metadata.has_audio is False
    for cmd in tools.commands_for("dash") + tools.commands_for("hls"):
        assert not AUDIO_FLAGS & set(cmd)
        assert cmd[cmd.index("-maxrate") + 1] == "2000K"
    assert tracker.states == ["processing", "ready"]


def test_dash_encoder_failure(config, store, tracker, tools, primary_probe):
    tools.fail.add("dash")

    with pytest.raises(EncodeError):
        _run("job-4", config, store, tracker)

    assert store.puts == []
    assert tools.commands_for("hls") == []
    assert tracker.states == ["processing", "failed"]
    assert "DASH exited with code 1" in tracker.calls[-1][2]
    assert not config.job_dir("job-4").exists()


def test_single_upload_failure_fails_job(config, tracker, tools, primary_probe, monkeypatch):
    store = FakeStore(sources={SOURCE: b"x"}, fail_on={"segment_0_2.m4s"})
    cleanups = []

    import streaming.pipeline as pipeline_module

    def failing_cleanup(work_dir, fallback_root=None, since=None):
        cleanups.append(work_dir)
        return False

    monkeypatch.setattr(pipeline_module, "cleanup", failing_cleanup)

    with pytest.raises(UploadError) as exc:
        _run("job-5", config, store, tracker)

    assert exc.value.failed_keys == ["streaming/job-5/segment_0_2.m4s"]
    assert cleanups == [config.job_dir("job-5")]
    assert tracker.states == ["processing", "failed"]
    assert len([c for c in tracker.calls if c[0] == "failed"]) == 1


def test_download_failure(config, tracker, tools, primary_probe):
    store = FakeStore(sources={})

    with pytest.raises(DownloadError):
        _run("job-6", config, store, tracker)

    assert tools.commands == []
    assert tracker.states == ["processing", "failed"]


def test_probe_failure(config, store, tracker, tools, primary_probe):
    primary_probe["data"] = {"streams": [{"codec_type": "audio"}], "format": {"duration": "3"}}

    with pytest.raises(ProbeError):
        _run("job-7", config, store, tracker)

    assert tools.commands_for("dash") == []
    assert tracker.states == ["processing", "failed"]


def test_unexpected_error_still_marks_failed(config, store, tracker, tools, primary_probe, monkeypatch):
    import streaming.pipeline as pipeline_module

    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(pipeline_module, "discover", boom)

    with pytest.raises(RuntimeError):
        _run("job-8", config, store, tracker)

    assert tracker.states == ["processing", "failed"]
    assert "disk on fire" in tracker.calls[-1][2]


class _BrokenTracker(FakeTracker):
    def set_failed(self, job_id, error=""):
        super().set_failed(job_id, error)
        raise RuntimeError("db down")


def test_cleanup_runs_when_recording_failure_raises(config, store, tools, primary_probe, caplog):
    tracker = _BrokenTracker()
    tools.fail.add("dash")

    with pytest.raises(EncodeError):
        _run("job-9", config, store, tracker)

    assert tracker.states == ["processing", "failed"]
    assert not config.job_dir("job-9").exists()
    assert "Could not record failure of job job-9" in caplog.text


def test_jobs_sharing_a_fallback_root_keep_to_their_own_files(
    config, store, tracker, tools, primary_probe, fallback_root
):
    other = fallback_root / "segment_0_77.m4s"
    other.write_bytes(b"another job")
    an_hour_ago = time.time() - 3600
    os.utime(other, (an_hour_ago, an_hour_ago))

    _run("job-10", config, store, tracker)

    keys = [k for k, _ in store.puts]
    assert "streaming/job-10/segment_0_77.m4s" not in keys
    assert other.read_bytes() == b"another job"
    # encoder passes run inside the job's own directory
    assert tools.cwds[:2] == [config.job_dir("job-10")] * 2


def test_image_pipeline(config, tracker, tmp_path):
    src = tmp_path / "big.png"
    Image.new("RGB", (4000, 2000), (200, 10, 10)).save(src)
    store = FakeStore(sources={"uploads/pic.png": src.read_bytes()})

    result = run_image_pipeline(
        "img-1", "uploads/pic.png", config.job_dir("img-1"), config=config, store=store, tracker=tracker
    )

    assert result.thumbnail_url == "https://cdn.example.com/streaming/img-1/optimized.jpg"
    assert result.dash_url is None and result.hls_url is None
    assert store.puts == [("streaming/img-1/optimized.jpg", "image/jpeg")]
    assert tracker.states == ["processing", "ready"]
