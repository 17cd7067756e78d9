import pytest

from streaming.errors import ThumbnailError
from streaming.thumbnail import extract_thumbnail, thumbnail_command


def test_command_seeks_to_ten_percent(tmp_path):
    cmd = thumbnail_command("ffmpeg", tmp_path / "in.mp4", tmp_path / "thumbnail.jpg", 30.0)
    assert cmd[cmd.index("-ss") + 1] == "3.000"
    assert cmd[cmd.index("-vf") + 1] == "scale=640:360"
    assert cmd[cmd.index("-frames:v") + 1] == "1"


def test_unknown_duration_grabs_first_frame(tmp_path):
    cmd = thumbnail_command("ffmpeg", tmp_path / "in.mp4", tmp_path / "t.jpg", 0.0)
    assert cmd[cmd.index("-ss") + 1] == "0.000"


def test_extract(tmp_path, tools):
    out = extract_thumbnail(tmp_path / "in.mp4", tmp_path, 12.0)
    assert out.name == "thumbnail.jpg"
    assert out.is_file()


def test_failure_is_fatal(tmp_path, tools):
    tools.fail.add("thumbnail")
    with pytest.raises(ThumbnailError):
        extract_thumbnail(tmp_path / "in.mp4", tmp_path, 12.0)
