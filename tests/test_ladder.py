import pytest

from streaming.ladder import BitrateLadder, bitrate_ladder


@pytest.mark.parametrize(
    "width,height,expected",
    [
        (3840, 2160, (1000, 2500, 5000)),
        (1920, 1080, (1000, 2500, 5000)),
        (1920, 1079, (800, 1500, 3000)),
        (1280, 720, (800, 1500, 3000)),
        (1279, 720, (600, 1000, 2000)),
        (854, 480, (600, 1000, 2000)),
        (853, 480, (400, 800, 1500)),
        (640, 360, (400, 800, 1500)),
        (1, 1, (400, 800, 1500)),
    ],
)
def test_tiers_and_boundaries(width, height, expected):
    assert tuple(bitrate_ladder(width, height)) == expected


def test_portrait_video_uses_both_dimensions():
    # 1080x1920 is not >= 1920 wide, so it drops to the tier both sides satisfy
    assert bitrate_ladder(1080, 1920) == BitrateLadder(800, 1500, 3000)


def test_named_fields():
    ladder = bitrate_ladder(1920, 1080)
    assert (ladder.low, ladder.medium, ladder.high) == (1000, 2500, 5000)
