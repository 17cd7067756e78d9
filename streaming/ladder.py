from typing import NamedTuple


class BitrateLadder(NamedTuple):
    """Candidate encode bitrates in kbps. Only `high` drives the encoder today."""

    low: int
    medium: int
    high: int


# (min_width, min_height, ladder), checked top-down
_TIERS = [
    (1920, 1080, BitrateLadder(1000, 2500, 5000)),
    (1280, 720, BitrateLadder(800, 1500, 3000)),
    (854, 480, BitrateLadder(600, 1000, 2000)),
]
_FLOOR = BitrateLadder(400, 800, 1500)


def bitrate_ladder(width: int, height: int) -> BitrateLadder:
    for min_w, min_h, ladder in _TIERS:
        if width >= min_w and height >= min_h:
            return ladder
    return _FLOOR
