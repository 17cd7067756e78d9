import logging
import shutil
import sys
from pathlib import Path

from .discovery import DASH, INIT_SEGMENT, MEDIA_SEGMENT, classify, written_since
from .errors import CleanupError

logger = logging.getLogger(__name__)


def _is_stray_dash(name: str) -> bool:
    kind = classify(name)
    return kind is not None and kind[0] == DASH and kind[1] in (INIT_SEGMENT, MEDIA_SEGMENT)


def _rmtree(path: Path, problems: list[CleanupError]):
    def onexc(func, failed, exc):
        problems.append(CleanupError(f"{func.__name__} failed on {failed}: {exc}"))

    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=onexc)
    else:
        shutil.rmtree(path, onerror=lambda func, failed, exc_info: onexc(func, failed, exc_info[1]))


def cleanup(work_dir: Path, fallback_root: Path | None = None, since: float | None = None) -> bool:
    """
    Remove the job directory and any DASH segments ffmpeg dropped in fallback_root.
    With `since`, only strays modified at or after that time are swept.
    Best effort: failures are logged and reported through the return value.
    """
    problems: list[CleanupError] = []
    work_dir = Path(work_dir)

    if work_dir.exists():
        _rmtree(work_dir, problems)

    if fallback_root is not None:
        fallback_root = Path(fallback_root)
        try:
            strays = [
                p for p in fallback_root.iterdir()
                if p.is_file() and _is_stray_dash(p.name) and written_since(p, since)
            ]
        except OSError as e:
            strays = []
            problems.append(CleanupError(f"Could not scan {fallback_root}: {e}"))
        if strays:
            logger.info("Removing %d stray DASH files from %s", len(strays), fallback_root)
        for p in strays:
            try:
                p.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                problems.append(CleanupError(f"Could not remove {p}: {e}"))

    for problem in problems:
        logger.warning("Cleanup: %s", problem)
    if not problems:
        logger.info("Cleaned up %s", work_dir)
    return not problems
