"""SRT file utilities: timing shift and encoding repair.

Both file-level helpers keep a ``<file>.bak`` copy of the original before
rewriting it in place::

    from subtitle_forge.srt import shift_srt_file, fix_srt_encoding

    shift_srt_file(Path("Movie.track3_eng.srt"), -1.5)
    fix_srt_encoding(Path("Movie.track3_eng.srt"))
"""

import logging
import re
import shutil
from pathlib import Path

TIMING_PATTERN = re.compile(
    r"(\d{2}):(\d{2}):(\d{2}),(\d{3}) --> (\d{2}):(\d{2}):(\d{2}),(\d{3})"
)

SOURCE_ENCODING = "iso-8859-1"


def _to_millis(hours: str, minutes: str, seconds: str, millis: str) -> int:
    return int(hours) * 3_600_000 + int(minutes) * 60_000 + int(seconds) * 1000 + int(millis)


def _format_timestamp(millis: int) -> str:
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    seconds, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def shift_srt_timing(content: str, offset_seconds: float) -> str:
    """Return *content* with every cue shifted by *offset_seconds*.

    Parameters
    ----------
    content:
        Full text of an SRT file.
    offset_seconds:
        Positive values delay the subtitles, negative values advance them.
        Shifted timestamps are clamped at ``00:00:00,000``.

    Returns
    -------
    The adjusted text. Lines without a ``start --> end`` timing are untouched.
    """
    offset = int(offset_seconds * 1000)

    def shift(match: "re.Match[str]") -> str:
        start = max(0, _to_millis(*match.group(1, 2, 3, 4)) + offset)
        end = max(0, _to_millis(*match.group(5, 6, 7, 8)) + offset)
        return f"{_format_timestamp(start)} --> {_format_timestamp(end)}"

    return TIMING_PATTERN.sub(shift, content)


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + ".bak")


def _backup(path: Path) -> Path:
    backup = backup_path(path)
    shutil.copyfile(path, backup)
    logging.debug(f"Backup written: {backup}")
    return backup


def shift_srt_file(path: Path, offset_seconds: float) -> Path:
    """Shift the timings of *path* in place; returns the backup path."""
    path = Path(path)
    backup = _backup(path)
    with open(path, encoding="utf-8", errors="surrogateescape", newline="") as fh:
        content = fh.read()
    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as fh:
        fh.write(shift_srt_timing(content, offset_seconds))
    logging.info(f"Shifted {path.name} by {offset_seconds:+g}s (backup: {backup.name})")
    return backup


def fix_srt_encoding(path: Path, source_encoding: str = SOURCE_ENCODING) -> Path:
    """Re-encode *path* from *source_encoding* (ISO-8859-1) to UTF-8.

    The conversion goes through a temporary sibling file that replaces the
    original only once it is fully written. Returns the backup path.
    """
    path = Path(path)
    backup = _backup(path)
    text = path.read_bytes().decode(source_encoding)
    temp = path.with_name(path.name + ".tmp")
    temp.write_bytes(text.encode("utf-8"))
    temp.replace(path)
    logging.info(f"Converted {path.name} from {source_encoding} to UTF-8 (backup: {backup.name})")
    return backup
