"""LRC parsing and line lookup for synced lyrics.

This module handles:
- Splitting ``[time]text`` lines
- Parsing ``[hh:]mm:ss[.frac]`` timestamps
- Finding the active line for a playback position
"""

from typing import List, Optional, Sequence, Tuple

from .models import TimedLine


def split_lrc_line(line: str) -> Tuple[str, str]:
    """Split a trimmed LRC line into (time part, text). Empty strings if malformed."""
    if not line.startswith("["):
        return "", ""

    end_index = line.find("]")
    if end_index <= 1:
        return "", ""

    text = line[end_index + 1:].strip()
    if not text:
        return "", ""

    return line[1:end_index], text


def parse_lrc_time(raw: str) -> Optional[float]:
    """Parse ``[hh:]mm:ss[.frac]`` into seconds, or None if malformed."""
    if not raw:
        return None

    parts = raw.split(":")
    if len(parts) not in (2, 3):
        return None

    try:
        values = [float(p.strip()) for p in parts]
    except ValueError:
        return None

    if len(values) == 2:
        values.insert(0, 0.0)
    hours, minutes, seconds = values

    total = hours * 3600 + minutes * 60 + seconds
    # float() accepts "nan"/"inf"; neither is a usable timestamp
    if total < 0 or total != total or total == float("inf"):
        return None
    return total


def parse_synced(raw: str) -> List[TimedLine]:
    """Parse raw synced lyrics into timed lines, keeping source order.

    Blank lines, lines without a bracketed time or without text, and lines
    whose time does not parse are skipped individually.
    """
    if not raw:
        return []

    result: List[TimedLine] = []
    for line in raw.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue

        time_part, text = split_lrc_line(trimmed)
        if not time_part or not text:
            continue

        seconds = parse_lrc_time(time_part)
        if seconds is None:
            continue

        result.append(TimedLine(seconds, text))

    return result


def find_current_line_index(lines: Sequence[TimedLine], position: float) -> int:
    """Index of the last line starting at or before ``position``; -1 if none.

    Scans forward and stops at the first later line, so out-of-order
    timestamps are taken in file order. Past the final timestamp the last
    line stays current.
    """
    index = -1
    for i, line in enumerate(lines):
        if line.time_seconds > position:
            break
        index = i
    return index


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``m:ss.ss`` for previews."""
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}:{secs:05.2f}"
