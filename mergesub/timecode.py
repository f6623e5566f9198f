"""Timestamp arithmetic for SRT time codes (HH:MM:SS,mmm)."""

import logging
import math
import re
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

ARROW = "-->"
# Gap and length of a synthesized cue when the original timecode is unusable.
FALLBACK_GAP_MS = 200
FALLBACK_DURATION_MS = 1000

_TIMECODE_RE = re.compile(r"^(\d{1,9}):([0-5]\d):([0-5]\d)(?:[,.](\d{1,3}))?$")


def parse_timecode(token) -> Optional[int]:
    """
    Parses a single time code token into milliseconds.

    Accepts ``HH:MM:SS,mmm`` and ``HH:MM:SS.mmm``; surrounding whitespace is
    ignored. The fraction is read as a decimal fraction of a second, so
    ``00:00:01,5`` is 1500 ms. A missing fraction counts as zero.

    Args:
        token: The time code text.

    Returns:
        Milliseconds, or None if the token is not a valid time code.
    """
    if not isinstance(token, str):
        return None
    match = _TIMECODE_RE.match(token.strip())
    if not match:
        return None
    hours, minutes, seconds, fraction = match.groups()
    millis = int((fraction or "0").ljust(3, "0"))
    return ((int(hours) * 60 + int(minutes)) * 60 + int(seconds)) * 1000 + millis


def format_timecode(ms) -> str:
    """
    Formats milliseconds into SRT time format HH:MM:SS,mmm.

    Fractional milliseconds are floored. Negative or non-finite input is
    clamped to zero.
    """
    if isinstance(ms, float) and not math.isfinite(ms):
        ms = 0
    ms = int(math.floor(ms))
    if ms < 0:
        ms = 0
    hrs, ms = divmod(ms, 3600000)
    mins, ms = divmod(ms, 60000)
    secs, ms = divmod(ms, 1000)
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{ms:03d}"


def split_timecode_line(raw_line) -> Optional[Tuple[int, int]]:
    """Returns (start_ms, end_ms) of a ``start --> end`` line, or None."""
    if not isinstance(raw_line, str):
        return None
    parts = raw_line.split(ARROW)
    if len(parts) != 2:
        return None
    start = parse_timecode(parts[0])
    end = parse_timecode(parts[1])
    if start is None or end is None:
        return None
    return start, end


def shift_timecode_line(raw_line, offset_ms) -> Optional[str]:
    """
    Shifts both sides of a ``start --> end`` line by ``offset_ms``.

    The result is always rendered in canonical form, so this doubles as a
    normalizer for irregular spacing or period separators.

    Returns:
        The shifted line, or None if either side cannot be parsed.
    """
    times = split_timecode_line(raw_line)
    if times is None:
        return None
    start, end = times
    return f"{format_timecode(start + offset_ms)} {ARROW} {format_timecode(end + offset_ms)}"


def canonical_timecode_line(raw_line) -> Optional[str]:
    """The canonical rendering of a timecode line without any shift."""
    return shift_timecode_line(raw_line, 0)


def make_fallback_timestamp(
    previous_end_ms: Optional[int],
    cumulative_offset_ms: Optional[int],
    gap_ms: int = FALLBACK_GAP_MS,
    duration_ms: int = FALLBACK_DURATION_MS
) -> str:
    """
    Synthesizes a valid timecode line for a block whose original is unusable.

    The synthesized cue starts strictly after both the last emitted end time
    and the current file offset, so it never overlaps earlier merged content.

    Args:
        previous_end_ms: End of the last resolved cue on the merged timeline.
        cumulative_offset_ms: Offset applied to the current file.
        gap_ms: Distance from the anchor to the synthesized start (min 1 ms).
        duration_ms: Length of the synthesized cue (min 1 ms).

    Returns:
        A ``start --> end`` line that parse_timecode accepts on both sides.
    """
    anchor = max(previous_end_ms or 0, cumulative_offset_ms or 0, 0)
    start = anchor + max(int(gap_ms), 1)
    end = start + max(int(duration_ms), 1)
    logger.debug(f"Synthesized fallback timecode {start}..{end} ms (anchor {anchor} ms)")
    return f"{format_timecode(start)} {ARROW} {format_timecode(end)}"
