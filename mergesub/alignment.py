"""Timeline alignment: merge secondary transcripts at explicit offsets after a primary one."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .block_parser import parse_blocks
from .document_merger import MergeAccumulator, MergeSettings, build_result, coerce_source, fold_file
from .exceptions import InvalidOptionsError
from .models import ComputedOffset, MergeResult, ShiftMode, SourceFile
from .timecode import format_timecode, parse_timecode, split_timecode_line

logger = logging.getLogger(__name__)

DEFAULT_CUSTOM_OFFSET = "00:00:00,000"


def timeline_end_ms(content) -> int:
    """Latest resolvable end time in a document, or 0 when there is none."""
    ends = [
        times[1]
        for times in (split_timecode_line(b.raw_timecode_line) for b in parse_blocks(content))
        if times is not None
    ]
    return max(ends) if ends else 0


def parse_offset(token: str) -> int:
    """
    Parses a user-supplied offset such as ``00:28:03,760`` or ``00:28:03.760``.

    Raises:
        InvalidOptionsError: If the token is not a valid time code.
    """
    millis = parse_timecode(token) if isinstance(token, str) else None
    if millis is None:
        raise InvalidOptionsError(f"Invalid timestamp format {token!r}. Use HH:MM:SS,mmm")
    return millis


def compute_offsets(
    primary_end_ms: int,
    secondaries: Iterable[Tuple[str, Optional[int]]],
    mode: Union[ShiftMode, str] = ShiftMode.AUTO,
    custom_offset: Optional[str] = None
) -> List[ComputedOffset]:
    """
    Assigns an offset to every secondary file.

    Args:
        primary_end_ms: End of the primary transcript's timeline.
        secondaries: ``(file_id, current_offset_ms)`` pairs.
        mode: ``auto`` places every secondary right after the primary,
            ``none`` keeps each file's current offset, ``custom`` applies
            ``custom_offset`` to all of them.
        custom_offset: Time code used in ``custom`` mode.

    Returns:
        One ComputedOffset per secondary, in input order.

    Raises:
        InvalidOptionsError: On an unknown mode or an invalid custom offset.
    """
    try:
        mode = ShiftMode(mode)
    except ValueError as e:
        raise InvalidOptionsError(f"Unknown shift mode {mode!r}; expected one of auto, none, custom") from e

    custom_ms = 0
    if mode is ShiftMode.CUSTOM:
        custom_ms = parse_offset(custom_offset if custom_offset is not None else DEFAULT_CUSTOM_OFFSET)

    offsets = []
    for file_id, current_offset_ms in secondaries:
        if mode is ShiftMode.AUTO:
            offset_ms = primary_end_ms
        elif mode is ShiftMode.NONE:
            offset_ms = current_offset_ms or 0
        else:
            offset_ms = custom_ms
        offsets.append(ComputedOffset(file_id=file_id, offset_ms=offset_ms, offset_display=format_timecode(offset_ms)))
    logger.info(f"Computed {len(offsets)} offsets in {mode.value} mode (primary end {format_timecode(primary_end_ms)}).")
    return offsets


def merge_with_offsets(
    primary,
    secondaries: Iterable,
    offsets: Iterable[ComputedOffset],
    settings: Optional[MergeSettings] = None
) -> MergeResult:
    """
    Merges a primary transcript (unshifted) with secondaries at explicit offsets.

    Secondaries are matched to offsets by file name; a secondary without an
    offset is left at 0. Blocks are renumbered from 1, and unusable timecodes
    are replaced and reported exactly like merge_documents does.
    """
    settings = settings or MergeSettings()
    by_id: Dict[str, int] = {o.file_id: o.offset_ms for o in offsets}
    primary_source = coerce_source(primary, 0)

    state, _ = fold_file(MergeAccumulator(), primary_source.name, parse_blocks(primary_source.content), 0, settings)
    for position, item in enumerate(secondaries, start=1):
        source: SourceFile = coerce_source(item, position)
        offset_ms = by_id.get(source.name)
        if offset_ms is None:
            logger.warning(f"No offset computed for {source.name}; leaving it unshifted.")
            offset_ms = 0
        state, _ = fold_file(state, source.name, parse_blocks(source.content), offset_ms, settings)

    result = build_result(state)
    logger.info(
        f"Aligned merge of {result.stats.files_processed} files produced {result.stats.total_output_cues} blocks "
        f"({result.stats.parse_issues_count} parse issues).")
    return result
