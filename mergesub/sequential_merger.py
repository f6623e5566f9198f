"""Structured sequential merge over files that are already parsed into cues."""

import logging
from dataclasses import replace
from typing import List, Mapping, Optional

from .models import Cue, MergeOptions, ParsedFile, SequentialMergeResult, is_finite_number

logger = logging.getLogger(__name__)


def _cues_of(parsed_file) -> List[Cue]:
    """Cues of a ParsedFile or of a ``{"cues": [...]}`` mapping."""
    if isinstance(parsed_file, Mapping):
        return parsed_file.get("cues") or []
    return getattr(parsed_file, "cues", None) or []


def _filename_of(parsed_file) -> Optional[str]:
    if isinstance(parsed_file, Mapping):
        return parsed_file.get("filename")
    return getattr(parsed_file, "filename", None)


def _finite(values) -> List:
    return [v for v in values if is_finite_number(v)]


def base_end_ms(parsed_file: ParsedFile) -> Optional[float]:
    """Maximum finite end time of a file's cues, or None when it has none."""
    ends = _finite(c.end_ms for c in _cues_of(parsed_file))
    return max(ends) if ends else None


def _span_ms(parsed_file: ParsedFile):
    cues = _cues_of(parsed_file)
    starts = _finite(c.start_ms for c in cues)
    ends = _finite(c.end_ms for c in cues)
    if starts and ends:
        return max(0, max(ends) - min(starts))
    return None


def file_advance_ms(index: int, parsed_file: ParsedFile, options: MergeOptions):
    """
    Duration that file ``index`` adds to the shift of every later file.

    Priority: explicit per-file override, then the file's max end time, then
    the span between its earliest start and latest end, then 0.
    """
    if index in options.per_file_offset_ms:
        return options.per_file_offset_ms[index]
    # use_effective_end_ms has a single strategy for now; both settings land here.
    end = base_end_ms(parsed_file)
    if end is not None:
        return end
    span = _span_ms(parsed_file)
    if span is not None:
        return span
    logger.warning(f"File {index} has no usable timestamps; it does not advance the timeline.")
    return 0


def compute_shifts(files: List[ParsedFile], options: Optional[MergeOptions] = None) -> List:
    """Cumulative shift for each file: the sum of advances of all files before it."""
    options = options or MergeOptions()
    shifts = []
    running = 0
    for index, parsed_file in enumerate(files):
        shifts.append(running)
        running += file_advance_ms(index, parsed_file, options)
    return shifts


def _validate(cues: List[Cue], warnings: List[str], errors: List[str]) -> None:
    for i, cue in enumerate(cues):
        if cue.start_ms < 0 or cue.end_ms < 0:
            errors.append("negative_timestamps")
            break
        if cue.end_ms < cue.start_ms:
            warnings.append("cue_end_before_start")
        if i > 0:
            previous = cues[i - 1]
            if previous.source_file_index == cue.source_file_index and previous.end_ms > cue.start_ms:
                warnings.append("overlap_detected")


def merge_sequential(
    files: List[ParsedFile],
    options: Optional[MergeOptions] = None
) -> SequentialMergeResult:
    """
    Merges parsed files end to end by shifting each file's cues.

    File ``i`` is shifted by the combined advance of files ``0..i-1`` (see
    file_advance_ms). Problems are reported as codes in the result, never
    raised:

    * errors: ``no_files_uploaded``, ``negative_timestamps``
    * warnings: ``no_files``, ``file_{i}_no_cues``, ``file_{i}_malformed_cue``,
      ``cue_end_before_start``, ``overlap_detected``

    Overlap is only checked between adjacent cues from the same source file;
    shifted files may legitimately overlap each other.

    Args:
        files: Files in timeline order.
        options: Merge options; defaults to MergeOptions().

    Returns:
        A SequentialMergeResult with every cue stamped with its source file index.
    """
    options = options or MergeOptions()
    if not isinstance(files, (list, tuple)) or len(files) == 0:
        logger.warning("Sequential merge called without any files.")
        return SequentialMergeResult(merged_cues=[], warnings=["no_files"], errors=["no_files_uploaded"])

    shifts = compute_shifts(files, options)
    merged: List[Cue] = []
    warnings: List[str] = []
    errors: List[str] = []

    for index, (parsed_file, shift) in enumerate(zip(files, shifts)):
        if not isinstance(parsed_file, Mapping) and not hasattr(parsed_file, "cues"):
            logger.warning(f"Input #{index + 1} is not a parsed file ({type(parsed_file).__name__}); treating as empty.")
        cues = _cues_of(parsed_file)
        if not cues:
            warnings.append(f"file_{index}_no_cues")
            continue
        for cue in cues:
            if not is_finite_number(cue.start_ms) or not is_finite_number(cue.end_ms):
                warnings.append(f"file_{index}_malformed_cue")
                continue
            merged.append(replace(
                cue,
                start_ms=cue.start_ms + shift,
                end_ms=cue.end_ms + shift,
                source_file_index=index,
            ))
        logger.debug(f"File {index} ({_filename_of(parsed_file) or '<unnamed>'}) shifted by {shift} ms.")

    if options.sort_final_by_start:
        merged.sort(key=lambda c: c.start_ms)

    _validate(merged, warnings, errors)

    logger.info(
        f"Sequential merge of {len(files)} files produced {len(merged)} cues "
        f"({len(warnings)} warnings, {len(errors)} errors)."
    )
    return SequentialMergeResult(merged_cues=merged, warnings=warnings, errors=errors)
