"""Raw-text merge: parse, shift, renumber and serialize SRT documents."""

import logging
import re
from dataclasses import dataclass, replace
from functools import reduce
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .block_parser import parse_blocks
from .models import (
    Cue, MergeAction, MergeDiagnostic, MergeResult, MergeStats, SourceFile, SrtBlock,
    is_finite_number,
)
from .timecode import (
    ARROW, FALLBACK_DURATION_MS, FALLBACK_GAP_MS, canonical_timecode_line,
    format_timecode, make_fallback_timestamp, shift_timecode_line, split_timecode_line,
)

logger = logging.getLogger(__name__)

EMPTY_TEXT_PLACEHOLDER = "[No text]"
# When True, runs of whitespace in the original line do not make a block "normalized".
NORMALIZE_IGNORES_WHITESPACE_RUNS = True

REASON_UNPARSEABLE = "Unparseable timestamp line"
REASON_MISSING = "Missing timestamp line"

_WHITESPACE_RUN_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class MergeSettings:
    """Tunable constants of the raw-text merge."""
    fallback_gap_ms: int = FALLBACK_GAP_MS
    fallback_duration_ms: int = FALLBACK_DURATION_MS
    empty_text_placeholder: str = EMPTY_TEXT_PLACEHOLDER


@dataclass(frozen=True)
class RenderedBlock:
    index: int
    timecode_line: str
    text_lines: Tuple[str, ...]

    def render(self) -> str:
        return f"{self.index}\n{self.timecode_line}\n" + "\n".join(self.text_lines) + "\n"


@dataclass(frozen=True)
class ResolvedTimecode:
    """Final timecode of one block plus the end times the merge keeps track of."""
    line: str
    action: MergeAction
    reason: Optional[str]
    local_end_ms: int
    global_end_ms: int


@dataclass(frozen=True)
class MergeAccumulator:
    """State carried from file to file through the merge fold."""
    cumulative_ms: int = 0
    last_global_end_ms: Optional[int] = None
    parse_issues: int = 0
    total_input_cues: int = 0
    files_processed: int = 0
    blocks: Tuple[RenderedBlock, ...] = ()
    diagnostics: Tuple[MergeDiagnostic, ...] = ()

    @property
    def next_index(self) -> int:
        return len(self.blocks) + 1


def _comparable(line: str) -> str:
    if NORMALIZE_IGNORES_WHITESPACE_RUNS:
        return _WHITESPACE_RUN_RE.sub(" ", line).strip()
    return line


def resolve_timecode(
    raw_line: str,
    offset_ms: int,
    last_global_end_ms: Optional[int],
    settings: MergeSettings = MergeSettings()
) -> ResolvedTimecode:
    """
    Shifts a raw timecode line, or synthesizes a fallback when it is unusable.

    The action is ``normal`` when the original line was already canonical,
    ``normalized`` when its canonical rendering differs (ignoring the shift),
    and ``fallback`` when it could not be parsed at all.
    """
    shifted = shift_timecode_line(raw_line, offset_ms)
    if shifted is not None:
        _, local_end = split_timecode_line(raw_line)
        _, global_end = split_timecode_line(shifted)
        action = MergeAction.NORMAL
        if canonical_timecode_line(raw_line) != _comparable(raw_line):
            action = MergeAction.NORMALIZED
        return ResolvedTimecode(shifted, action, None, local_end, global_end)

    line = make_fallback_timestamp(
        last_global_end_ms, offset_ms, settings.fallback_gap_ms, settings.fallback_duration_ms)
    _, global_end = split_timecode_line(line)
    reason = REASON_MISSING if not raw_line.strip() else REASON_UNPARSEABLE
    return ResolvedTimecode(line, MergeAction.FALLBACK, reason, global_end - offset_ms, global_end)


def _caption_lines(block: SrtBlock, settings: MergeSettings) -> Tuple[str, ...]:
    if any(line.strip() for line in block.text_lines):
        return tuple(block.text_lines)
    return (settings.empty_text_placeholder,)


def fold_file(
    state: MergeAccumulator,
    name: str,
    blocks: List[SrtBlock],
    offset_ms: int,
    settings: MergeSettings = MergeSettings()
) -> Tuple[MergeAccumulator, int]:
    """
    Emits one file's blocks shifted by ``offset_ms``.

    Returns:
        The updated accumulator and the file's maximum end time on its own
        (unshifted) timeline, which is what the file contributes to the
        offset of the next file.
    """
    emitted: List[RenderedBlock] = []
    diagnostics: List[MergeDiagnostic] = []
    last_global_end = state.last_global_end_ms
    file_end = 0
    issues = 0

    for block in blocks:
        final_index = state.next_index + len(emitted)
        resolved = resolve_timecode(block.raw_timecode_line, offset_ms, last_global_end, settings)
        if resolved.action is MergeAction.FALLBACK:
            issues += 1
            logger.warning(
                f"{name}: block {block.original_index if block.original_index is not None else '?'} "
                f"has an unusable timecode {block.raw_timecode_line!r}; using {resolved.line}")
        file_end = max(file_end, resolved.local_end_ms)
        last_global_end = resolved.global_end_ms

        if resolved.action is not MergeAction.NORMAL:
            diagnostics.append(MergeDiagnostic(
                source_file=name,
                original_index=block.original_index,
                original_timecode_line=block.raw_timecode_line,
                final_index=final_index,
                final_timecode_line=resolved.line,
                action=resolved.action,
                reason=resolved.reason,
            ))
        emitted.append(RenderedBlock(final_index, resolved.line, _caption_lines(block, settings)))

    new_state = replace(
        state,
        last_global_end_ms=last_global_end,
        parse_issues=state.parse_issues + issues,
        total_input_cues=state.total_input_cues + len(blocks),
        files_processed=state.files_processed + 1,
        blocks=state.blocks + tuple(emitted),
        diagnostics=state.diagnostics + tuple(diagnostics),
    )
    logger.debug(f"{name}: {len(blocks)} blocks at offset {offset_ms} ms, local end {file_end} ms.")
    return new_state, file_end


def build_result(state: MergeAccumulator) -> MergeResult:
    """Serializes the accumulated blocks into a MergeResult."""
    document = "\n".join(block.render() for block in state.blocks)
    return MergeResult(
        merged_document=document,
        diagnostics=list(state.diagnostics),
        stats=MergeStats(
            total_input_cues=state.total_input_cues,
            total_output_cues=len(state.blocks),
            parse_issues_count=state.parse_issues,
            files_processed=state.files_processed,
        ),
    )


def coerce_source(item: Any, position: int) -> SourceFile:
    """Accepts a SourceFile or a ``{"name", "content"}`` mapping."""
    if isinstance(item, SourceFile):
        return item
    if isinstance(item, Mapping):
        name = item.get("name") or f"file_{position + 1}"
        return SourceFile(name=str(name), content=item.get("content", ""))
    logger.warning(f"Input #{position + 1} is not a subtitle source ({type(item).__name__}); treating as empty.")
    return SourceFile(name=f"file_{position + 1}", content="")


def merge_documents(
    files: Iterable[Any],
    settings: Optional[MergeSettings] = None
) -> MergeResult:
    """
    Concatenates raw SRT documents into one continuous timeline.

    Each file is shifted by the sum of the end times of all files before it,
    measured on each file's own timeline. Unparseable timecodes are replaced
    by synthesized ones placed right after the merged timeline so far, and
    every replacement or normalization is recorded as a diagnostic. Output
    blocks are renumbered from 1.

    Args:
        files: SourceFile objects (or ``{"name", "content"}`` mappings) in order.
        settings: Fallback gap/duration and empty-text placeholder.

    Returns:
        A MergeResult with the serialized document, diagnostics and stats.
    """
    settings = settings or MergeSettings()
    sources = [coerce_source(item, i) for i, item in enumerate(files or [])]

    def step(state: MergeAccumulator, source: SourceFile) -> MergeAccumulator:
        state, file_end = fold_file(state, source.name, parse_blocks(source.content), state.cumulative_ms, settings)
        return replace(state, cumulative_ms=state.cumulative_ms + file_end)

    final_state = reduce(step, sources, MergeAccumulator())
    result = build_result(final_state)
    logger.info(
        f"Merged {result.stats.files_processed} files: {result.stats.total_input_cues} blocks in, "
        f"{result.stats.total_output_cues} out, {result.stats.parse_issues_count} parse issues.")
    return result


def render_cues(cues: List[Cue], placeholder: str = EMPTY_TEXT_PLACEHOLDER) -> str:
    """Serializes typed cues to SRT, renumbering from 1 and skipping non-finite times."""
    blocks = []
    for cue in cues:
        if not is_finite_number(cue.start_ms) or not is_finite_number(cue.end_ms):
            continue
        lines = tuple(cue.text.split("\n")) if cue.text and cue.text.strip() else (placeholder,)
        timecode = f"{format_timecode(cue.start_ms)} {ARROW} {format_timecode(cue.end_ms)}"
        blocks.append(RenderedBlock(len(blocks) + 1, timecode, lines))
    return "\n".join(block.render() for block in blocks)
