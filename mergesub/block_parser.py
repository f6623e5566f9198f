"""Permissive SRT block parser.

Turns raw subtitle text into an ordered list of SrtBlock objects without ever
failing. Malformed input degrades to blocks with a missing index, an empty
timecode line or empty text; deciding what to do with those is left to the
mergers.
"""

import logging
import re
from enum import Enum
from typing import List, Optional

from .models import Cue, ParsedFile, SrtBlock
from .timecode import ARROW, split_timecode_line

logger = logging.getLogger(__name__)

_LINE_BREAK_RE = re.compile(r"\r?\n")
# Longer digit runs are caption text, not cue numbers.
_INDEX_RE = re.compile(r"^\d{1,9}$")
_TIMECODE_HINT_RE = re.compile(r"\d{1,2}:\d{2}:\d{2}")


class ParserState(Enum):
    EXPECTING_INDEX = "expecting_index"
    EXPECTING_TIMESTAMP = "expecting_timestamp"
    READING_TEXT = "reading_text"


class LineKind(Enum):
    BLANK = "blank"
    INDEX = "index"
    TIMECODE = "timecode"
    TEXT = "text"


def classify_line(line: str) -> LineKind:
    """Classifies an already-trimmed line."""
    if line == "":
        return LineKind.BLANK
    if _INDEX_RE.match(line):
        return LineKind.INDEX
    if ARROW in line or _TIMECODE_HINT_RE.search(line):
        return LineKind.TIMECODE
    return LineKind.TEXT


def _is_arrow_line(line: str) -> bool:
    # Inside caption text only a ``start --> end`` shaped line counts as a timecode.
    return classify_line(line) is LineKind.TIMECODE and ARROW in line


def _trim_blank_edges(lines: List[str]) -> List[str]:
    start, end = 0, len(lines)
    while start < end and lines[start] == "":
        start += 1
    while end > start and lines[end - 1] == "":
        end -= 1
    return lines[start:end]


class _BlockParser:
    """Line-by-line state machine; see parse_blocks for the transition rules."""

    def __init__(self):
        self.blocks: List[SrtBlock] = []
        self.current: Optional[SrtBlock] = None
        self.state = ParserState.EXPECTING_INDEX
        self.previous_blank = False

    def _close(self) -> None:
        if self.current is not None:
            self.current.text_lines = _trim_blank_edges(self.current.text_lines)
            self.blocks.append(self.current)
        self.current = None

    def _open(self, original_index: Optional[int], timecode: str = "") -> None:
        self._close()
        self.current = SrtBlock(original_index=original_index, raw_timecode_line=timecode)

    def feed(self, line: str, next_line: Optional[str] = None) -> None:
        kind = classify_line(line)
        handler = {
            ParserState.EXPECTING_INDEX: self._on_expecting_index,
            ParserState.EXPECTING_TIMESTAMP: self._on_expecting_timestamp,
            ParserState.READING_TEXT: self._on_reading_text,
        }[self.state]
        handler(kind, line, next_line)
        self.previous_blank = kind is LineKind.BLANK

    def _on_expecting_index(self, kind: LineKind, line: str, next_line: Optional[str]) -> None:
        if kind is LineKind.BLANK:
            return
        if kind is LineKind.INDEX:
            self._open(int(line))
            self.state = ParserState.EXPECTING_TIMESTAMP
        elif kind is LineKind.TIMECODE:
            self._open(None, line)
            self.state = ParserState.READING_TEXT
        else:
            # Text before any index: keep it in an index-less block.
            self._open(None)
            self.current.text_lines.append(line)
            self.state = ParserState.READING_TEXT

    def _on_expecting_timestamp(self, kind: LineKind, line: str, next_line: Optional[str]) -> None:
        if kind is LineKind.BLANK:
            return
        if kind is LineKind.INDEX:
            # A lone index with no timecode and no text carries nothing worth keeping.
            self.current = None
            self._open(int(line))
        elif kind is LineKind.TIMECODE:
            self.current.raw_timecode_line = line
            self.state = ParserState.READING_TEXT
        else:
            self.current.text_lines.append(line)
            self.state = ParserState.READING_TEXT

    def _starts_block(self, next_line: Optional[str]) -> bool:
        if self.current.raw_timecode_line or self.previous_blank:
            return True
        return next_line is not None and _is_arrow_line(next_line)

    def _on_reading_text(self, kind: LineKind, line: str, next_line: Optional[str]) -> None:
        if kind is LineKind.BLANK:
            self.current.text_lines.append("")
        elif kind is LineKind.INDEX and self._starts_block(next_line):
            self._open(int(line))
            self.state = ParserState.EXPECTING_TIMESTAMP
        elif self.previous_blank and _is_arrow_line(line):
            # Block with a missing index.
            self._open(None, line)
        else:
            self.current.text_lines.append(line)

    def finish(self) -> List[SrtBlock]:
        self._close()
        return self.blocks


def parse_blocks(content) -> List[SrtBlock]:
    """
    Parses raw SRT text into blocks, tolerating malformed input.

    Lines are split on ``\\n`` or ``\\r\\n`` and trimmed, then classified as
    blank, index (one to nine digits), timecode (contains ``-->`` or an
    ``H:MM:SS``-like pattern) or text, and fed through a three-state machine:

    * expecting index: an index opens a block; a timecode or text line opens
      an index-less block so nothing is lost.
    * expecting timestamp: a timecode is stored verbatim; a text line is kept
      as text and the block stays without a timecode; a new index replaces a
      block that holds nothing yet.
    * reading text: every line, blank ones included, is caption text with two
      exceptions. An index starts the next block if the current block has a
      timecode, if it follows a blank line, or if the next line is a
      ``start --> end`` line (one line of lookahead). A ``start --> end``
      line right after a blank line starts an index-less block; a line that
      merely mentions a clock time stays in the caption.

    Blank lines at the edges of a block are separators and are trimmed; blank
    lines between caption lines are kept. The open block is flushed at end of
    input.

    Args:
        content: The subtitle file text. Non-string input yields no blocks.

    Returns:
        The blocks in input order.
    """
    if not isinstance(content, str):
        logger.warning(f"Cannot parse subtitle content of type {type(content).__name__}; treating as empty.")
        return []
    parser = _BlockParser()
    lines = [raw_line.strip() for raw_line in _LINE_BREAK_RE.split(content)]
    for position, line in enumerate(lines):
        parser.feed(line, lines[position + 1] if position + 1 < len(lines) else None)
    blocks = parser.finish()
    logger.debug(f"Parsed {len(blocks)} blocks from {len(content)} characters of text.")
    return blocks


def parse_cues(content, filename: Optional[str] = None) -> ParsedFile:
    """
    Parses raw SRT text straight into typed cues for the structured merger.

    Blocks whose timecode cannot be resolved become cues with NaN times, so the
    structured merge reports them as malformed instead of silently losing them.
    """
    blocks = parse_blocks(content)
    cues = []
    unparsed = 0
    for block in blocks:
        times = split_timecode_line(block.raw_timecode_line)
        text = "\n".join(block.text_lines)
        if times is None:
            unparsed += 1
            cues.append(Cue(start_ms=float("nan"), end_ms=float("nan"), text=text))
        else:
            cues.append(Cue(start_ms=times[0], end_ms=times[1], text=text))
    if unparsed:
        logger.warning(f"{unparsed} of {len(blocks)} blocks in {filename or '<unnamed>'} have no usable timecode.")
    return ParsedFile(
        cues=cues,
        filename=filename,
        meta={"block_count": len(blocks), "unparsed_blocks": unparsed},
    )
