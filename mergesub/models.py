"""Data models for mergesub."""

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .exceptions import InvalidOptionsError

Number = Union[int, float]


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True)
class Cue:
    """A single caption entry on a millisecond timeline."""
    start_ms: Number
    end_ms: Number
    text: str
    source_file_index: Optional[int] = None


@dataclass
class ParsedFile:
    """A subtitle file that has already been parsed into typed cues."""
    cues: List[Cue] = field(default_factory=list)
    filename: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SrtBlock:
    """Raw, not-yet-typed unit produced by the permissive block parser."""
    original_index: Optional[int]
    raw_timecode_line: str = ""
    text_lines: List[str] = field(default_factory=list)


@dataclass
class MergeOptions:
    """
    Options for the structured sequential merge.

    Attributes:
        per_file_offset_ms: File index -> duration (ms) that file contributes
            to the shift of every *later* file. The file's own cues are not
            moved by its override.
        use_effective_end_ms: Reserved toggle for the duration strategy.
            Currently equivalent to the default (max end time).
        sort_final_by_start: Stable-sort the flattened output by start time.
    """
    per_file_offset_ms: Dict[int, Number] = field(default_factory=dict)
    use_effective_end_ms: bool = True
    sort_final_by_start: bool = False

    def __post_init__(self):
        if self.per_file_offset_ms is None:
            self.per_file_offset_ms = {}
        if not isinstance(self.per_file_offset_ms, dict):
            raise InvalidOptionsError(
                f"per_file_offset_ms must be a mapping, got {type(self.per_file_offset_ms).__name__}")
        for index, offset in self.per_file_offset_ms.items():
            if isinstance(index, bool) or not isinstance(index, int) or index < 0:
                raise InvalidOptionsError(f"per_file_offset_ms key must be a non-negative file index, got {index!r}")
            if not is_finite_number(offset) or offset < 0:
                raise InvalidOptionsError(
                    f"per_file_offset_ms[{index}] must be a non-negative duration in ms, got {offset!r}")


@dataclass
class SequentialMergeResult:
    """Output of the structured merge: shifted cues plus in-band codes."""
    merged_cues: List[Cue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class MergeAction(str, Enum):
    NORMAL = "normal"
    NORMALIZED = "normalized"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class MergeDiagnostic:
    """Audit record for one block whose timecode was rewritten or synthesized."""
    source_file: str
    original_index: Optional[int]
    original_timecode_line: str
    final_index: int
    final_timecode_line: str
    action: MergeAction
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_file": self.source_file,
            "original_index": self.original_index,
            "original_timecode_line": self.original_timecode_line,
            "final_index": self.final_index,
            "final_timecode_line": self.final_timecode_line,
            "action": self.action.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class MergeStats:
    total_input_cues: int = 0
    total_output_cues: int = 0
    parse_issues_count: int = 0
    files_processed: int = 0


@dataclass
class MergeResult:
    """Output of the raw-text merge: serialized document, audit trail and counters."""
    merged_document: str
    diagnostics: List[MergeDiagnostic] = field(default_factory=list)
    stats: MergeStats = field(default_factory=MergeStats)

    def diagnostics_as_json(self) -> str:
        return json.dumps([d.to_dict() for d in self.diagnostics], indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class SourceFile:
    """Raw subtitle text as supplied by the host (name is used in diagnostics)."""
    name: str
    content: str


class ShiftMode(str, Enum):
    AUTO = "auto"
    NONE = "none"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ComputedOffset:
    """Offset assigned to one secondary file during timeline alignment."""
    file_id: str
    offset_ms: int
    offset_display: str
