"""Orchestrates merging subtitle files from disk and writing the results."""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tqdm import tqdm

from .alignment import compute_offsets, merge_with_offsets, timeline_end_ms
from .block_parser import parse_cues
from .config_loader import ConfigLoader
from .document_merger import MergeSettings, merge_documents, render_cues
from .exceptions import MergeSubError, OutputWriteError
from .models import MergeOptions, ShiftMode, SourceFile
from .sequential_merger import compute_shifts, merge_sequential
from .utils import ensure_dir_exists, read_subtitle_file

logger = logging.getLogger(__name__)

MODE_SEQUENTIAL = "sequential"
MODE_STRUCTURED = "structured"
MODE_ALIGNED = "aligned"
MODES = (MODE_SEQUENTIAL, MODE_STRUCTURED, MODE_ALIGNED)


@dataclass
class MergeRun:
    """What a merge run wrote and whether the merge itself reported errors."""
    merged_path: str
    report_path: str
    output_cues: int
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class TranscriptMerger:
    """
    Manages the end-to-end process of merging subtitle files.
    """

    def __init__(self, config: dict, show_progress: bool = True):
        """
        Initializes the TranscriptMerger.

        Args:
            config: A dictionary containing configuration settings
                    (see config_loader.DEFAULT_CONFIG).
            show_progress: Show a tqdm progress bar while loading inputs.

        Raises:
            ConfigurationError: If a known config key has an invalid value.
        """
        ConfigLoader.validate(config)
        self.config = config
        self.show_progress = show_progress
        self.encoding = config.get('input_encoding', 'auto')
        self.merged_filename = config.get('merged_filename', 'merged.srt')
        self.diagnostics_filename = config.get('diagnostics_filename', 'merge_diagnostics.json')
        self.settings = MergeSettings(
            fallback_gap_ms=config['fallback_gap_ms'],
            fallback_duration_ms=config['fallback_duration_ms'],
            empty_text_placeholder=config['empty_text_placeholder'],
        )

    def load_sources(self, paths: Sequence[str]) -> List[SourceFile]:
        """Reads every input file, in order, into a SourceFile."""
        sources = []
        with tqdm(total=len(paths), unit="file", desc="Loading", disable=not self.show_progress) as pbar:
            for path in paths:
                pbar.set_description(f"Loading: {os.path.basename(path)[:30]}")
                sources.append(SourceFile(name=path, content=read_subtitle_file(path, self.encoding)))
                pbar.update(1)
        logger.info(f"Loaded {len(sources)} subtitle files.")
        return sources

    def _write_text(self, path: str, content: str) -> None:
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
        except IOError as e:
            logger.error(f"Failed to write {path}: {e}", exc_info=True)
            raise OutputWriteError(f"Could not write {path}: {e}") from e

    def _output_paths(self, output_dir: str):
        return (os.path.join(output_dir, self.merged_filename),
                os.path.join(output_dir, self.diagnostics_filename))

    def merge_sequential_files(self, sources: List[SourceFile], output_dir: str) -> MergeRun:
        merged_path, report_path = self._output_paths(output_dir)
        result = merge_documents(sources, self.settings)
        self._write_text(merged_path, result.merged_document)
        self._write_text(report_path, result.diagnostics_as_json())
        return MergeRun(merged_path, report_path, result.stats.total_output_cues)

    def merge_aligned_files(
        self,
        primary: SourceFile,
        secondaries: List[SourceFile],
        output_dir: str,
        shift_mode: str = ShiftMode.AUTO.value,
        custom_offset: Optional[str] = None
    ) -> MergeRun:
        merged_path, report_path = self._output_paths(output_dir)
        primary_end = timeline_end_ms(primary.content)
        offsets = compute_offsets(primary_end, [(s.name, 0) for s in secondaries], shift_mode, custom_offset)
        for offset in offsets:
            logger.info(f"Offset for {offset.file_id}: {offset.offset_display}")
        result = merge_with_offsets(primary, secondaries, offsets, self.settings)
        self._write_text(merged_path, result.merged_document)
        self._write_text(report_path, result.diagnostics_as_json())
        return MergeRun(merged_path, report_path, result.stats.total_output_cues)

    def merge_structured_files(
        self,
        sources: List[SourceFile],
        output_dir: str,
        options: Optional[MergeOptions] = None
    ) -> MergeRun:
        merged_path, report_path = self._output_paths(output_dir)
        parsed = [parse_cues(s.content, filename=s.name) for s in sources]
        result = merge_sequential(parsed, options)
        report = {
            "files": [s.name for s in sources],
            "shifts_ms": compute_shifts(parsed, options) if parsed else [],
            "warnings": result.warnings,
            "errors": result.errors,
        }
        self._write_text(merged_path, render_cues(result.merged_cues, self.settings.empty_text_placeholder))
        self._write_text(report_path, json.dumps(report, indent=2, ensure_ascii=False))
        return MergeRun(merged_path, report_path, len(result.merged_cues), result.errors, result.warnings)

    def run(
        self,
        paths: Sequence[str],
        output_dir: str,
        mode: str = MODE_SEQUENTIAL,
        primary_path: Optional[str] = None,
        shift_mode: str = ShiftMode.AUTO.value,
        custom_offset: Optional[str] = None,
        options: Optional[MergeOptions] = None
    ) -> MergeRun:
        """
        Loads the inputs, merges them in the requested mode and writes the
        merged document plus a JSON report into ``output_dir``.

        Args:
            paths: Input subtitle files in timeline order.
            output_dir: Directory for the merged document and report.
            mode: ``sequential`` (raw-text merge with diagnostics),
                  ``structured`` (typed cue merge with warning/error codes) or
                  ``aligned`` (primary plus secondaries at computed offsets).
            primary_path: Primary file for ``aligned`` mode; defaults to the first path.
            shift_mode: Offset mode for ``aligned`` mode.
            custom_offset: Time code for the ``custom`` shift mode.
            options: Options for ``structured`` mode.

        Returns:
            A MergeRun describing the written files.

        Raises:
            MergeSubError: For invalid arguments, unreadable inputs or unwritable outputs.
        """
        start_time = time.time()
        if mode not in MODES:
            raise MergeSubError(f"Unsupported merge mode '{mode}'. Expected one of: {', '.join(MODES)}")
        if not paths:
            raise MergeSubError("No input subtitle files were given.")
        logger.info(f"--- Starting {mode} merge of {len(paths)} files ---")
        ensure_dir_exists(output_dir)

        try:
            if mode == MODE_ALIGNED:
                primary_path = primary_path or paths[0]
                ordered = [primary_path] + [p for p in paths if p != primary_path]
                sources = self.load_sources(ordered)
                run = self.merge_aligned_files(sources[0], sources[1:], output_dir, shift_mode, custom_offset)
            else:
                sources = self.load_sources(paths)
                if mode == MODE_STRUCTURED:
                    run = self.merge_structured_files(sources, output_dir, options)
                else:
                    run = self.merge_sequential_files(sources, output_dir)
        except (MergeSubError, FileNotFoundError) as e:
            logger.error(f"Merge failed: {e}", exc_info=False)
            raise
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred during merging: {e}", exc_info=True)
            raise MergeSubError(f"An unexpected critical error occurred: {e}") from e

        logger.info(f"Merged document saved to: {run.merged_path} ({run.output_cues} cues)")
        logger.info(f"Report saved to: {run.report_path}")
        logger.info(f"--- Merge completed in {time.time() - start_time:.2f} seconds ---")
        return run
