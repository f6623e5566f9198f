"""Command-Line Interface handler for mergesub."""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

from .config_loader import ConfigLoader
from .log_setup import setup_logging
from .models import MergeOptions, ShiftMode
from .transcript_merger import MODE_ALIGNED, MODE_SEQUENTIAL, MODES, TranscriptMerger
from .utils import find_subtitle_files
from .exceptions import MergeSubError, ConfigurationError

logger = logging.getLogger(__name__) # Get logger for this module

DEFAULT_CONFIG_PATH = "config.yaml"


def parse_file_offsets(values: Optional[List[str]]) -> Dict[int, int]:
    """Turns repeated ``INDEX=MS`` arguments into a per-file offset mapping."""
    offsets = {}
    for value in values or []:
        index, sep, millis = value.partition("=")
        try:
            if not sep or not index.strip().isdecimal() or not millis.strip().isdecimal():
                raise ValueError(value)
            offsets[int(index)] = int(millis)
        except ValueError as e:
            raise argparse.ArgumentTypeError(
                f"Invalid --file-offset '{value}'. Use INDEX=MILLISECONDS, e.g. 0=1683760") from e
    return offsets


class CLIHandler:
    """Parses arguments and orchestrates the merge."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            description="mergesub: Merge subtitle transcripts end to end into one continuous timeline.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        parser.add_argument(
            "inputs",
            nargs="*",
            help="Subtitle files to merge, in timeline order."
        )
        parser.add_argument(
            "-i", "--input-dir",
            default=None,
            help="Merge every subtitle file in this directory (natural filename order) after any listed inputs."
        )
        parser.add_argument(
            "-o", "--output-dir",
            default=None, # Default taken from config file
            help="Directory for the merged document and report. Overrides 'output_dir' in the config."
        )
        parser.add_argument(
            "-c", "--config",
            default=None,
            help=f"Path to the configuration YAML file. '{DEFAULT_CONFIG_PATH}' is used when present."
        )
        parser.add_argument(
            "--mode",
            default=MODE_SEQUENTIAL,
            choices=MODES,
            help="sequential: raw-text merge with diagnostics; structured: typed cue merge with "
                 "warning/error codes; aligned: primary file plus secondaries at computed offsets."
        )
        parser.add_argument(
            "--primary",
            default=None,
            help="Primary file for aligned mode (defaults to the first input)."
        )
        parser.add_argument(
            "--shift-mode",
            default=ShiftMode.AUTO.value,
            choices=[m.value for m in ShiftMode],
            help="Offset strategy for aligned mode."
        )
        parser.add_argument(
            "--custom-offset",
            default=None,
            help="Offset (HH:MM:SS,mmm) applied to every secondary with --shift-mode custom."
        )
        parser.add_argument(
            "--file-offset",
            action="append",
            default=None,
            metavar="INDEX=MS",
            help="Structured mode: treat file INDEX as lasting MS milliseconds when shifting later files. Repeatable."
        )
        parser.add_argument(
            "--sort-by-start",
            action="store_true",
            help="Structured mode: sort the merged cues by start time."
        )
        parser.add_argument(
            "--no-progress",
            action="store_true",
            help="Disable the progress bar."
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        return parser

    def _resolve_config_path(self, config_arg: Optional[str]) -> Optional[str]:
        if config_arg:
            return config_arg
        if os.path.isfile(DEFAULT_CONFIG_PATH):
            return DEFAULT_CONFIG_PATH
        return None

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the merge."""
        args = self.parser.parse_args(argv)

        # --- Setup Logging ---
        log_level_name = args.log_level.upper()
        log_level = getattr(logging, log_level_name, logging.INFO)

        # Console-only until the config says where log files go
        setup_logging(log_level=log_level, log_dir=None)

        # --- Load Configuration ---
        config_path = self._resolve_config_path(args.config)
        try:
            config = ConfigLoader().load_config(config_path)
        except ConfigurationError as e:
            logger.critical(f"Failed to load configuration from {config_path}: {e}", exc_info=True)
            sys.exit(1)
        except FileNotFoundError:
             logger.critical(f"Configuration file not found: {config_path}", exc_info=True)
             sys.exit(1)

        # --- Re-configure Logging with settings from Config ---
        setup_logging(log_level=log_level, log_dir=config.get('log_dir'), log_file=config.get('log_file', 'mergesub.log'))

        # --- Apply CLI Overrides ---
        output_dir = args.output_dir or config.get('output_dir', 'merged')
        if args.output_dir:
            logger.info(f"Overriding output_dir from config with CLI argument: {args.output_dir}")

        try:
            file_offsets = parse_file_offsets(args.file_offset)
        except argparse.ArgumentTypeError as e:
            self.parser.error(str(e))

        try:
            # --- Collect Inputs ---
            paths = list(args.inputs)
            if args.input_dir:
                paths.extend(p for p in find_subtitle_files(args.input_dir, config.get('input_extensions', ['.srt']))
                             if p not in paths)
            if not paths:
                self.parser.error("No input files. Pass subtitle files or --input-dir.")
            if args.mode != MODE_ALIGNED and (args.primary or args.custom_offset):
                logger.warning("--primary/--custom-offset only apply to aligned mode; ignoring.")

            options = MergeOptions(per_file_offset_ms=file_offsets, sort_final_by_start=args.sort_by_start)
            merger = TranscriptMerger(config, show_progress=not args.no_progress)
            run = merger.run(
                paths,
                output_dir,
                mode=args.mode,
                primary_path=args.primary,
                shift_mode=args.shift_mode,
                custom_offset=args.custom_offset,
                options=options,
            )
            for warning in run.warnings:
                logger.warning(f"Merge warning: {warning}")
            if run.errors:
                logger.error(f"Merge reported errors: {', '.join(run.errors)}")
                sys.exit(1)
            logger.info("mergesub finished successfully.")
            sys.exit(0)

        except (MergeSubError, FileNotFoundError) as e:
             # Catch errors originating from our application logic
             logger.error(f"A mergesub error occurred: {e}")
             sys.exit(1)
        except KeyboardInterrupt:
             logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
             sys.exit(1)
        except Exception as e:
             # Catch any other unexpected errors
             logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
             sys.exit(2) # Use a different exit code for unexpected crashes


def main(argv: Optional[List[str]] = None) -> None:
    CLIHandler().run(argv)
