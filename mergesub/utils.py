"""Utility functions for mergesub."""

import os
import re
import logging
from typing import Iterable, List

import chardet

from .exceptions import FileSystemError, InputDecodingError

logger = logging.getLogger(__name__)

def ensure_dir_exists(dir_path: str) -> None:
    """
    Ensures that a directory exists. Creates it if it doesn't.

    Args:
        dir_path: The path to the directory.

    Raises:
        FileSystemError: If the directory cannot be created due to permissions
                         or if the path exists but is not a directory.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    try:
        if not os.path.exists(dir_path):
            os.makedirs(dir_path)
            logger.info(f"Created directory: {dir_path}")
        elif not os.path.isdir(dir_path):
            raise FileSystemError(f"Path exists but is not a directory: {dir_path}")
    except OSError as e:
        logger.error(f"Error creating or accessing directory {dir_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not create or access directory {dir_path}: {e}") from e

def natural_sort_key(s: str):
    """Sort key that orders 'part2' before 'part10'."""
    return [int(text) if text.isdigit() else text.lower()
            for text in re.split('([0-9]+)', s)]

def find_subtitle_files(input_dir: str, extensions: Iterable[str] = (".srt",)) -> List[str]:
    """
    Lists subtitle files in a directory in natural filename order.

    Args:
        input_dir: The directory to scan (not recursive).
        extensions: Accepted file extensions, compared case-insensitively.

    Returns:
        Full paths, naturally sorted by filename.

    Raises:
        FileNotFoundError: If the input directory doesn't exist.
        FileSystemError: If the input path is not a directory or can't be listed.
    """
    if not os.path.exists(input_dir):
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not os.path.isdir(input_dir):
        raise FileSystemError(f"Input path is not a directory: {input_dir}")

    suffixes = tuple(ext.lower() for ext in extensions)
    try:
        names = [
            name for name in os.listdir(input_dir)
            if name.lower().endswith(suffixes) and os.path.isfile(os.path.join(input_dir, name))
        ]
    except OSError as e:
        raise FileSystemError(f"Could not list directory {input_dir}: {e}") from e

    names.sort(key=natural_sort_key)
    logger.info(f"Found {len(names)} subtitle files in {input_dir}.")
    return [os.path.join(input_dir, name) for name in names]

def decode_subtitle_bytes(raw_data: bytes, encoding: str = "auto", source: str = "<bytes>") -> str:
    """
    Decodes subtitle file bytes to text.

    With ``encoding='auto'`` UTF-8 (with or without BOM) is tried first and
    chardet is consulted only when that fails.

    Raises:
        InputDecodingError: If the bytes cannot be decoded.
    """
    if encoding and encoding != "auto":
        try:
            text = raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            raise InputDecodingError(f"Could not decode {source} as {encoding}: {e}") from e
    else:
        try:
            text = raw_data.decode("utf-8-sig")
        except UnicodeDecodeError:
            detected = chardet.detect(raw_data)
            guess = detected.get("encoding")
            if not guess:
                raise InputDecodingError(f"Could not detect the text encoding of {source}")
            logger.info(f"{source} is not UTF-8; decoding as {guess} (confidence {detected.get('confidence', 0):.2f}).")
            try:
                text = raw_data.decode(guess)
            except (UnicodeDecodeError, LookupError) as e:
                raise InputDecodingError(f"Could not decode {source} as detected encoding {guess}: {e}") from e
    # Remove BOM if present
    if text.startswith('\ufeff'):
        text = text[1:]
    return text

def read_subtitle_file(file_path: str, encoding: str = "auto") -> str:
    """
    Reads a subtitle file as text.

    Raises:
        FileSystemError: If the file is missing or unreadable.
        InputDecodingError: If its bytes cannot be decoded.
    """
    if not os.path.isfile(file_path):
        raise FileSystemError(f"Input subtitle file not found or is not a file: {file_path}")
    try:
        with open(file_path, 'rb') as f:
            raw_data = f.read()
    except OSError as e:
        logger.error(f"Error reading subtitle file {file_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not read subtitle file {file_path}: {e}") from e
    return decode_subtitle_bytes(raw_data, encoding=encoding, source=file_path)
