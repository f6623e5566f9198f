"""Handles loading configuration from YAML files."""

import yaml
import os
import logging
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'log_dir': 'logs',
    'log_file': 'mergesub.log',
    'output_dir': 'merged',
    'merged_filename': 'merged.srt',
    'diagnostics_filename': 'merge_diagnostics.json',
    'input_extensions': ['.srt'],
    'input_encoding': 'auto',
    'fallback_gap_ms': 200,
    'fallback_duration_ms': 1000,
    'empty_text_placeholder': '[No text]',
}

_INT_KEYS = ('fallback_gap_ms', 'fallback_duration_ms')
_STR_KEYS = ('log_file', 'output_dir', 'merged_filename', 'diagnostics_filename',
             'input_encoding', 'empty_text_placeholder')


class ConfigLoader:
    """Loads configuration settings from a YAML file on top of DEFAULT_CONFIG."""

    def load_config(self, config_path: Optional[str]) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Keys missing from the file keep their DEFAULT_CONFIG values. Passing
        None returns a copy of the defaults.

        Args:
            config_path: The path to the YAML configuration file, or None.

        Returns:
            A dictionary containing the loaded configuration settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML,
                              if a known key has a value of the wrong type,
                              or if there are other reading errors.
        """
        config = dict(DEFAULT_CONFIG)
        if config_path is None:
            logger.info("No configuration file given; using built-in defaults.")
            return config

        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            # An empty file is a valid "use the defaults"
            loaded = {}
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        config.update(loaded)
        self.validate(config, source=config_path)
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config

    @staticmethod
    def validate(config: dict, source: str = "<config>") -> None:
        """Checks the types and ranges of the keys mergesub understands."""
        for key in _INT_KEYS:
            value = config.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"'{key}' in {source} must be a non-negative integer, got {value!r}")
        for key in _STR_KEYS:
            if not isinstance(config.get(key), str):
                raise ConfigurationError(f"'{key}' in {source} must be a string, got {config.get(key)!r}")
        log_dir = config.get('log_dir')
        if log_dir is not None and not isinstance(log_dir, str):
            raise ConfigurationError(f"'log_dir' in {source} must be a string or null, got {log_dir!r}")
        extensions = config.get('input_extensions')
        if (not isinstance(extensions, list) or not extensions
                or not all(isinstance(ext, str) and ext for ext in extensions)):
            raise ConfigurationError(f"'input_extensions' in {source} must be a non-empty list of strings")
