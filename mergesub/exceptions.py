"""Custom Exceptions for the mergesub application.

The merge engine itself never raises for malformed subtitle input; problems
there are reported in-band as warning/error codes and diagnostics. These
exceptions cover the host layers (config, file I/O) and caller mistakes.
"""

class MergeSubError(Exception):
    """Base class for exceptions in this module."""
    pass

class ConfigurationError(MergeSubError):
    """Exception raised for errors in configuration loading."""
    pass

class InvalidOptionsError(MergeSubError, ValueError):
    """Exception raised when merge or alignment options are malformed."""
    pass

class InputDecodingError(MergeSubError):
    """Exception raised when an input file cannot be decoded to text."""
    pass

class OutputWriteError(MergeSubError):
    """Exception raised for errors while writing the merged document or report."""
    pass

class FileSystemError(MergeSubError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass
