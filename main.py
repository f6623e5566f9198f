#!/usr/bin/env python3
"""
mergesub Entry Point Script

This script initializes the CLI handler and runs the subtitle merge.
"""

import sys
from mergesub.cli import CLIHandler

if __name__ == "__main__":
    # Basic check for minimal Python version if necessary
    if sys.version_info < (3, 8):
        sys.stderr.write("mergesub requires Python 3.8 or later.\n")
        sys.exit(1)

    cli = CLIHandler()
    cli.run()
