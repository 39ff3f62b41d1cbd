"""Command-line interface module for xmltool.

This module provides the `xmltool` command, which fixes single files or whole
directory trees and audits well-formed XML files.
"""

from .main import main

__all__ = ["main"]
