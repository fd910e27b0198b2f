# SPDX-License-Identifier: MPL-2.0
"""
bindcheck - Main entry point for the CLI.

This module provides the command-line interface for the bindcheck package.
"""

from bindcheck.cli.main import cli

if __name__ == "__main__":
    cli()
