#!/usr/bin/env python3
"""
Main entry point for the From: rewriting filter.

Usage:
    python main.py check [RULES]
    python main.py rewrite [RULES] --mail <ADDR> [--rcpt <ADDR>] < message
    python main.py pipe [RULES]

See --help for available options.
"""

import sys

from filter_rwfrom.cli import main


if __name__ == "__main__":
    sys.exit(main())
