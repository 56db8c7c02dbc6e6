#!/usr/bin/env python3
"""
Riverlevels CLI entrypoint.

Usage:
    python -m riverlevels [options]
    riverlevels [options]  # if installed via pip

See --help for available options.
"""

from __future__ import annotations

import sys

from riverlevels.cli import main

if __name__ == "__main__":
    sys.exit(main())
