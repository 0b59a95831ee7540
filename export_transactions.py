#!/usr/bin/env python3
"""Concordium Account History Export Tool.

This is the main entry point script for the CCD tax exporter.
It wraps the package CLI for convenient execution.

Usage:
    python export_transactions.py --account <ADDRESS> --output koinly.csv

For full documentation and options:
    python export_transactions.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from ccd_tax_exporter.cli import main

if __name__ == "__main__":
    sys.exit(main())
