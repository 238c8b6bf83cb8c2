#!/usr/bin/env python3
"""
VITALS - Project Health Analysis Engine

Main entry point for running the CLI from a source checkout.

Usage:
    python main.py analyze --project-root path/to/project
    python main.py analyze --format markdown --output report.md
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from vitals.cli import cli


if __name__ == "__main__":
    cli()
