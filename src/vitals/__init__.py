"""
VITALS - Project Health Analysis Engine

Runs a pluggable set of scanners over a source tree, merges their findings
into one issue list, scores project health, caches per-file results by
content hash, and renders the result into several report formats.
"""

__version__ = "1.0.0"
__author__ = "VITALS Team"
__status__ = "Development"
