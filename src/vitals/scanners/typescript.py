"""
TypeScript diagnostics - Parse `tsc` output shared by the syntax and type scanners.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..models import SeverityLevel


# src/app.ts(12,5): error TS2304: Cannot find name 'foo'.
DIAGNOSTIC_LINE = re.compile(r"^(.+)\((\d+),(\d+)\): error TS(\d+): (.+)$")

CRITICAL_CODES = {"2304", "2322", "2339", "2345"}  # unknown names, assignability
HIGH_CODES = {"2531", "2532", "2533"}  # possibly null/undefined


@dataclass(frozen=True)
class Diagnostic:
    """One `error TSxxxx` line"""
    file: str
    line: int
    column: int
    code: str
    message: str
    raw: str

    @property
    def is_syntax(self) -> bool:
        """TS1xxx codes are parser (syntax) errors"""
        return self.code.startswith("1") and len(self.code) == 4


def severity_for(code: str) -> SeverityLevel:
    if code in CRITICAL_CODES:
        return SeverityLevel.CRITICAL
    if code in HIGH_CODES:
        return SeverityLevel.HIGH
    return SeverityLevel.MEDIUM


def parse_diagnostics(output: str, project_root: Path) -> List[Diagnostic]:
    """
    Extract diagnostics from compiler output.

    Paths are made relative to the project root; lines that are not
    diagnostics (file listings, summaries) are ignored.
    """
    diagnostics = []
    for raw in output.splitlines():
        match = DIAGNOSTIC_LINE.match(raw.strip())
        if match is None:
            continue
        file, line, column, code, message = match.groups()
        path = Path(file)
        if path.is_absolute():
            file = os.path.relpath(path, project_root)
        diagnostics.append(Diagnostic(
            file=Path(file).as_posix(),
            line=int(line),
            column=int(column),
            code=code,
            message=message,
            raw=raw.strip(),
        ))
    return diagnostics
