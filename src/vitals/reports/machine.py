"""
Machine-readable renderers: JSON, SARIF 2.1.0, CSV and JUnit XML.
"""

import csv
import io
import json
import re
from typing import Any, Dict, List
from xml.sax.saxutils import escape

from .. import __version__
from ..models import AnalysisResult, Issue, SeverityLevel
from .common import ANSI_ESCAPE


SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
SARIF_VERSION = "2.1.0"
TOOL_NAME = "VITALS"

SARIF_LEVELS: Dict[SeverityLevel, str] = {
    SeverityLevel.CRITICAL: "error",
    SeverityLevel.HIGH: "error",
    SeverityLevel.MEDIUM: "warning",
    SeverityLevel.LOW: "note",
    SeverityLevel.INFO: "note",
}

CSV_HEADER = (
    "ID", "Severity", "Category", "Title", "Description", "File", "Line", "Column",
    "Rule", "Source", "Auto Fixable", "Suggestion",
)

XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}
# code points XML 1.0 does not allow, even as character references
XML_ILLEGAL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")
FAILING_LEVELS = (SeverityLevel.CRITICAL, SeverityLevel.HIGH)


def render_json(result: AnalysisResult) -> str:
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def _sarif_result(issue: Issue) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "ruleId": issue.rule_id,
        "level": SARIF_LEVELS[issue.level],
        "message": {"text": f"{issue.title}: {issue.description}"},
        "locations": [{
            "physicalLocation": {
                "artifactLocation": {"uri": issue.file},
                "region": {
                    "startLine": issue.line or 1,
                    "startColumn": issue.column or 1,
                },
            },
        }],
        "properties": {
            "severity": issue.level.value,
            "category": issue.category,
            "source": issue.source,
            "autoFixable": issue.auto_fixable,
        },
    }
    if issue.metadata is not None and issue.metadata.checksum:
        entry["partialFingerprints"] = {"lineChecksum": issue.metadata.checksum}
    return entry


def render_sarif(result: AnalysisResult, tool_name: str = TOOL_NAME, tool_version: str = __version__) -> str:
    """SARIF log with one rule per distinct ruleId and one result per issue"""
    rules: Dict[str, Dict[str, Any]] = {}
    for issue in result.issues:
        if issue.rule_id in rules:
            continue
        rule: Dict[str, Any] = {
            "id": issue.rule_id,
            "name": issue.rule_id,
            "shortDescription": {"text": issue.title},
            "fullDescription": {"text": issue.description},
            "defaultConfiguration": {"level": SARIF_LEVELS[issue.level]},
            "properties": {"category": issue.category},
        }
        if issue.documentation:
            rule["helpUri"] = issue.documentation
        rules[issue.rule_id] = rule

    log = {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [{
            "tool": {
                "driver": {
                    "name": tool_name,
                    "version": tool_version,
                    "rules": list(rules.values()),
                },
            },
            "results": [_sarif_result(issue) for issue in result.issues],
        }],
    }
    return json.dumps(log, indent=2, ensure_ascii=False)


def render_csv(result: AnalysisResult) -> str:
    """RFC 4180 rows (one per issue) followed by a summary block"""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for issue in result.issues:
        writer.writerow((
            issue.id,
            issue.level.value,
            issue.category,
            issue.title,
            issue.description,
            issue.file,
            "" if issue.line is None else issue.line,
            "" if issue.column is None else issue.column,
            issue.rule_id,
            issue.source,
            "yes" if issue.auto_fixable else "no",
            issue.suggestion or "",
        ))

    health = result.health
    writer.writerow(())
    writer.writerow(("Summary",))
    writer.writerow(("Health Score", health.score))
    writer.writerow(("Total Issues", health.total_issues))
    writer.writerow(("Critical", health.critical_issues))
    writer.writerow(("High", health.high_issues))
    writer.writerow(("Medium", health.medium_issues))
    writer.writerow(("Low", health.low_issues))
    writer.writerow(("Info", health.info_issues))
    writer.writerow(("Generated", result.generated_at.isoformat()))
    return buffer.getvalue()


def _xml(text: Any) -> str:
    text = XML_ILLEGAL.sub("", ANSI_ESCAPE.sub("", str(text)))
    return escape(text, XML_ENTITIES)


def render_junit(result: AnalysisResult, suite_name: str = "Project Health Analysis") -> str:
    """One testsuite; critical and high issues are failures"""
    health = result.health
    failures = health.critical_issues + health.high_issues
    timestamp = result.generated_at.isoformat()

    lines: List[str] = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f"<testsuites name=\"{_xml(suite_name)}\" tests=\"{len(result.issues)}\" failures=\"{failures}\">",
        f"  <testsuite name=\"{_xml(suite_name)}\" tests=\"{len(result.issues)}\" "
        f"failures=\"{failures}\" errors=\"0\" skipped=\"0\" timestamp=\"{_xml(timestamp)}\">",
    ]
    for issue in result.issues:
        name = _xml(issue.title)
        classname = _xml(f"{issue.category}.{issue.file}")
        if issue.level in FAILING_LEVELS:
            lines.append(f'    <testcase name="{name}" classname="{classname}">')
            lines.append(
                f'      <failure message="{name}" type="{issue.level.value}">{_xml(issue.description)}</failure>'
            )
            lines.append("    </testcase>")
        else:
            lines.append(f'    <testcase name="{name}" classname="{classname}"/>')
    lines.append("  </testsuite>")
    lines.append("</testsuites>")
    return "\n".join(lines) + "\n"
