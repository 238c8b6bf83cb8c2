"""
Security Scanner - Risky code patterns, hardcoded secrets and vulnerable dependencies.

Per-file checks go through FileScanner (cached by content hash). The
project-level checks (committed .env files, `npm audit`) run on every scan.
"""

import dataclasses
import json
import os
import re
from typing import List

from ..config import AnalyzerConfig
from ..errors import ExternalCommandError
from ..models import Issue, IssueContext, Location, SeverityLevel
from .base_scanner import FileScanner, PatternRule


SOURCE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".astro", ".vue", ".svelte", ".html")

CODE_RULES = (
    PatternRule(
        rule_id="no-eval",
        pattern=re.compile(r"\beval\s*\("),
        level=SeverityLevel.HIGH,
        title="Use of eval()",
        description="eval() executes arbitrary strings as code and enables injection attacks.",
        suggestion="Use JSON.parse() for data parsing and avoid evaluating strings as code",
    ),
    PatternRule(
        rule_id="no-new-function",
        pattern=re.compile(r"\bnew\s+Function\s*\("),
        level=SeverityLevel.HIGH,
        title="Dynamic Function Constructor",
        description="new Function() compiles strings at runtime, like eval().",
        suggestion="Replace dynamic code generation with explicit functions",
    ),
    PatternRule(
        rule_id="no-dangerously-set-inner-html",
        pattern=re.compile(r"dangerouslySetInnerHTML\s*=\s*\{"),
        level=SeverityLevel.HIGH,
        title="Unsanitized dangerouslySetInnerHTML",
        description="Raw HTML injection into React components can lead to XSS.",
        suggestion="Remove dangerouslySetInnerHTML or sanitize the HTML with DOMPurify",
        auto_fixable=True,
        unless=re.compile(r"(?i)sanitize|DOMPurify"),
        documentation="https://react.dev/reference/react-dom/components/common#dangerously-setting-the-inner-html",
    ),
    PatternRule(
        rule_id="no-inner-html",
        pattern=re.compile(r"\.innerHTML\s*=(?!=)"),
        level=SeverityLevel.MEDIUM,
        title="Direct innerHTML Assignment",
        description="Assigning to innerHTML can inject untrusted markup.",
        suggestion="Use textContent, createElement, or sanitize with DOMPurify",
    ),
    PatternRule(
        rule_id="no-document-write",
        pattern=re.compile(r"\bdocument\.write(?:ln)?\s*\("),
        level=SeverityLevel.MEDIUM,
        title="Use of document.write()",
        description="document.write() can inject untrusted markup and blocks parsing.",
        suggestion="Use modern DOM manipulation methods",
    ),
    PatternRule(
        rule_id="unvalidated-redirect",
        pattern=re.compile(r"window\.location\.href\s*=\s*[^\"'`\s]+"),
        level=SeverityLevel.LOW,
        title="Unvalidated Redirect",
        description="Navigating to a computed URL may allow open redirects.",
        suggestion="Validate and sanitize URLs before navigation",
    ),
)

SECRET_DESCRIPTION = "Possible hardcoded {name} detected. Never commit secrets to version control."
SECRET_SUGGESTION = "Move secrets to environment variables and add them to .gitignore"


def _secret_rule(name: str, pattern: str) -> PatternRule:
    return PatternRule(
        rule_id="no-hardcoded-secrets",
        pattern=re.compile(pattern, re.IGNORECASE),
        level=SeverityLevel.CRITICAL,
        title=f"Potential {name} Exposure",
        description=SECRET_DESCRIPTION.format(name=name),
        suggestion=SECRET_SUGGESTION,
    )


SECRET_RULES = (
    _secret_rule("API Key", r"""(['"]?)(?:api[_-]?key|apikey)\1\s*[:=]\s*(['"])[^'"]+\2"""),
    _secret_rule("Secret/Password", r"""(['"]?)(?:secret|password|passwd|pwd)\1\s*[:=]\s*(['"])[^'"]+\2"""),
    _secret_rule("Private Key", r"""(['"]?)private[_-]?key\1\s*[:=]\s*(['"])[^'"]+\2"""),
    _secret_rule("Auth Token", r"""(['"]?)(?:auth[_-]?token|access[_-]?token|bearer)\1\s*[:=]\s*(['"])[^'"]+\2"""),
    _secret_rule("Private Key Block", r"-----BEGIN (?:RSA |DSA |EC )?PRIVATE KEY-----"),
)

REDACT = re.compile(r"""(['"])[^'"]{8,}(['"])""")

AUDIT_BUCKETS = (
    # (npm key, level, auto fixable, suggestion)
    ("critical", SeverityLevel.CRITICAL, True, "Run `npm audit fix --force` or update vulnerable packages manually"),
    ("high", SeverityLevel.HIGH, True, "Run `npm audit` to see details and `npm audit fix` to resolve"),
    ("moderate", SeverityLevel.MEDIUM, False, "Review vulnerabilities with `npm audit` and update when possible"),
    ("low", SeverityLevel.LOW, False, "Plan upgrades for low severity issues during maintenance"),
)


def redact(line: str) -> str:
    return REDACT.sub(r"\1[REDACTED]\2", line)


def _redacted(issue: Issue) -> Issue:
    context = issue.context
    if context is None:
        return issue
    return dataclasses.replace(issue, context=IssueContext(
        current=redact(context.current),
        before=tuple(redact(line) for line in context.before),
        after=tuple(redact(line) for line in context.after),
    ))


class SecurityScanner(FileScanner):
    """
    Security scanner for source files and project configuration.

    Features:
    1. Risky API patterns (eval, innerHTML, document.write, ...)
    2. Hardcoded secrets, with the secret redacted from the issue context
    3. Committed .env files
    4. Dependency vulnerabilities from `npm audit` (when a lockfile exists)
    """

    name = "security"
    kind = "security"
    category = "Security"
    suffixes = SOURCE_SUFFIXES
    rules = CODE_RULES

    def scan_file(self, path: str, content: str, config: AnalyzerConfig) -> List[Issue]:
        issues = self.scan_lines(path, content, self.rules)
        if not os.path.basename(path).endswith(".example"):
            issues.extend(self.scan_lines(path, content, SECRET_RULES))
        # any flagged line may also hold a secret
        return [_redacted(issue) for issue in issues]

    async def project_checks(self, config: AnalyzerConfig) -> List[Issue]:
        issues = self._check_env_files(config)
        issues.extend(await self._check_dependencies(config))
        return issues

    def _check_env_files(self, config: AnalyzerConfig) -> List[Issue]:
        issues = []
        skip_dirs = set(config.ignore) | {"node_modules", ".git"}

        for current, dirnames, filenames in os.walk(config.project_root):
            dirnames[:] = [d for d in dirnames if d not in skip_dirs]
            for filename in filenames:
                if not filename.startswith(".env") or filename.endswith(".example"):
                    continue
                rel_path = os.path.relpath(os.path.join(current, filename), config.project_root)
                rel_path = rel_path.replace(os.sep, "/")
                issues.append(self.make_issue(
                    SeverityLevel.HIGH,
                    "Environment File Committed",
                    "Environment files should not be committed to version control; "
                    "they may contain secrets.",
                    Location(file=rel_path),
                    "env-files-in-repo",
                    suggestion="Remove committed .env files, rotate any exposed secrets, "
                               "and keep only a sanitized .env.example in the repo",
                    context=IssueContext(current=f"Found environment file: {rel_path}"),
                ))
        return sorted(issues, key=lambda issue: issue.file)

    async def _check_dependencies(self, config: AnalyzerConfig) -> List[Issue]:
        if not (config.project_root / "package-lock.json").is_file():
            self.logger.debug("audit_skipped", reason="no_lockfile")
            return []

        try:
            result = await self.run_command(config.commands.audit, config)
            counts = json.loads(result.stdout or "{}").get("metadata", {}).get("vulnerabilities", {})
        except (ExternalCommandError, ValueError, AttributeError) as e:
            self.logger.debug("audit_unavailable", error=str(e))
            return []

        issues = []
        for key, level, fixable, suggestion in AUDIT_BUCKETS:
            count = int(counts.get(key, 0) or 0)
            if count <= 0:
                continue
            issues.append(self.make_issue(
                level,
                f"{count} {key.capitalize()} Dependency Vulnerabilities",
                f"Found {count} {key} severity security vulnerabilities in dependencies.",
                Location(file="package.json"),
                "dependency-vulnerability",
                suggestion=suggestion,
                auto_fixable=fixable,
            ))
        return issues
