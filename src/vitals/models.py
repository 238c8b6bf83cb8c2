"""
Models - Core data structures shared by scanners, cache, orchestrator and reports.

Issues are immutable once created: a re-run produces a new issue set.
Every structure serializes to camelCase dictionaries (the same shape used by
the cache artifact and the JSON report) and can be rebuilt from them.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SeverityLevel(Enum):
    """How bad a finding is"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class Impact(Enum):
    """What the finding does to the project"""
    BLOCKING = "blocking"
    MAJOR = "major"
    MINOR = "minor"
    COSMETIC = "cosmetic"


class Urgency(Enum):
    """How soon the finding should be addressed"""
    IMMEDIATE = "immediate"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Lower rank = more severe
SEVERITY_RANK: Dict[SeverityLevel, int] = {
    SeverityLevel.CRITICAL: 0,
    SeverityLevel.HIGH: 1,
    SeverityLevel.MEDIUM: 2,
    SeverityLevel.LOW: 3,
    SeverityLevel.INFO: 4,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Severity:
    """Severity triple attached to every issue"""
    level: SeverityLevel
    impact: Impact
    urgency: Urgency

    @classmethod
    def for_level(cls, level: SeverityLevel) -> "Severity":
        """Default impact/urgency for a severity level"""
        defaults = {
            SeverityLevel.CRITICAL: (Impact.BLOCKING, Urgency.IMMEDIATE),
            SeverityLevel.HIGH: (Impact.MAJOR, Urgency.HIGH),
            SeverityLevel.MEDIUM: (Impact.MINOR, Urgency.MEDIUM),
            SeverityLevel.LOW: (Impact.MINOR, Urgency.LOW),
            SeverityLevel.INFO: (Impact.COSMETIC, Urgency.LOW),
        }
        impact, urgency = defaults[level]
        return cls(level=level, impact=impact, urgency=urgency)

    def is_at_least(self, threshold: SeverityLevel) -> bool:
        return SEVERITY_RANK[self.level] <= SEVERITY_RANK[threshold]

    def to_dict(self) -> Dict[str, str]:
        return {
            "level": self.level.value,
            "impact": self.impact.value,
            "urgency": self.urgency.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Severity":
        return cls(
            level=SeverityLevel(data["level"]),
            impact=Impact(data["impact"]),
            urgency=Urgency(data["urgency"]),
        )


@dataclass(frozen=True)
class Location:
    """Where an issue was found, relative to the project root"""
    file: str
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self) -> str:
        if self.line is None:
            return self.file
        if self.column is None:
            return f"{self.file}:{self.line}"
        return f"{self.file}:{self.line}:{self.column}"

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(file=data["file"], line=data.get("line"), column=data.get("column"))


@dataclass(frozen=True)
class IssueContext:
    """Source lines surrounding an issue (up to 2 before and after)"""
    current: str
    before: Tuple[str, ...] = ()
    after: Tuple[str, ...] = ()

    @classmethod
    def from_lines(cls, lines: List[str], index: int) -> "IssueContext":
        """Build context around lines[index]"""
        return cls(
            current=lines[index],
            before=tuple(lines[max(0, index - 2):index]),
            after=tuple(lines[index + 1:index + 3]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "before": list(self.before),
            "current": self.current,
            "after": list(self.after),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueContext":
        return cls(
            current=data["current"],
            before=tuple(data.get("before") or ()),
            after=tuple(data.get("after") or ()),
        )


@dataclass(frozen=True)
class IssueMetadata:
    """Optional hints attached by scanners"""
    checksum: Optional[str] = None
    timestamp: Optional[datetime] = None
    component: Optional[str] = None
    framework: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checksum": self.checksum,
            "timestamp": _format_datetime(self.timestamp),
            "component": self.component,
            "framework": self.framework,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueMetadata":
        return cls(
            checksum=data.get("checksum"),
            timestamp=_parse_datetime(data.get("timestamp")),
            component=data.get("component"),
            framework=data.get("framework"),
        )


@dataclass(frozen=True)
class Issue:
    """
    One normalized finding.

    This is the core data structure that all scanners return. It is cached,
    merged, scored and rendered, but never modified after creation.
    """

    id: str
    kind: str
    severity: Severity
    title: str
    description: str
    location: Location
    rule_id: str
    category: str
    source: str
    suggestion: Optional[str] = None
    auto_fixable: bool = False
    documentation: Optional[str] = None
    context: Optional[IssueContext] = None
    metadata: Optional[IssueMetadata] = None

    @classmethod
    def create(cls, kind: str, **fields: Any) -> "Issue":
        """Create an issue with a fresh run-unique id"""
        issue_id = fields.pop("id", None) or f"{kind}-{uuid.uuid4().hex[:12]}"
        return cls(id=issue_id, kind=kind, **fields)

    @property
    def level(self) -> SeverityLevel:
        return self.severity.level

    @property
    def file(self) -> str:
        return self.location.file

    @property
    def line(self) -> Optional[int]:
        return self.location.line

    @property
    def column(self) -> Optional[int]:
        return self.location.column

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "id": self.id,
            "kind": self.kind,
            "severity": self.severity.to_dict(),
            "title": self.title,
            "description": self.description,
            "location": self.location.to_dict(),
            "ruleId": self.rule_id,
            "category": self.category,
            "source": self.source,
            "suggestion": self.suggestion,
            "autoFixable": self.auto_fixable,
            "documentation": self.documentation,
            "context": self.context.to_dict() if self.context else None,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        context = data.get("context")
        metadata = data.get("metadata")
        return cls(
            id=data["id"],
            kind=data["kind"],
            severity=Severity.from_dict(data["severity"]),
            title=data["title"],
            description=data["description"],
            location=Location.from_dict(data["location"]),
            rule_id=data["ruleId"],
            category=data["category"],
            source=data["source"],
            suggestion=data.get("suggestion"),
            auto_fixable=bool(data.get("autoFixable", False)),
            documentation=data.get("documentation"),
            context=IssueContext.from_dict(context) if context else None,
            metadata=IssueMetadata.from_dict(metadata) if metadata else None,
        )


@dataclass(frozen=True)
class HealthTrend:
    """Trend stub comparing this run with the previous one"""
    improving: bool = True
    velocity: int = 0
    last_check: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "improving": self.improving,
            "velocity": self.velocity,
            "lastCheck": _format_datetime(self.last_check),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthTrend":
        return cls(
            improving=bool(data.get("improving", True)),
            velocity=int(data.get("velocity", 0)),
            last_check=_parse_datetime(data.get("lastCheck")) or utcnow(),
        )


@dataclass(frozen=True)
class ProjectHealth:
    """Aggregate health derived from the final issue list of one run"""
    score: int
    critical_issues: int = 0
    high_issues: int = 0
    medium_issues: int = 0
    low_issues: int = 0
    info_issues: int = 0
    total_issues: int = 0
    categories: Dict[str, int] = field(default_factory=dict)
    trends: HealthTrend = field(default_factory=HealthTrend)

    def count_for(self, level: SeverityLevel) -> int:
        return {
            SeverityLevel.CRITICAL: self.critical_issues,
            SeverityLevel.HIGH: self.high_issues,
            SeverityLevel.MEDIUM: self.medium_issues,
            SeverityLevel.LOW: self.low_issues,
            SeverityLevel.INFO: self.info_issues,
        }[level]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "criticalIssues": self.critical_issues,
            "highIssues": self.high_issues,
            "mediumIssues": self.medium_issues,
            "lowIssues": self.low_issues,
            "infoIssues": self.info_issues,
            "totalIssues": self.total_issues,
            "categories": dict(self.categories),
            "trends": self.trends.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectHealth":
        return cls(
            score=int(data["score"]),
            critical_issues=int(data.get("criticalIssues", 0)),
            high_issues=int(data.get("highIssues", 0)),
            medium_issues=int(data.get("mediumIssues", 0)),
            low_issues=int(data.get("lowIssues", 0)),
            info_issues=int(data.get("infoIssues", 0)),
            total_issues=int(data.get("totalIssues", 0)),
            categories=dict(data.get("categories") or {}),
            trends=HealthTrend.from_dict(data.get("trends") or {}),
        )


class BranchStatus(Enum):
    """Relationship between the local branch and its upstream"""
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    UP_TO_DATE = "up-to-date"
    DETACHED = "detached"


@dataclass
class GitSnapshot:
    """Version-control status captured by the git scanner"""
    branch: str
    commit: str
    uncommitted_changes: bool
    branch_status: BranchStatus
    conflicts: bool = False
    ahead_by: int = 0
    behind_by: int = 0
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch": self.branch,
            "commit": self.commit,
            "uncommittedChanges": self.uncommitted_changes,
            "branchStatus": self.branch_status.value,
            "conflicts": self.conflicts,
            "aheadBy": self.ahead_by,
            "behindBy": self.behind_by,
            "fileChanges": {
                "added": list(self.added),
                "modified": list(self.modified),
                "deleted": list(self.deleted),
            },
            "untracked": list(self.untracked),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GitSnapshot":
        changes = data.get("fileChanges") or {}
        return cls(
            branch=data["branch"],
            commit=data["commit"],
            uncommitted_changes=bool(data["uncommittedChanges"]),
            branch_status=BranchStatus(data["branchStatus"]),
            conflicts=bool(data.get("conflicts", False)),
            ahead_by=int(data.get("aheadBy", 0)),
            behind_by=int(data.get("behindBy", 0)),
            added=list(changes.get("added") or []),
            modified=list(changes.get("modified") or []),
            deleted=list(changes.get("deleted") or []),
            untracked=list(data.get("untracked") or []),
        )


class CheckStatus(Enum):
    """Outcome of a single deployment-readiness check"""
    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"


# attribute name -> serialized key, in display order
DEPLOYMENT_CHECKS: Tuple[Tuple[str, str], ...] = (
    ("build_status", "buildStatus"),
    ("type_checking", "typeChecking"),
    ("linting", "linting"),
    ("testing", "testing"),
    ("dependencies", "dependencies"),
    ("security", "security"),
    ("performance", "performance"),
    ("accessibility", "accessibility"),
    ("seo", "seo"),
    ("assets", "assets"),
)


@dataclass
class DeploymentChecklist:
    """Deployment-readiness checklist captured by the deployment scanner"""
    build_status: CheckStatus = CheckStatus.PASS
    type_checking: CheckStatus = CheckStatus.PASS
    linting: CheckStatus = CheckStatus.PASS
    testing: CheckStatus = CheckStatus.PASS
    dependencies: CheckStatus = CheckStatus.PASS
    security: CheckStatus = CheckStatus.PASS
    performance: CheckStatus = CheckStatus.PASS
    accessibility: CheckStatus = CheckStatus.PASS
    seo: CheckStatus = CheckStatus.PASS
    assets: CheckStatus = CheckStatus.PASS

    def items(self) -> List[Tuple[str, CheckStatus]]:
        """(serialized check name, status) pairs in display order"""
        return [(key, getattr(self, attr)) for attr, key in DEPLOYMENT_CHECKS]

    def to_dict(self) -> Dict[str, str]:
        return {key: status.value for key, status in self.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentChecklist":
        return cls(**{
            attr: CheckStatus(data[key])
            for attr, key in DEPLOYMENT_CHECKS
            if key in data
        })


@dataclass(frozen=True)
class ScannerFailure:
    """Diagnostic record for a scanner that failed during a run"""
    scanner: str
    error: str
    code: str = "SCAN_ERROR"

    def to_dict(self) -> Dict[str, str]:
        return {"scanner": self.scanner, "error": self.error, "code": self.code}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScannerFailure":
        return cls(
            scanner=data["scanner"],
            error=data["error"],
            code=data.get("code", "SCAN_ERROR"),
        )


@dataclass
class AnalysisResult:
    """
    Unified result of one orchestration run.

    A result with failures is partial: the issues of every scanner that
    succeeded are present, and each failed scanner is listed in `failures`.
    """

    issues: List[Issue]
    health: ProjectHealth
    git: Optional[GitSnapshot] = None
    deployment: Optional[DeploymentChecklist] = None
    failures: List[ScannerFailure] = field(default_factory=list)
    scan_id: str = ""
    generated_at: datetime = field(default_factory=utcnow)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanId": self.scan_id,
            "generatedAt": _format_datetime(self.generated_at),
            "partial": self.partial,
            "issues": [issue.to_dict() for issue in self.issues],
            "health": self.health.to_dict(),
            "git": self.git.to_dict() if self.git else None,
            "deployment": self.deployment.to_dict() if self.deployment else None,
            "failures": [failure.to_dict() for failure in self.failures],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        git = data.get("git")
        deployment = data.get("deployment")
        return cls(
            issues=[Issue.from_dict(item) for item in data.get("issues") or []],
            health=ProjectHealth.from_dict(data["health"]),
            git=GitSnapshot.from_dict(git) if git else None,
            deployment=DeploymentChecklist.from_dict(deployment) if deployment else None,
            failures=[ScannerFailure.from_dict(item) for item in data.get("failures") or []],
            scan_id=data.get("scanId", ""),
            generated_at=_parse_datetime(data.get("generatedAt")) or utcnow(),
        )
