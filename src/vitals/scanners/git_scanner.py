"""
Git Scanner - Working-tree and upstream status of the project repository.

Besides issues, a run captures a GitSnapshot that reports render as the
Git Status section.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from ..config import AnalyzerConfig
from ..errors import CommandTimeoutError, ExternalCommandError
from ..models import BranchStatus, GitSnapshot, Impact, Issue, IssueContext, Location, Severity, SeverityLevel, Urgency
from .base_scanner import BaseScanner, ScanError, ScannerTimeoutError


CONFLICT_MARKERS = ("UU", "AA", "DD")

BRANCH_MESSAGES = {
    BranchStatus.DETACHED: (
        SeverityLevel.HIGH,
        "Detached HEAD State",
        "Repository is in a detached HEAD state; create or switch to a branch to avoid losing work.",
        "Create or checkout a branch before committing further changes.",
    ),
    BranchStatus.DIVERGED: (
        SeverityLevel.HIGH,
        "Branch Has Diverged From Upstream",
        "Local branch has diverged; manual merge or rebase is required.",
        "Resolve divergence with `git pull --rebase` or a manual merge.",
    ),
    BranchStatus.BEHIND: (
        SeverityLevel.MEDIUM,
        "Branch Is Behind Upstream",
        "Local branch is behind upstream; pull latest changes to avoid conflicts.",
        "Run `git pull --rebase` to update your branch.",
    ),
    BranchStatus.AHEAD: (
        SeverityLevel.LOW,
        "Branch Ahead Of Upstream",
        "Local branch has commits not pushed to upstream.",
        "Push your local commits to the remote repository.",
    ),
}


def parse_status(output: str) -> Dict[str, List[str]]:
    """Group `git status --porcelain` lines by change type"""
    groups: Dict[str, List[str]] = {
        "added": [], "modified": [], "deleted": [], "untracked": [], "conflicts": [], "all": [],
    }
    for line in output.splitlines():
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        groups["all"].append(path)
        if code == "??":
            groups["untracked"].append(path)
        elif code in CONFLICT_MARKERS:
            groups["conflicts"].append(path)
        elif "A" in code:
            groups["added"].append(path)
        elif "D" in code:
            groups["deleted"].append(path)
        elif "M" in code or "R" in code:
            groups["modified"].append(path)
    return groups


def branch_status(branch: str, ahead: int, behind: int) -> BranchStatus:
    if not branch:
        return BranchStatus.DETACHED
    if ahead > 0 and behind > 0:
        return BranchStatus.DIVERGED
    if behind > 0:
        return BranchStatus.BEHIND
    if ahead > 0:
        return BranchStatus.AHEAD
    return BranchStatus.UP_TO_DATE


class GitScanner(BaseScanner):
    """
    Reports uncommitted changes, branch drift and merge conflicts.

    Only applies when git integration is on and the project root holds a
    .git directory.
    """

    name = "git"
    kind = "git"
    category = "Git"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.last_snapshot: Optional[GitSnapshot] = None

    def can_run(self, config: AnalyzerConfig) -> bool:
        return (
            super().can_run(config)
            and config.git_integration
            and (config.project_root / ".git").exists()
        )

    def report_context(self) -> Dict[str, Any]:
        return {"git": self.last_snapshot} if self.last_snapshot is not None else {}

    async def run(self, config: AnalyzerConfig) -> List[Issue]:
        self.last_snapshot = None
        self.logger.info("git_status_started")
        commands = config.commands

        try:
            branch_result, status_result, log_result = await asyncio.gather(
                self.run_command(commands.git_branch, config),
                self.run_command(commands.git_status, config),
                self.run_command(commands.git_log, config),
            )
        except CommandTimeoutError as e:
            raise ScannerTimeoutError(self.name, f"Git command timed out: {e.message}", e) from e
        except ExternalCommandError as e:
            raise ScanError(self.name, f"Failed to run git command: {e.message}", e) from e

        if not status_result.ok:
            raise ScanError(self.name, f"git status failed: {status_result.stderr.strip()}")

        branch = branch_result.stdout.strip()
        commit = log_result.stdout.strip().split(" ")[0] if log_result.stdout.strip() else ""
        groups = parse_status(status_result.stdout)
        ahead, behind = await self._ahead_behind(config)

        snapshot = GitSnapshot(
            branch=branch,
            commit=commit,
            uncommitted_changes=bool(groups["all"]),
            branch_status=branch_status(branch, ahead, behind),
            conflicts=bool(groups["conflicts"]),
            ahead_by=ahead,
            behind_by=behind,
            added=groups["added"],
            modified=groups["modified"],
            deleted=groups["deleted"],
            untracked=groups["untracked"],
        )
        self.last_snapshot = snapshot

        issues = self._issues_for(snapshot, groups["conflicts"])
        self.record_run(issues)
        self.logger.info(
            "git_status_completed",
            branch=branch or None,
            status=snapshot.branch_status.value,
            issues=len(issues),
        )
        return issues

    async def _ahead_behind(self, config: AnalyzerConfig) -> Tuple[int, int]:
        """Commits ahead/behind the upstream; (0, 0) without an upstream"""
        try:
            result = await self.run_command(config.commands.git_upstream, config)
        except ExternalCommandError as e:
            self.logger.debug("upstream_unavailable", error=e.message)
            return 0, 0

        counts = result.stdout.split()
        if not result.ok or len(counts) != 2:
            return 0, 0
        try:
            return int(counts[0]), int(counts[1])
        except ValueError:
            return 0, 0

    def _issues_for(self, snapshot: GitSnapshot, conflicted: List[str]) -> List[Issue]:
        issues = []
        git_dir = Location(file=".git")

        if snapshot.uncommitted_changes:
            changed = (
                len(snapshot.added) + len(snapshot.modified) + len(snapshot.deleted)
                + len(snapshot.untracked) + len(conflicted)
            )
            issues.append(self.make_issue(
                SeverityLevel.LOW,
                "Uncommitted Changes",
                "There are uncommitted changes in the repository",
                git_dir,
                "git-status",
                suggestion="Commit or stash changes before deployment",
                context=IssueContext(current=(
                    f"{changed} uncommitted changes (added: {len(snapshot.added)}, "
                    f"modified: {len(snapshot.modified)}, deleted: {len(snapshot.deleted)}, "
                    f"untracked: {len(snapshot.untracked)})"
                )),
            ))

        if snapshot.branch_status in BRANCH_MESSAGES:
            level, title, description, suggestion = BRANCH_MESSAGES[snapshot.branch_status]
            high = level is SeverityLevel.HIGH
            issues.append(self.make_issue(
                level,
                title,
                description,
                git_dir,
                "git-branch-alignment",
                severity=Severity(
                    level=level,
                    impact=Impact.MAJOR if high else Impact.MINOR,
                    urgency=Urgency.HIGH if high else Urgency.MEDIUM,
                ),
                suggestion=suggestion,
                context=IssueContext(current=(
                    f"ahead: {snapshot.ahead_by}, behind: {snapshot.behind_by}, "
                    f"status: {snapshot.branch_status.value}"
                )),
            ))

        if snapshot.conflicts:
            issues.append(self.make_issue(
                SeverityLevel.HIGH,
                "Merge Conflicts Present",
                "Merge conflicts detected in the working tree. Resolve them before continuing.",
                git_dir,
                "git-conflicts",
                suggestion="Run `git status` and resolve conflicts marked as UU/AA/DD files.",
                context=IssueContext(current=f"Conflicted files: {', '.join(conflicted)}"),
            ))

        return issues
