"""
Health scoring - Derive ProjectHealth from a final issue list.
"""

from collections import Counter
from typing import Dict, Iterable, Optional

from ..models import HealthTrend, Issue, ProjectHealth, SeverityLevel, utcnow


# Points deducted per issue; info issues cost nothing
SEVERITY_PENALTY: Dict[SeverityLevel, int] = {
    SeverityLevel.CRITICAL: 20,
    SeverityLevel.HIGH: 10,
    SeverityLevel.MEDIUM: 5,
    SeverityLevel.LOW: 1,
    SeverityLevel.INFO: 0,
}

MAX_SCORE = 100


def calculate_project_health(
    issues: Iterable[Issue],
    previous: Optional[ProjectHealth] = None,
) -> ProjectHealth:
    """
    Score a run.

    score = max(0, 100 - (20*critical + 10*high + 5*medium + 1*low))

    Args:
        issues: Final (already filtered) issues of the run
        previous: Health of the previous run, used for the trend

    Returns:
        ProjectHealth with per-severity counts and a category histogram
    """
    issues = list(issues)
    by_level = Counter(issue.level for issue in issues)
    categories = Counter(issue.category for issue in issues)

    penalty = sum(SEVERITY_PENALTY[level] * count for level, count in by_level.items())
    score = max(0, round(MAX_SCORE - penalty))

    if previous is not None:
        velocity = score - previous.score
        trends = HealthTrend(improving=velocity >= 0, velocity=velocity, last_check=utcnow())
    else:
        trends = HealthTrend(improving=True, velocity=0, last_check=utcnow())

    return ProjectHealth(
        score=score,
        critical_issues=by_level[SeverityLevel.CRITICAL],
        high_issues=by_level[SeverityLevel.HIGH],
        medium_issues=by_level[SeverityLevel.MEDIUM],
        low_issues=by_level[SeverityLevel.LOW],
        info_issues=by_level[SeverityLevel.INFO],
        total_issues=len(issues),
        categories=dict(categories),
        trends=trends,
    )


def health_band(score: int) -> str:
    """Name of the score band used by renderers"""
    if score >= 80:
        return "good"
    if score >= 60:
        return "fair"
    if score >= 40:
        return "poor"
    return "critical"
