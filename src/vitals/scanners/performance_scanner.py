"""
Performance Scanner - Oversized images and images that load eagerly.
"""

import os
import re
from typing import List

from ..config import AnalyzerConfig
from ..models import Issue, IssueContext, Location, SeverityLevel
from .base_scanner import FileScanner, PatternRule


IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".bmp")
LARGE_IMAGE_KB = 200
HUGE_IMAGE_KB = 500

LAZY_LOADING = PatternRule(
    rule_id="lazy-loading",
    pattern=re.compile(r"<img[^>]+src=", re.IGNORECASE),
    level=SeverityLevel.LOW,
    title="Image Missing Lazy Loading",
    description='Consider adding loading="lazy" to defer off-screen images.',
    suggestion='Add loading="lazy" attribute to images below the fold',
    auto_fixable=True,
    # icons and logos are usually above the fold
    unless=re.compile(r"loading=[\"']|icon|logo|avatar|favicon", re.IGNORECASE),
)


class PerformanceScanner(FileScanner):
    """
    Flags images without lazy loading (per file, cached) and image assets
    larger than 200KB (project-wide).
    """

    name = "performance"
    kind = "performance"
    category = "Performance"
    suffixes = (".astro", ".html", ".tsx", ".jsx", ".vue", ".svelte")
    rules = (LAZY_LOADING,)

    async def project_checks(self, config: AnalyzerConfig) -> List[Issue]:
        issues = []
        skip_dirs = set(config.ignore) | {"node_modules", ".git", "dist"}

        for current, dirnames, filenames in os.walk(config.project_root):
            dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)
            for filename in sorted(filenames):
                if os.path.splitext(filename)[1].lower() not in IMAGE_SUFFIXES:
                    continue
                full_path = os.path.join(current, filename)
                try:
                    size_kb = os.path.getsize(full_path) / 1024
                except OSError as e:
                    self.logger.debug("image_stat_failed", path=full_path, error=str(e))
                    continue
                if size_kb <= LARGE_IMAGE_KB:
                    continue

                rel_path = os.path.relpath(full_path, config.project_root).replace(os.sep, "/")
                issues.append(self.make_issue(
                    SeverityLevel.HIGH if size_kb > HUGE_IMAGE_KB else SeverityLevel.MEDIUM,
                    "Large Image File",
                    f"Image is {round(size_kb)}KB. Consider compressing or converting to WebP/AVIF.",
                    Location(file=rel_path),
                    "image-optimization",
                    suggestion="Use WebP/AVIF, compress the image, or serve responsive sizes",
                    context=IssueContext(current=f"{rel_path}: {round(size_kb)}KB"),
                ))
        return issues
