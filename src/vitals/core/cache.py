"""
Analysis Cache - Per-file scanner results keyed by content hash.

An entry may be reused for a requested scanner set only when:
    1. every requested scanner contributed to it,
    2. the file's current SHA-256 equals the stored hash, and
    3. the entry is younger than `max_age`.
Anything else forces a rescan and a full replacement of the entry.

The whole store is one JSON document under `<project_root>/.cache/`,
written once per run.
"""

import asyncio
import hashlib
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

import structlog

from ..errors import CacheCorruptionError, FileSystemError
from ..models import Issue


logger = structlog.get_logger(__name__)

CACHE_VERSION = "1.0.0"
DEFAULT_MAX_AGE = 24 * 60 * 60  # seconds
CACHE_DIRNAME = ".cache"
CACHE_FILENAME = "analysis-cache.json"

PathLike = Union[str, Path]


@dataclass
class CacheEntry:
    """Cached issues of one file"""
    content_hash: str
    issues: List[Issue]
    produced_by: Set[str]
    timestamp: float  # epoch seconds

    def is_fresh(self, now: float, max_age: float) -> bool:
        return now - self.timestamp < max_age

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentHash": self.content_hash,
            "issues": [issue.to_dict() for issue in self.issues],
            "producedBy": sorted(self.produced_by),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            content_hash=str(data["contentHash"]),
            issues=[Issue.from_dict(item) for item in data["issues"]],
            produced_by=set(data["producedBy"]),
            timestamp=float(data["timestamp"]),
        )


class AnalysisCache:
    """
    Content-addressed cache of scanner results.

    Owned by one orchestrator; loaded lazily before the first run and saved
    once after all scanners finish.

    Example:
        >>> cache = AnalysisCache(project_root)
        >>> await cache.initialize()
        >>> issues = await cache.get_cached_issues("src/app.ts", {"security"})
        >>> if issues is None:
        ...     await cache.record_scanner_issues("src/app.ts", "security", fresh)
        >>> await cache.save()
    """

    def __init__(
        self,
        project_root: PathLike,
        max_age: float = DEFAULT_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            project_root: Root all cached paths are relative to
            max_age: Entry lifetime in seconds
            clock: Source of epoch seconds (overridable in tests)
        """
        self.project_root = Path(project_root)
        self.cache_dir = self.project_root / CACHE_DIRNAME
        self.cache_file = self.cache_dir / CACHE_FILENAME
        self.max_age = max_age
        self.clock = clock
        self.files: Dict[str, CacheEntry] = {}
        self.initialized = False

    def _key(self, path: PathLike) -> str:
        path = Path(path)
        if path.is_absolute():
            try:
                path = path.relative_to(self.project_root)
            except ValueError:
                return path.as_posix()
        return path.as_posix()

    def _resolve(self, key: str) -> Path:
        path = Path(key)
        return path if path.is_absolute() else self.project_root / path

    async def initialize(self):
        """
        Load the store from disk.

        A missing, corrupt or version-mismatched artifact leaves an empty
        store; none of these abort a run.
        """
        self.initialized = True
        self.files = {}

        try:
            text = await asyncio.to_thread(self.cache_file.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.debug("cache_not_found", path=str(self.cache_file))
            return
        except OSError as e:
            logger.warning("cache_unreadable", path=str(self.cache_file), error=str(e))
            return

        try:
            data = json.loads(text)
            version = data["version"]
            raw_files = data["files"]
            if version != CACHE_VERSION:
                logger.warning("cache_version_mismatch", found=version, expected=CACHE_VERSION)
                await self.clear()
                return
            self.files = {key: CacheEntry.from_dict(value) for key, value in raw_files.items()}
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            error = CacheCorruptionError(str(self.cache_file), str(e))
            logger.warning("cache_corrupt", code=error.code, error=error.message)
            self.files = {}
            return

        logger.debug("cache_loaded", entries=len(self.files))

    async def file_hash(self, path: PathLike) -> str:
        """
        SHA-256 of a file's bytes.

        Raises:
            FileSystemError: If the file cannot be read
        """
        target = self._resolve(self._key(path))

        def _digest() -> str:
            digest = hashlib.sha256()
            with open(target, "rb") as handle:
                for chunk in iter(lambda: handle.read(65536), b""):
                    digest.update(chunk)
            return digest.hexdigest()

        try:
            return await asyncio.to_thread(_digest)
        except OSError as e:
            raise FileSystemError("hash", str(target), e) from e

    def _evict(self, key: str, entry: CacheEntry, reason: str):
        if self.files.get(key) is entry:
            del self.files[key]
            logger.debug("cache_evicted", path=key, reason=reason)

    async def get_cached_issues(
        self,
        path: PathLike,
        required_scanners: Iterable[str],
    ) -> Optional[List[Issue]]:
        """
        Return cached issues if the entry is usable for `required_scanners`.

        Stale entries (expired, content changed, file unreadable) are
        evicted. A hit returns the issues whose source is one of the
        required scanners.
        """
        key = self._key(path)
        entry = self.files.get(key)
        if entry is None:
            return None

        if not entry.is_fresh(self.clock(), self.max_age):
            self._evict(key, entry, "expired")
            return None

        try:
            current_hash = await self.file_hash(key)
        except FileSystemError:
            self._evict(key, entry, "unreadable")
            return None

        if current_hash != entry.content_hash:
            self._evict(key, entry, "content_changed")
            return None

        required = set(required_scanners)
        if not required.issubset(entry.produced_by):
            logger.debug("cache_partial", path=key, missing=sorted(required - entry.produced_by))
            return None

        logger.debug("cache_hit", path=key)
        return [issue for issue in entry.issues if issue.source in required]

    async def set_cached_issues(
        self,
        path: PathLike,
        issues: List[Issue],
        produced_by: Iterable[str],
    ):
        """Hash the file now and overwrite its entry"""
        key = self._key(path)
        try:
            content_hash = await self.file_hash(key)
        except FileSystemError as e:
            logger.warning("cache_write_skipped", path=key, error=e.message)
            return

        self.files[key] = CacheEntry(
            content_hash=content_hash,
            issues=list(issues),
            produced_by=set(produced_by),
            timestamp=self.clock(),
        )
        logger.debug("cache_stored", path=key, issues=len(issues))

    async def record_scanner_issues(self, path: PathLike, scanner: str, issues: List[Issue]):
        """
        Store one scanner's fresh results for a file.

        Other scanners' results are carried over only from an entry that is
        still fresh for the same content hash; otherwise the entry starts
        over with this scanner alone.
        """
        key = self._key(path)
        try:
            content_hash = await self.file_hash(key)
        except FileSystemError as e:
            logger.warning("cache_write_skipped", path=key, error=e.message)
            return

        # No suspension from here on: the merge sees one consistent entry.
        now = self.clock()
        existing = self.files.get(key)
        carried: List[Issue] = []
        produced_by = {scanner}
        timestamp = now

        if (
            existing is not None
            and existing.content_hash == content_hash
            and existing.is_fresh(now, self.max_age)
        ):
            carried = [issue for issue in existing.issues if issue.source != scanner]
            produced_by |= existing.produced_by
            # TODO: store per-scanner timestamps so a partial rescan does not keep the oldest age
            timestamp = existing.timestamp

        self.files[key] = CacheEntry(
            content_hash=content_hash,
            issues=carried + list(issues),
            produced_by=produced_by,
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": CACHE_VERSION,
            "files": {key: entry.to_dict() for key, entry in self.files.items()},
        }

    async def save(self):
        """Write the store to disk; failures are logged, not raised"""
        self.prune()
        payload = json.dumps(self.to_dict(), indent=2)

        def _write():
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            tmp_file = self.cache_file.with_suffix(".json.tmp")
            tmp_file.write_text(payload, encoding="utf-8")
            tmp_file.replace(self.cache_file)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            error = FileSystemError("write", str(self.cache_file), e)
            logger.warning("cache_save_failed", code=error.code, error=error.message)
            return

        logger.debug("cache_saved", entries=len(self.files))

    async def clear(self):
        """Reset the store and delete the artifact"""
        self.files = {}
        try:
            await asyncio.to_thread(self.cache_file.unlink, missing_ok=True)
        except OSError as e:
            logger.warning("cache_clear_failed", path=str(self.cache_file), error=str(e))
            return
        logger.info("cache_cleared", path=str(self.cache_file))

    def prune(self) -> int:
        """Drop expired entries and entries whose file is gone; returns how many"""
        now = self.clock()
        stale = [
            key for key, entry in self.files.items()
            if not entry.is_fresh(now, self.max_age) or not self._resolve(key).is_file()
        ]
        for key in stale:
            del self.files[key]
        if stale:
            logger.debug("cache_pruned", removed=len(stale))
        return len(stale)

    def invalidate(self, paths: Iterable[PathLike]) -> int:
        """Remove specific entries; returns how many existed"""
        removed = 0
        for path in paths:
            if self.files.pop(self._key(path), None) is not None:
                removed += 1
        logger.debug("cache_invalidated", removed=removed)
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            total_files, total_issues and the oldest/newest entry timestamps
            (epoch seconds, None when empty)
        """
        timestamps = [entry.timestamp for entry in self.files.values()]
        return {
            "total_files": len(self.files),
            "total_issues": sum(len(entry.issues) for entry in self.files.values()),
            "oldest_entry": min(timestamps) if timestamps else None,
            "newest_entry": max(timestamps) if timestamps else None,
        }
