"""Transitive symbol package resolution.

``ResolverSession`` runs a work-list over package ids. Each package carries
an effective minimum version that only ever rises; when a newly discovered
dependency raises the minimum of a package already resolved below it, that
package is resolved again. The run ends when the queue is empty, which is
guaranteed because minimums are bounded by the versions on the feeds and a
package is only re-queued when its minimum strictly increases.

Package ids are matched case-insensitively; the first spelling seen is kept
for display, the lock-file and the report.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple

from common.logging_utils import extra_context, is_debug_enabled, Timer
from registry.nuget.archive import inspect_archive
from registry.nuget.client import FeedClient
from symbols.cache_dir import cache_directory, payload_filename, purge_stale_payloads
from symbols.errors import ConfigurationError
from symbols.lockfile import LockFile, load_lockfile, save_lockfile
from symbols.manifest import AppManifest, load_manifest
from symbols.report import ProvenanceEdge, ResolutionReport, build_report
from versioning.models import PackageMetadata, ResolvedPackage
from versioning.parser import compare_versions, pick_version, satisfies

logger = logging.getLogger(__name__)

DependencyMap = Dict[str, Optional[str]]


class ResolverSession:
    """State for one resolution run of one app.

    Build a fresh session per run; nothing is shared between sessions.
    """

    def __init__(
        self,
        manifest: AppManifest,
        cache_dir: str,
        feed_client: FeedClient,
        lockfile: Optional[LockFile] = None,
        use_lockfile: bool = True,
    ):
        self.manifest = manifest
        self.cache_dir = cache_dir
        self.feed_client = feed_client
        self.lockfile = lockfile if lockfile is not None else load_lockfile(cache_dir)
        self.use_lockfile = use_lockfile

        self.queue: Deque[str] = deque()
        self.in_queue: Set[str] = set()
        self.minimums: Dict[str, Optional[str]] = {}
        self.resolved: Dict[str, str] = {}
        self.dependency_cache: Dict[Tuple[str, str], DependencyMap] = {}
        self.metadata_cache: Dict[str, PackageMetadata] = {}
        self.provenance: List[ProvenanceEdge] = []
        self.display_names: Dict[str, str] = {}

        self._locked: Dict[str, Tuple[str, str]] = {}
        self._lock_valid = False

    # -- bookkeeping -------------------------------------------------------

    def _key(self, package_id: str) -> str:
        key = package_id.lower()
        self.display_names.setdefault(key, package_id)
        return key

    def _enqueue(self, key: str) -> None:
        if key in self.in_queue:
            return
        self.queue.append(key)
        self.in_queue.add(key)

    def merge_requirement(self, parent: str, package_id: str, minimum: Optional[str]) -> bool:
        """Merge a minimum for ``package_id`` keeping the highest seen.

        A new entry or a strictly higher minimum records a provenance edge and
        (re)queues the package unless its current resolution still satisfies.

        Returns:
            True when the stored minimum was introduced or raised.
        """
        key = self._key(package_id)
        if key in self.minimums:
            current = self.minimums[key]
            if not minimum or (current and compare_versions(minimum, current) <= 0):
                return False
        self.minimums[key] = minimum
        self.provenance.append(ProvenanceEdge(parent, self.display_names[key], minimum))

        resolved = self.resolved.get(key)
        if resolved is not None and not satisfies(resolved, minimum):
            logger.info(
                "%s %s no longer satisfies >= %s required by %s; resolving again",
                self.display_names[key], resolved, minimum, parent,
            )
            del self.resolved[key]
            resolved = None
        if resolved is None:
            self._enqueue(key)
        return True

    # -- lock-file ---------------------------------------------------------

    def _load_locked(self) -> None:
        lock = self.lockfile
        self._lock_valid = (
            self.use_lockfile
            and bool(lock.packages)
            and lock.matches_baseline(self.manifest.application, self.manifest.platform)
        )
        if self.use_lockfile and lock.packages and not self._lock_valid:
            logger.info(
                "Lock-file baseline changed (application %s -> %s, platform %s -> %s); ignoring cached resolutions",
                lock.application, self.manifest.application, lock.platform, self.manifest.platform,
            )
        if not self._lock_valid:
            return
        for package_id, version in lock.packages.items():
            self._locked[package_id.lower()] = (package_id, version)

    def _locked_against(self, package_id: str, minimum: Optional[str]) -> bool:
        """True when the lock recorded ``package_id`` under this same minimum.

        A best-effort version below its minimum stays valid until the
        minimum itself changes.
        """
        if package_id not in self.lockfile.minimums:
            return False
        locked_min = self.lockfile.minimums[package_id]
        if not locked_min or not minimum:
            return locked_min == minimum
        return compare_versions(locked_min, minimum) == 0

    def _from_lockfile(self, key: str, minimum: Optional[str]) -> Optional[ResolvedPackage]:
        """Reuse a locked version whose payload and dependency list are known."""
        if not self._lock_valid or key not in self._locked:
            return None
        package_id, version = self._locked[key]
        if not satisfies(version, minimum) and not self._locked_against(package_id, minimum):
            return None
        if not os.path.isfile(os.path.join(self.cache_dir, payload_filename(package_id, version))):
            logger.debug("Locked payload for %s %s is missing; downloading", package_id, version)
            return None
        deps = self.dependency_cache.get((key, version))
        if deps is None:
            locked_deps = self.lockfile.dependencies.get(package_id)
            if locked_deps is None:
                return None
            deps = dict(locked_deps)
            self.dependency_cache[(key, version)] = deps
        if not satisfies(version, minimum):
            logger.warning(
                "No version of %s satisfies >= %s; keeping locked best available %s",
                package_id, minimum, version,
                extra=extra_context(event="version_conflict", component="session",
                                    package_id=package_id, outcome="best_effort"),
            )
        return ResolvedPackage(self.display_names[key], version, deps, from_cache=True)

    # -- feeds -------------------------------------------------------------

    def _metadata(self, key: str) -> PackageMetadata:
        metadata = self.metadata_cache.get(key)
        if metadata is None:
            metadata = self.feed_client.fetch_metadata(self.display_names[key])
            self.metadata_cache[key] = metadata
        return metadata

    def _download(self, key: str, metadata: PackageMetadata, version: str) -> DependencyMap:
        package_id = self.display_names[key]
        with Timer() as t, tempfile.TemporaryDirectory(prefix="alsymbols-") as tmp:
            nupkg = self.feed_client.download(metadata, version, tmp)
            purge_stale_payloads(self.cache_dir, package_id, keep=payload_filename(package_id, version))
            deps = inspect_archive(nupkg, self.cache_dir, package_id, version)
        logger.debug(
            "Downloaded %s %s",
            package_id,
            version,
            extra=extra_context(event="download", component="session", package_id=package_id,
                                target=version, duration_ms=t.duration_ms()),
        )
        return deps

    def _resolve_one(self, key: str) -> ResolvedPackage:
        minimum = self.minimums.get(key)
        package_id = self.display_names[key]

        earlier = self.resolved.get(key)
        if earlier is not None and satisfies(earlier, minimum) and (key, earlier) in self.dependency_cache:
            return ResolvedPackage(package_id, earlier, self.dependency_cache[(key, earlier)], from_cache=True)

        cached = self._from_lockfile(key, minimum)
        if cached is not None:
            return cached

        metadata = self._metadata(key)
        version, ok = pick_version(metadata.versions, minimum)
        if not ok:
            logger.warning(
                "No version of %s satisfies >= %s; using best available %s",
                package_id, minimum, version,
                extra=extra_context(event="version_conflict", component="session",
                                    package_id=package_id, outcome="best_effort"),
            )
        deps = self.dependency_cache.get((key, version))
        if deps is None:
            deps = self._download(key, metadata, version)
            self.dependency_cache[(key, version)] = deps
        return ResolvedPackage(package_id, version, deps)

    def _best_available(self) -> Dict[str, Optional[str]]:
        # Packages reused from the lock-file were never listed this run; their
        # locked version was the best available when it was resolved.
        highest: Dict[str, Optional[str]] = {self.display_names[k]: v for k, v in self.resolved.items()}
        for k, metadata in self.metadata_cache.items():
            highest[self.display_names[k]] = metadata.highest
        return highest

    # -- driver ------------------------------------------------------------

    def run(self, write_lockfile: bool = True) -> ResolutionReport:
        """Resolve the manifest's full dependency closure.

        The lock-file is only written after the whole closure resolved;
        any exception leaves the previous lock-file untouched.
        """
        self._load_locked()
        start_requests = self.feed_client.request_count

        for req in self.manifest.root_requirements():
            self.merge_requirement(req.origin, req.package_id, req.minimum)

        while self.queue:
            key = self.queue.popleft()
            self.in_queue.discard(key)
            pkg = self._resolve_one(key)
            self.resolved[key] = pkg.version
            if is_debug_enabled(logger):
                logger.debug(
                    "Resolved package",
                    extra=extra_context(event="resolved", component="session", package_id=pkg.package_id,
                                        target=pkg.version, outcome="cache" if pkg.from_cache else "feed"),
                )
            logger.info("%s %s%s", pkg.package_id, pkg.version, " (cached)" if pkg.from_cache else "")
            for dep_id, dep_min in pkg.dependencies.items():
                self.merge_requirement(pkg.package_id, dep_id, dep_min)

        resolved = {self.display_names[k]: v for k, v in self.resolved.items()}
        report = build_report(
            resolved,
            {self.display_names[k]: v for k, v in self.minimums.items()},
            self._best_available(),
            self.provenance,
        )
        report.network_requests = self.feed_client.request_count - start_requests

        if write_lockfile:
            lock = LockFile(
                application=self.manifest.application,
                platform=self.manifest.platform,
                app_id=self.manifest.id,
                app_name=self.manifest.name,
                publisher=self.manifest.publisher,
                packages=resolved,
                feeds=self.feed_client.feed_urls,
                dependencies={
                    self.display_names[k]: dict(self.dependency_cache.get((k, v), {}))
                    for k, v in self.resolved.items()
                },
                minimums={self.display_names[k]: self.minimums.get(k) for k in self.resolved},
            )
            report.lockfile = save_lockfile(self.cache_dir, lock)
        return report


def resolve(
    manifest: AppManifest,
    cache_dir: str,
    feeds: Sequence[str],
    use_lockfile: bool = True,
    feed_client: Optional[FeedClient] = None,
) -> ResolutionReport:
    """Resolve ``manifest`` against ``feeds`` into ``cache_dir``.

    Raises:
        ConfigurationError: no feeds configured.
        PackageNotFoundError, ArchiveError, FeedQueryError: fatal per-package errors.
    """
    if not feeds and feed_client is None:
        raise ConfigurationError("No package feeds configured")
    client = feed_client if feed_client is not None else FeedClient(feeds)
    if not client.feeds:
        raise ConfigurationError("No package feeds configured")
    session = ResolverSession(manifest, cache_dir, client, use_lockfile=use_lockfile)
    return session.run()


def resolve_app(app_path: str, cache_root: str, feeds: Sequence[str], use_lockfile: bool = True) -> ResolutionReport:
    """Load app.json from ``app_path`` and resolve it into its cache directory."""
    manifest = load_manifest(app_path)
    if not feeds:
        raise ConfigurationError("No package feeds configured")
    cache_dir = cache_directory(cache_root, manifest.publisher, manifest.name, manifest.id)
    logger.info("Resolving symbols for %s %s (%s) into %s",
                manifest.publisher, manifest.name, manifest.id, cache_dir)
    return resolve(manifest, cache_dir, feeds, use_lockfile=use_lockfile)
