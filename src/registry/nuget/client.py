"""NuGet feed client: list package versions and download .nupkg archives.

Feeds are NuGet V3 endpoints. A configured URL ending in ``index.json`` is
treated as a service index and the ``PackageBaseAddress/3.0.0`` resource is
discovered from it; any other URL is taken as the flat-container base
address directly.
"""
from __future__ import annotations

import base64
import logging
import os
import urllib.parse
from typing import Any, Dict, List, Optional, Sequence, Tuple

from constants import Constants
from common.http_client import get_json, download_file
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from symbols.errors import FeedQueryError, PackageNotFoundError
from versioning.models import PackageMetadata
from versioning.parser import max_version

logger = logging.getLogger(__name__)

PACKAGE_BASE_ADDRESS_TYPE = "PackageBaseAddress/3.0.0"
HEADERS_JSON = {"Accept": "application/json"}


def _auth_headers() -> Dict[str, str]:
    """Basic auth header from $ALSYMBOLS_FEED_TOKEN (Azure Artifacts PAT style)."""
    token = os.environ.get(Constants.ENV_FEED_TOKEN, "").strip()
    if not token:
        return {}
    encoded = base64.b64encode(f":{token}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {encoded}"}


class NuGetFeed:
    """A single NuGet V3 feed."""

    def __init__(self, url: str):
        self.url = url.strip()
        self._base_address: Optional[str] = None

    def __repr__(self) -> str:
        return f"NuGetFeed({safe_url(self.url)!r})"

    def _headers(self) -> Dict[str, str]:
        return {**HEADERS_JSON, **_auth_headers()}

    def base_address(self, package_id: str = "") -> str:
        """Return the flat-container base address, discovering it once.

        Raises:
            FeedQueryError: service index unavailable or lacking the resource.
        """
        if self._base_address is not None:
            return self._base_address

        if not self.url.lower().endswith("index.json"):
            self._base_address = self.url if self.url.endswith("/") else self.url + "/"
            return self._base_address

        status_code, _, index_data = get_json(self.url, headers=self._headers())
        if status_code != 200 or not isinstance(index_data, dict):
            raise FeedQueryError(self.url, package_id, f"service index unavailable (status {status_code})")

        for resource in index_data.get("resources", []):
            if resource.get("@type") == PACKAGE_BASE_ADDRESS_TYPE and resource.get("@id"):
                base = resource["@id"]
                self._base_address = base if base.endswith("/") else base + "/"
                return self._base_address

        raise FeedQueryError(self.url, package_id, f"service index has no {PACKAGE_BASE_ADDRESS_TYPE} resource")

    def list_versions(self, package_id: str) -> List[str]:
        """List every version of ``package_id`` on this feed.

        Returns:
            Version strings; empty when the feed does not have the package.

        Raises:
            FeedQueryError: any failure other than "not found".
        """
        lower_id = urllib.parse.quote(package_id.lower(), safe="")
        url = f"{self.base_address(package_id)}{lower_id}/index.json"
        status_code, _, data = get_json(url, headers=self._headers())
        if status_code == 404:
            return []
        if status_code != 200:
            raise FeedQueryError(self.url, package_id, f"HTTP {status_code}" if status_code else "request failed")
        if not isinstance(data, dict) or not isinstance(data.get("versions"), list):
            raise FeedQueryError(self.url, package_id, "response has no 'versions' array")
        return [str(v) for v in data["versions"] if v]

    def download(self, package_id: str, version: str, dest_dir: str) -> str:
        """Download one version's .nupkg into ``dest_dir``.

        Returns:
            Path of the downloaded archive.

        Raises:
            FeedQueryError: download failed.
        """
        lower_id = urllib.parse.quote(package_id.lower(), safe="")
        lower_ver = urllib.parse.quote(version.lower(), safe="")
        fname = f"{lower_id}.{lower_ver}.nupkg"
        url = f"{self.base_address(package_id)}{lower_id}/{lower_ver}/{fname}"
        dest_path = os.path.join(dest_dir, fname)
        status_code, reason = download_file(url, dest_path, headers=_auth_headers())
        if status_code != 200:
            raise FeedQueryError(self.url, package_id, f"download of {version} failed: {reason}")
        return dest_path


class FeedClient:
    """Ordered set of feeds queried first-match-wins.

    Version lists are never merged across feeds: the first feed returning a
    non-empty list owns the package for the rest of the run.
    """

    def __init__(self, feeds: Sequence[Any]):
        self.feeds: List[NuGetFeed] = [f if isinstance(f, NuGetFeed) else NuGetFeed(f) for f in feeds]
        self.request_count = 0

    @property
    def feed_urls(self) -> List[str]:
        return [f.url for f in self.feeds]

    def _feed_for(self, url: str) -> NuGetFeed:
        for feed in self.feeds:
            if feed.url == url:
                return feed
        return NuGetFeed(url)

    def fetch_metadata(self, package_id: str) -> PackageMetadata:
        """Query feeds in order for ``package_id``.

        Raises:
            PackageNotFoundError: no feed lists any version.
            FeedQueryError: every feed failed, so absence is not established.
        """
        failures: List[Tuple[str, str]] = []
        for feed in self.feeds:
            self.request_count += 1
            with Timer() as t:
                try:
                    versions = feed.list_versions(package_id)
                except FeedQueryError as e:
                    failures.append((safe_url(feed.url), e.reason))
                    logger.warning(
                        "%s; trying next feed",
                        e,
                        extra=extra_context(
                            event="feed_query",
                            component="client",
                            outcome="error",
                            target=safe_url(feed.url),
                            package_id=package_id,
                        ),
                    )
                    continue
            if not versions:
                if is_debug_enabled(logger):
                    logger.debug(
                        "Package not on feed",
                        extra=extra_context(
                            event="feed_query",
                            component="client",
                            outcome="not_found",
                            target=safe_url(feed.url),
                            package_id=package_id,
                            duration_ms=t.duration_ms(),
                        ),
                    )
                continue
            logger.debug(
                "Found %d versions of %s on %s", len(versions), package_id, safe_url(feed.url)
            )
            return PackageMetadata(
                package_id=package_id,
                versions=versions,
                feed_url=feed.url,
                highest=max_version(versions),
            )
        if failures and len(failures) == len(self.feeds):
            raise FeedQueryError(
                failures[-1][0],
                package_id,
                "all feeds failed (" + "; ".join(f"{url}: {reason}" for url, reason in failures) + ")",
            )
        last_error = f"{failures[-1][0]}: {failures[-1][1]}" if failures else None
        raise PackageNotFoundError(package_id, [safe_url(u) for u in self.feed_urls], last_error)

    def download(self, metadata: PackageMetadata, version: str, dest_dir: str) -> str:
        """Download ``version`` from the feed that produced ``metadata``."""
        self.request_count += 1
        return self._feed_for(metadata.feed_url).download(metadata.package_id, version, dest_dir)
