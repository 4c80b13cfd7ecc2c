"""Error taxonomy for symbol resolution.

Version conflicts are not errors: they are collected into the report
(see ``symbols.report``) and never raised.
"""

from __future__ import annotations

from typing import Optional, Sequence


class SymbolsError(Exception):
    """Base class for fatal resolution errors."""


class ConfigurationError(SymbolsError):
    """Malformed or incomplete root manifest, or no feeds configured."""


class PackageNotFoundError(SymbolsError):
    """No configured feed lists any version of a package."""

    def __init__(self, package_id: str, feeds: Sequence[str], last_error: Optional[str] = None):
        self.package_id = package_id
        self.feeds = list(feeds)
        self.last_error = last_error
        msg = f"Package '{package_id}' was not found on any feed ({', '.join(self.feeds)})"
        if last_error:
            msg += f"; last error: {last_error}"
        super().__init__(msg)


class ArchiveError(SymbolsError):
    """A downloaded archive is unusable for one package."""

    def __init__(self, package_id: str, message: str):
        self.package_id = package_id
        super().__init__(f"{package_id}: {message}")


class FeedQueryError(SymbolsError):
    """One feed failed to answer; the next feed may still succeed."""

    def __init__(self, feed: str, package_id: str, reason: str):
        self.feed = feed
        self.package_id = package_id
        self.reason = reason
        super().__init__(f"Feed {feed} failed for '{package_id}': {reason}")
