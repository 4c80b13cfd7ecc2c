"""NuGet feed support for symbol packages.

This package provides:
- client.py: version listing and .nupkg download from NuGet V3 feeds
- archive.py: payload extraction and nuspec dependency parsing
"""

from .client import FeedClient, NuGetFeed  # noqa: F401
from .archive import inspect_archive, parse_nuspec_dependencies  # noqa: F401

__all__ = [
    "FeedClient",
    "NuGetFeed",
    "inspect_archive",
    "parse_nuspec_dependencies",
]
