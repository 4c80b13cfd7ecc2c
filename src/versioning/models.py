"""Data models for versioning and package resolution."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Origin recorded for requirements that come straight from app.json
ROOT_ORIGIN = "<root manifest>"


@dataclass
class VersionRequirement:
    """A minimum-version constraint on one package and where it came from."""
    package_id: str
    minimum: Optional[str]
    origin: str = ROOT_ORIGIN


@dataclass
class PackageMetadata:
    """Feed-side view of a package, fetched once per run."""
    package_id: str
    versions: List[str]
    feed_url: str
    highest: Optional[str]


@dataclass
class ResolvedPackage:
    """Resolution outcome for one package."""
    package_id: str
    version: str
    dependencies: Dict[str, Optional[str]] = field(default_factory=dict)
    from_cache: bool = False
