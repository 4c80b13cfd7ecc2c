"""Conflict and provenance reporting for a resolution run."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from versioning.parser import compare_versions


@dataclass
class ProvenanceEdge:
    """Resolving ``parent`` raised ``child``'s minimum to ``minimum``."""
    parent: str
    child: str
    minimum: Optional[str]


@dataclass
class VersionConflict:
    """A package resolved below its effective minimum (best effort)."""
    package_id: str
    requested: str
    resolved: str
    available: Optional[str]
    raised_by: List[str] = field(default_factory=list)


@dataclass
class ResolutionReport:
    """Resolved map plus everything a developer needs to trace conflicts."""
    resolved: Dict[str, str]
    conflicts: List[VersionConflict]
    provenance: List[ProvenanceEdge]
    network_requests: int = 0
    lockfile: Optional[str] = None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolved": dict(sorted(self.resolved.items())),
            "conflicts": [asdict(c) for c in self.conflicts],
            "provenance": [asdict(e) for e in self.provenance],
            "networkRequests": self.network_requests,
            "lockfile": self.lockfile,
        }


def build_report(
    resolved: Mapping[str, str],
    minimums: Mapping[str, Optional[str]],
    highest: Mapping[str, Optional[str]],
    provenance: List[ProvenanceEdge],
) -> ResolutionReport:
    """Assemble the report; conflicts are sorted by package id."""
    conflicts: List[VersionConflict] = []
    for package_id in sorted(resolved):
        version = resolved[package_id]
        minimum = minimums.get(package_id)
        if minimum and compare_versions(version, minimum) < 0:
            raised_by = []
            for edge in provenance:
                if edge.child == package_id and edge.parent not in raised_by:
                    raised_by.append(edge.parent)
            conflicts.append(VersionConflict(
                package_id=package_id,
                requested=minimum,
                resolved=version,
                available=highest.get(package_id),
                raised_by=raised_by,
            ))
    return ResolutionReport(
        resolved=dict(resolved),
        conflicts=conflicts,
        provenance=list(provenance),
    )


def render_text(report: ResolutionReport) -> List[str]:
    """Human-readable summary lines for the console."""
    lines = [f"Resolved {len(report.resolved)} symbol package(s):"]
    for package_id, version in sorted(report.resolved.items()):
        lines.append(f"  {package_id} {version}")
    if not report.conflicts:
        return lines

    lines.append(f"{len(report.conflicts)} version conflict(s):")
    for c in report.conflicts:
        lines.append(
            f"  {c.package_id}: requested >= {c.requested}, resolved {c.resolved}, "
            f"best available {c.available or 'unknown'}"
        )
        if c.raised_by:
            lines.append(f"    minimum raised by: {', '.join(c.raised_by)}")
        chain = [e for e in report.provenance if e.child == c.package_id]
        for edge in chain:
            lines.append(f"    {edge.parent} requires {edge.child} >= {edge.minimum}")
    return lines
