"""Root app manifest (app.json) loading and symbol package naming."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from constants import Constants
from symbols.errors import ConfigurationError
from versioning.models import ROOT_ORIGIN, VersionRequirement

logger = logging.getLogger(__name__)

PLATFORM_PACKAGE_ID = Constants.PLATFORM_PACKAGE_ID

_NON_EMPTY = {"type": "string", "pattern": r"\S"}

MANIFEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "publisher", "name"],
    "properties": {
        "id": _NON_EMPTY,
        "publisher": _NON_EMPTY,
        "name": _NON_EMPTY,
        "application": {"type": ["string", "null"]},
        "platform": {"type": ["string", "null"]},
        "dependencies": {"type": ["array", "null"]},
    },
}

_WHITESPACE_RE = re.compile(r"\s+")


def dependency_package_id(publisher: str, name: str, app_id: str) -> str:
    """Return the symbol package id for a dependency app.

    Whitespace is removed from publisher and name, as the feeds do when
    publishing (``"Contoso Ltd"`` -> ``"ContosoLtd"``).
    """
    pub = _WHITESPACE_RE.sub("", publisher)
    nm = _WHITESPACE_RE.sub("", name)
    return f"{pub}.{nm}.symbols.{app_id.strip()}"


@dataclass
class AppDependency:
    """One declared dependency of the root app."""
    publisher: str
    name: str
    id: str
    version: str

    @property
    def package_id(self) -> str:
        return dependency_package_id(self.publisher, self.name, self.id)


@dataclass
class AppManifest:
    """Validated view of app.json."""
    id: str
    publisher: str
    name: str
    application: Optional[str] = None
    platform: Optional[str] = None
    dependencies: List[AppDependency] = field(default_factory=list)

    def root_requirements(self) -> List[VersionRequirement]:
        """Requirements declared directly by the manifest, in declaration order."""
        reqs = [
            VersionRequirement(dep.package_id, dep.version, ROOT_ORIGIN)
            for dep in self.dependencies
        ]
        if self.application:
            reqs.append(VersionRequirement(PLATFORM_PACKAGE_ID, self.application, ROOT_ORIGIN))
        return reqs


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_dependency(entry: Any, index: int) -> Optional[AppDependency]:
    """Return an AppDependency, or None when the entry is incomplete."""
    if not isinstance(entry, dict):
        logger.warning("Skipping dependency #%d: not an object", index)
        return None
    values = {
        "publisher": _optional_str(entry.get("publisher")),
        "name": _optional_str(entry.get("name")),
        # Older manifests use appId for dependency entries
        "id": _optional_str(entry.get("id", entry.get("appId"))),
        "version": _optional_str(entry.get("version")),
    }
    missing = [k for k, v in values.items() if v is None]
    if missing:
        logger.warning(
            "Skipping dependency #%d (%s): missing %s",
            index,
            values.get("name") or "<unnamed>",
            ", ".join(missing),
        )
        return None
    return AppDependency(**values)


def parse_manifest(data: Any, source: str = Constants.APP_MANIFEST_FILE) -> AppManifest:
    """Validate a decoded manifest document.

    Raises:
        ConfigurationError: when a required field is missing or invalid.
    """
    errs = sorted(Draft7Validator(MANIFEST_SCHEMA).iter_errors(data), key=lambda e: str(list(e.path)))
    if errs:
        first = errs[0]
        path = "/".join(str(p) for p in first.path) or "<root>"
        raise ConfigurationError(f"Invalid {source} at '{path}': {first.message}")

    deps: List[AppDependency] = []
    for index, entry in enumerate(data.get("dependencies") or []):
        dep = _parse_dependency(entry, index)
        if dep is not None:
            deps.append(dep)

    return AppManifest(
        id=data["id"].strip(),
        publisher=data["publisher"].strip(),
        name=data["name"].strip(),
        application=_optional_str(data.get("application")),
        platform=_optional_str(data.get("platform")),
        dependencies=deps,
    )


def load_manifest(path: str) -> AppManifest:
    """Load app.json from an app directory or a direct file path.

    Raises:
        ConfigurationError: file missing, not JSON, or failing validation.
    """
    manifest_path = path
    if os.path.isdir(path):
        manifest_path = os.path.join(path, Constants.APP_MANIFEST_FILE)
    if not os.path.isfile(manifest_path):
        raise ConfigurationError(f"App manifest not found: {manifest_path}")
    try:
        # utf-8-sig: app.json files saved by VS Code on Windows often carry a BOM
        with open(manifest_path, "r", encoding="utf-8-sig") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Couldn't read {manifest_path}: {e}") from e
    return parse_manifest(data, source=manifest_path)
