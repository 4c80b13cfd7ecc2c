"""Lock-file store: the last successful resolution for one app.

The file lives in the app's cache directory as ``symbols.lock.json``. A
missing, unreadable or malformed lock-file is treated as empty. Writes go
through a temp file in the same directory and ``os.replace`` so readers
never observe a half-written lock-file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from constants import Constants
from common.logging_utils import extra_context

logger = logging.getLogger(__name__)

_NULLABLE_STR = {"type": ["string", "null"]}

LOCKFILE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["packages"],
    "properties": {
        "application": _NULLABLE_STR,
        "platform": _NULLABLE_STR,
        "appId": _NULLABLE_STR,
        "appName": _NULLABLE_STR,
        "publisher": _NULLABLE_STR,
        "packages": {"type": "object", "additionalProperties": {"type": "string"}},
        "feeds": {"type": "array", "items": {"type": "string"}},
        "updated": _NULLABLE_STR,
        "dependencies": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": _NULLABLE_STR,
            },
        },
        "minimums": {"type": "object", "additionalProperties": _NULLABLE_STR},
    },
}


@dataclass
class LockFile:
    """In-memory form of symbols.lock.json."""
    application: Optional[str] = None
    platform: Optional[str] = None
    app_id: Optional[str] = None
    app_name: Optional[str] = None
    publisher: Optional[str] = None
    packages: Dict[str, str] = field(default_factory=dict)
    feeds: List[str] = field(default_factory=list)
    updated: Optional[str] = None
    # package -> {dependency -> minimum}; lets a valid lock skip archive inspection
    dependencies: Dict[str, Dict[str, Optional[str]]] = field(default_factory=dict)
    # package -> effective minimum it was resolved against, met or not
    minimums: Dict[str, Optional[str]] = field(default_factory=dict)

    def matches_baseline(self, application: Optional[str], platform: Optional[str]) -> bool:
        """True when the lock was resolved against the same app/platform versions."""
        return self.application == application and self.platform == platform

    def to_dict(self) -> Dict[str, Any]:
        return {
            "application": self.application,
            "platform": self.platform,
            "appId": self.app_id,
            "appName": self.app_name,
            "publisher": self.publisher,
            "packages": dict(sorted(self.packages.items())),
            "feeds": list(self.feeds),
            "updated": self.updated,
            "dependencies": {
                k: dict(sorted(v.items())) for k, v in sorted(self.dependencies.items())
            },
            "minimums": dict(sorted(self.minimums.items())),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockFile":
        return cls(
            application=data.get("application"),
            platform=data.get("platform"),
            app_id=data.get("appId"),
            app_name=data.get("appName"),
            publisher=data.get("publisher"),
            packages=dict(data.get("packages") or {}),
            feeds=list(data.get("feeds") or []),
            updated=data.get("updated"),
            dependencies={k: dict(v) for k, v in (data.get("dependencies") or {}).items()},
            minimums=dict(data.get("minimums") or {}),
        )


def lockfile_path(cache_dir: str) -> str:
    return os.path.join(cache_dir, Constants.LOCKFILE_NAME)


def load_lockfile(cache_dir: str) -> LockFile:
    """Read the lock-file; any problem yields an empty LockFile."""
    path = lockfile_path(cache_dir)
    if not os.path.isfile(path):
        return LockFile()
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable lock-file %s: %s", path, e)
        return LockFile()

    errs = list(Draft7Validator(LOCKFILE_SCHEMA).iter_errors(data))
    if errs:
        logger.warning(
            "Ignoring malformed lock-file %s: %s",
            path,
            errs[0].message,
            extra=extra_context(event="lockfile", action="load", outcome="invalid", target=path),
        )
        return LockFile()
    return LockFile.from_dict(data)


def save_lockfile(cache_dir: str, lock: LockFile) -> str:
    """Atomically write the lock-file, stamping ``updated`` with UTC now.

    Returns:
        The lock-file path.
    """
    path = lockfile_path(cache_dir)
    lock.updated = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    os.makedirs(cache_dir, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=cache_dir, prefix=".symbols.lock.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(lock.to_dict(), fh, indent=2)
            fh.write("\n")
        os.replace(tmp, path)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
    logger.debug(
        "Lock-file written",
        extra=extra_context(event="lockfile", action="save", outcome="success",
                            target=path, count=len(lock.packages)),
    )
    return path
