"""Per-app symbol cache directory layout."""

from __future__ import annotations

import logging
import os
import re
from typing import List, Optional

from constants import Constants

logger = logging.getLogger(__name__)

_INVALID_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f\s]')
_SYMBOLS_SUFFIX_RE = re.compile(r'\.symbols(\..*)?$', re.IGNORECASE)


def sanitize_segment(text: str) -> str:
    """Replace filesystem-invalid characters and whitespace with underscores."""
    cleaned = _INVALID_CHARS_RE.sub("_", (text or "").strip())
    return cleaned or "_"


def cache_directory(cache_root: str, publisher: str, name: str, app_id: str) -> str:
    """Return (and create) ``<root>/<publisher>/<name>/<id>`` for one app."""
    path = os.path.join(
        cache_root,
        sanitize_segment(publisher),
        sanitize_segment(name),
        sanitize_segment(app_id),
    )
    os.makedirs(path, exist_ok=True)
    return path


def clean_package_name(package_id: str) -> str:
    """Strip the ``.symbols`` infix and app id suffix from a package id.

    Examples:
        >>> clean_package_name("Acme.Lib.symbols.0f3c")
        'Acme.Lib'
        >>> clean_package_name("Microsoft.Application.symbols")
        'Microsoft.Application'
    """
    return _SYMBOLS_SUFFIX_RE.sub("", package_id) or package_id


def payload_filename(package_id: str, version: str) -> str:
    """File name for a package's extracted binary payload."""
    clean = sanitize_segment(clean_package_name(package_id))
    return f"{clean}.{sanitize_segment(version)}{Constants.PAYLOAD_EXTENSION}"


def _payload_pattern(package_id: str) -> "re.Pattern[str]":
    clean = re.escape(sanitize_segment(clean_package_name(package_id)))
    ext = re.escape(Constants.PAYLOAD_EXTENSION)
    # Version must start with a digit, so "Acme.Lib" never matches "Acme.Lib.Extra.1.0.app"
    return re.compile(rf'^{clean}\.\d[^\\/]*{ext}$', re.IGNORECASE)


def find_payloads(cache_dir: str, package_id: str) -> List[str]:
    """Return payload file names in ``cache_dir`` belonging to ``package_id``."""
    if not os.path.isdir(cache_dir):
        return []
    pattern = _payload_pattern(package_id)
    return sorted(f for f in os.listdir(cache_dir) if pattern.match(f))


def purge_stale_payloads(cache_dir: str, package_id: str, keep: Optional[str] = None) -> List[str]:
    """Delete payloads of ``package_id`` other than ``keep``.

    Returns:
        The file names that were removed.
    """
    removed = []
    for fname in find_payloads(cache_dir, package_id):
        if keep is not None and fname == keep:
            continue
        os.remove(os.path.join(cache_dir, fname))
        removed.append(fname)
    if removed:
        logger.debug("Purged stale payloads for %s: %s", package_id, ", ".join(removed))
    return removed
