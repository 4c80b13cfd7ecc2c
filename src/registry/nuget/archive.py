"""Symbol archive inspection: extract the .app payload and read nuspec dependencies."""
from __future__ import annotations

import logging
import os
import shutil
import xml.etree.ElementTree as ET
import zipfile
from typing import Dict, List, Optional

from constants import Constants
from symbols.cache_dir import payload_filename
from symbols.errors import ArchiveError
from versioning.parser import compare_versions, range_lower_bound

logger = logging.getLogger(__name__)


def _strip_namespaces(root: ET.Element) -> None:
    for elem in root.iter():
        if '}' in elem.tag:
            elem.tag = elem.tag.split('}')[1]


def parse_nuspec_dependencies(xml_text: bytes, package_id: str) -> Dict[str, Optional[str]]:
    """Return ``{dependency id: minimum or None}`` from nuspec XML.

    Both grouped (``<group targetFramework=...>``) and flat dependency lists
    are read. When the same id appears more than once the highest minimum
    wins.

    Raises:
        ArchiveError: the XML cannot be parsed.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ArchiveError(package_id, f"nuspec is not valid XML: {e}") from e
    _strip_namespaces(root)

    deps: Dict[str, Optional[str]] = {}
    for dep in root.findall(".//dependencies//dependency"):
        dep_id = (dep.get("id") or "").strip()
        if not dep_id:
            continue
        minimum = range_lower_bound(dep.get("version"))
        if dep_id not in deps:
            deps[dep_id] = minimum
        elif minimum is not None and (deps[dep_id] is None or compare_versions(minimum, deps[dep_id]) > 0):
            deps[dep_id] = minimum
    return deps


def inspect_archive(nupkg_path: str, dest_dir: str, package_id: str, version: str) -> Dict[str, Optional[str]]:
    """Extract the single payload of a symbol archive and return its dependencies.

    The payload is written to ``dest_dir`` under ``payload_filename``.

    Raises:
        ArchiveError: not a zip, zero or several payloads, or bad nuspec.
    """
    try:
        zf = zipfile.ZipFile(nupkg_path)
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(package_id, f"{os.path.basename(nupkg_path)} is not a valid archive: {e}") from e

    with zf:
        names = zf.namelist()
        payloads: List[str] = [
            n for n in names
            if n.lower().endswith(Constants.PAYLOAD_EXTENSION) and not n.endswith('/')
        ]
        if len(payloads) != 1:
            raise ArchiveError(
                package_id,
                f"expected exactly one {Constants.PAYLOAD_EXTENSION} payload in {version}, found {len(payloads)}",
            )

        nuspecs = [n for n in names if '/' not in n and n.lower().endswith(".nuspec")]
        if not nuspecs:
            raise ArchiveError(package_id, f"archive for {version} has no .nuspec manifest")
        deps = parse_nuspec_dependencies(zf.read(nuspecs[0]), package_id)

        target = os.path.join(dest_dir, payload_filename(package_id, version))
        with zf.open(payloads[0]) as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst)

    logger.debug("Extracted %s -> %s (%d dependencies)", payloads[0], target, len(deps))
    return deps
