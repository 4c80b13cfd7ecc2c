"""Shared fixtures: in-memory feeds and .nupkg archives built on the fly."""

import json
import os
import zipfile

import pytest

from registry.nuget.client import FeedClient
from symbols.errors import PackageNotFoundError
from versioning.models import PackageMetadata
from versioning.parser import max_version

FEED_URL = "https://feed.test/v3/index.json"

NUSPEC_NS = "http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd"


def build_nupkg(path, package_id, version, dependencies=None, payloads=1, grouped=True):
    """Write a minimal symbol .nupkg to ``path``."""
    dep_xml = "".join(
        f'<dependency id="{dep_id}" version="{rng}" />' if rng is not None else f'<dependency id="{dep_id}" />'
        for dep_id, rng in (dependencies or {}).items()
    )
    if grouped and dep_xml:
        dep_xml = f'<group targetFramework="any">{dep_xml}</group>'
    nuspec = (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<package xmlns="{NUSPEC_NS}"><metadata>'
        f"<id>{package_id}</id><version>{version}</version>"
        f"<dependencies>{dep_xml}</dependencies>"
        "</metadata></package>"
    )
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(f"{package_id}.nuspec", nuspec)
        zf.writestr("[Content_Types].xml", "<Types/>")
        for i in range(payloads):
            zf.writestr(f"Publisher_{package_id}_{version}_{i}.app", b"NAVX" + version.encode())
    return path


class FakeFeedClient(FeedClient):
    """Feed client serving packages from a dict.

    ``packages`` maps package id -> {version -> {dependency id -> range}}.
    """

    def __init__(self, packages, feeds=(FEED_URL,)):
        super().__init__(list(feeds))
        self.packages = packages
        self.metadata_calls = []
        self.downloads = []
        self.payload_counts = {}

    def _lookup(self, package_id):
        for pid, versions in self.packages.items():
            if pid.lower() == package_id.lower():
                return pid, versions
        return None, None

    def fetch_metadata(self, package_id):
        self.request_count += 1
        self.metadata_calls.append(package_id)
        _, versions = self._lookup(package_id)
        if not versions:
            raise PackageNotFoundError(package_id, self.feed_urls)
        listed = list(versions)
        return PackageMetadata(package_id, listed, self.feeds[0].url, max_version(listed))

    def download(self, metadata, version, dest_dir):
        self.request_count += 1
        self.downloads.append((metadata.package_id, version))
        _, versions = self._lookup(metadata.package_id)
        path = os.path.join(dest_dir, f"{metadata.package_id.lower()}.{version}.nupkg")
        return build_nupkg(
            path,
            metadata.package_id,
            version,
            versions[version],
            payloads=self.payload_counts.get((metadata.package_id, version), 1),
        )


@pytest.fixture
def make_nupkg():
    return build_nupkg


@pytest.fixture
def fake_feed():
    return FakeFeedClient


@pytest.fixture
def write_app(tmp_path):
    """Write an app.json into a fresh app directory and return the directory."""

    def _write(manifest, name="app"):
        app_dir = tmp_path / name
        app_dir.mkdir(exist_ok=True)
        (app_dir / "app.json").write_text(json.dumps(manifest), encoding="utf-8")
        return str(app_dir)

    return _write
