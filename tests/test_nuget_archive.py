"""Tests for symbol archive inspection."""

import os
import zipfile

import pytest

from registry.nuget.archive import inspect_archive, parse_nuspec_dependencies
from symbols.errors import ArchiveError


def test_extracts_single_payload_and_dependencies(tmp_path, make_nupkg):
    nupkg = make_nupkg(str(tmp_path / "lib.nupkg"), "Acme.Lib.symbols.y", "1.5", {
        "Microsoft.Application.symbols": "[22.0.0.0,)",
        "Acme.Base.symbols.z": "1.0",
    })
    dest = tmp_path / "cache"
    dest.mkdir()

    deps = inspect_archive(nupkg, str(dest), "Acme.Lib.symbols.y", "1.5")

    assert deps == {"Microsoft.Application.symbols": "22.0.0.0", "Acme.Base.symbols.z": "1.0"}
    assert os.listdir(dest) == ["Acme.Lib.1.5.app"]
    assert (dest / "Acme.Lib.1.5.app").read_bytes() == b"NAVX1.5"


def test_flat_dependency_list_is_read(tmp_path, make_nupkg):
    nupkg = make_nupkg(str(tmp_path / "lib.nupkg"), "Acme.Lib.symbols.y", "1.0",
                       {"Acme.Base.symbols.z": "(,2.0]"}, grouped=False)
    deps = inspect_archive(nupkg, str(tmp_path), "Acme.Lib.symbols.y", "1.0")
    assert deps == {"Acme.Base.symbols.z": None}


def test_no_payload_is_an_archive_error(tmp_path, make_nupkg):
    nupkg = make_nupkg(str(tmp_path / "lib.nupkg"), "Acme.Lib.symbols.y", "1.0", payloads=0)
    with pytest.raises(ArchiveError) as exc_info:
        inspect_archive(nupkg, str(tmp_path), "Acme.Lib.symbols.y", "1.0")
    assert exc_info.value.package_id == "Acme.Lib.symbols.y"
    assert "found 0" in str(exc_info.value)


def test_multiple_payloads_is_an_archive_error(tmp_path, make_nupkg):
    nupkg = make_nupkg(str(tmp_path / "lib.nupkg"), "Acme.Lib.symbols.y", "1.0", payloads=2)
    with pytest.raises(ArchiveError, match="found 2"):
        inspect_archive(nupkg, str(tmp_path), "Acme.Lib.symbols.y", "1.0")


def test_not_a_zip_is_an_archive_error(tmp_path):
    bogus = tmp_path / "lib.nupkg"
    bogus.write_bytes(b"<html>login required</html>")
    with pytest.raises(ArchiveError):
        inspect_archive(str(bogus), str(tmp_path), "Acme.Lib.symbols.y", "1.0")


def test_missing_nuspec_is_an_archive_error(tmp_path):
    path = tmp_path / "lib.nupkg"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("Acme_Lib.app", b"NAVX")
    with pytest.raises(ArchiveError, match="nuspec"):
        inspect_archive(str(path), str(tmp_path), "Acme.Lib.symbols.y", "1.0")


def test_duplicate_dependencies_keep_highest_minimum():
    xml = b"""<package><metadata><dependencies>
        <group targetFramework="net48"><dependency id="Shared" version="[1.0,)"/></group>
        <group targetFramework="any"><dependency id="Shared" version="[3.0,)"/></group>
        <dependency id="Shared" version="2.0"/>
        <dependency id="Loose"/>
        <dependency id="Loose" version="0.5"/>
    </dependencies></metadata></package>"""
    assert parse_nuspec_dependencies(xml, "Pkg") == {"Shared": "3.0", "Loose": "0.5"}


def test_unparseable_nuspec_is_an_archive_error():
    with pytest.raises(ArchiveError):
        parse_nuspec_dependencies(b"<package><metadata>", "Pkg")
