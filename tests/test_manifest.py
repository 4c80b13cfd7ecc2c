"""Tests for app.json loading and symbol package naming."""

import json

import pytest

from symbols.errors import ConfigurationError
from symbols.manifest import (
    PLATFORM_PACKAGE_ID,
    dependency_package_id,
    load_manifest,
    parse_manifest,
)
from versioning.models import ROOT_ORIGIN


def _manifest(**overrides):
    data = {"id": "x", "publisher": "Acme", "name": "App", "application": "22.0"}
    data.update(overrides)
    return data


def test_dependency_package_id():
    assert dependency_package_id("Acme", "Lib", "y") == "Acme.Lib.symbols.y"


def test_dependency_package_id_removes_whitespace():
    assert dependency_package_id("Contoso Ltd", "Base App", "abc") == "ContosoLtd.BaseApp.symbols.abc"


def test_root_requirements_include_dependencies_then_platform():
    manifest = parse_manifest(_manifest(dependencies=[
        {"publisher": "Acme", "name": "Lib", "id": "y", "version": "1.0"},
    ]))
    reqs = manifest.root_requirements()
    assert [(r.package_id, r.minimum) for r in reqs] == [
        ("Acme.Lib.symbols.y", "1.0"),
        (PLATFORM_PACKAGE_ID, "22.0"),
    ]
    assert all(r.origin == ROOT_ORIGIN for r in reqs)


def test_no_application_means_no_platform_requirement():
    manifest = parse_manifest({"id": "x", "publisher": "Acme", "name": "App"})
    assert manifest.root_requirements() == []


@pytest.mark.parametrize("missing", ["id", "publisher", "name"])
def test_missing_required_field_is_fatal(missing):
    data = _manifest()
    del data[missing]
    with pytest.raises(ConfigurationError) as exc_info:
        parse_manifest(data)
    assert missing in str(exc_info.value)


def test_blank_required_field_is_fatal():
    with pytest.raises(ConfigurationError):
        parse_manifest(_manifest(publisher="   "))


def test_incomplete_dependencies_are_skipped(caplog):
    manifest = parse_manifest(_manifest(dependencies=[
        {"publisher": "Acme", "name": "Lib", "id": "y"},
        {"publisher": "Acme", "name": "Good", "id": "z", "version": "2.0"},
        "not-an-object",
    ]))
    assert [d.name for d in manifest.dependencies] == ["Good"]
    assert "missing version" in caplog.text


def test_app_id_alias_is_accepted():
    manifest = parse_manifest(_manifest(dependencies=[
        {"publisher": "Acme", "name": "Lib", "appId": "y", "version": "1.0"},
    ]))
    assert manifest.dependencies[0].package_id == "Acme.Lib.symbols.y"


def test_load_manifest_from_directory_with_bom(tmp_path):
    (tmp_path / "app.json").write_bytes(b"\xef\xbb\xbf" + json.dumps(_manifest(platform="22.0.0.0")).encode())
    manifest = load_manifest(str(tmp_path))
    assert manifest.id == "x"
    assert manifest.platform == "22.0.0.0"


def test_load_manifest_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_manifest(str(tmp_path))


def test_load_manifest_invalid_json(tmp_path):
    (tmp_path / "app.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_manifest(str(tmp_path / "app.json"))
