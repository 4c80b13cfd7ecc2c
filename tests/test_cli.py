"""Tests for the alsymbols command line entry point."""

import json
import logging
import os

import pytest

import symbols.session
from alsymbols import main, run
from args import parse_args
from constants import Constants, ExitCodes

from conftest import FEED_URL, FakeFeedClient

LIB = "Acme.Lib.symbols.y"

PACKAGES = {
    LIB: {"1.0": {}, "1.5": {}},
    "Microsoft.Application.symbols": {"22.0": {}},
}


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user config and environment out of CLI runs."""
    monkeypatch.setattr(Constants, "CONFIG_PATH", str(tmp_path / "no-config.yml"))
    monkeypatch.setattr(Constants, "DEFAULT_FEEDS", list(Constants.DEFAULT_FEEDS))
    monkeypatch.setattr(Constants, "CACHE_ROOT", str(tmp_path / "default-cache"))
    for name in (Constants.ENV_CONFIG, Constants.ENV_FEEDS, Constants.ENV_CACHE_ROOT):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def feed(monkeypatch):
    """Route the resolver's feed client to an in-memory feed."""
    created = []

    def _install(packages):
        def _factory(feeds):
            client = FakeFeedClient(packages, feeds)
            created.append(client)
            return client
        monkeypatch.setattr(symbols.session, "FeedClient", _factory)
        return created

    return _install


def _app(write_app, dependencies):
    return write_app({
        "id": "11111111-2222-3333-4444-555555555555",
        "publisher": "Acme",
        "name": "App",
        "application": "22.0",
        "dependencies": dependencies,
    })


def _lib(version="1.0"):
    return {"id": "y", "publisher": "Acme", "name": "Lib", "version": version}


def test_successful_run_downloads_and_prints_summary(write_app, feed, tmp_path, capsys):
    feed(PACKAGES)
    app_dir = _app(write_app, [_lib()])
    cache_root = tmp_path / "cache"

    code = run(parse_args([app_dir, "-s", FEED_URL, "--cache-root", str(cache_root)]))

    assert code == ExitCodes.SUCCESS.value
    out = capsys.readouterr().out
    assert "Resolved 2 symbol package(s):" in out
    assert f"{LIB} 1.5" in out
    cache_dir = cache_root / "Acme" / "App" / "11111111-2222-3333-4444-555555555555"
    assert (cache_dir / "Acme.Lib.1.5.app").is_file()
    assert (cache_dir / Constants.LOCKFILE_NAME).is_file()


def test_quiet_suppresses_summary(write_app, feed, tmp_path, capsys):
    feed(PACKAGES)
    app_dir = _app(write_app, [_lib()])
    code = run(parse_args([app_dir, "-s", FEED_URL, "--cache-root", str(tmp_path / "c"), "-q"]))
    assert code == 0
    assert capsys.readouterr().out == ""


def test_output_writes_json_report(write_app, feed, tmp_path):
    feed(PACKAGES)
    app_dir = _app(write_app, [_lib()])
    out_path = tmp_path / "report.json"

    code = run(parse_args([app_dir, "-s", FEED_URL, "--cache-root", str(tmp_path / "c"),
                           "-q", "-o", str(out_path)]))

    assert code == 0
    data = json.loads(out_path.read_text(encoding="utf-8"))
    assert data["resolved"][LIB] == "1.5"
    assert data["conflicts"] == []
    assert data["networkRequests"] == 4
    assert os.path.basename(data["lockfile"]) == Constants.LOCKFILE_NAME


def test_missing_manifest_is_a_file_error(tmp_path, feed):
    feed(PACKAGES)
    code = run(parse_args([str(tmp_path / "nowhere"), "-s", FEED_URL]))
    assert code == ExitCodes.FILE_ERROR.value


def test_unknown_package_is_a_connection_error(write_app, feed, tmp_path):
    feed(PACKAGES)
    app_dir = _app(write_app, [{"id": "q", "publisher": "Nobody", "name": "Ghost", "version": "1.0"}])
    code = run(parse_args([app_dir, "-s", FEED_URL, "--cache-root", str(tmp_path / "c"), "-q"]))
    assert code == ExitCodes.CONNECTION_ERROR.value


def test_bad_archive_is_an_archive_error(write_app, feed, tmp_path, monkeypatch):
    created = feed(PACKAGES)
    app_dir = _app(write_app, [_lib()])
    real_factory = symbols.session.FeedClient

    def _factory(feeds):
        client = real_factory(feeds)
        client.payload_counts[(LIB, "1.5")] = 0
        return client

    monkeypatch.setattr(symbols.session, "FeedClient", _factory)
    code = run(parse_args([app_dir, "-s", FEED_URL, "--cache-root", str(tmp_path / "c"), "-q"]))
    assert created
    assert code == ExitCodes.ARCHIVE_ERROR.value


def test_conflicts_only_fail_when_requested(write_app, feed, tmp_path):
    feed(PACKAGES)
    app_dir = _app(write_app, [_lib("9.0")])
    base = [app_dir, "-s", FEED_URL, "--cache-root", str(tmp_path / "c"), "-q"]

    assert run(parse_args(base)) == ExitCodes.SUCCESS.value
    assert run(parse_args(base + ["--fail-on-conflicts"])) == ExitCodes.EXIT_WARNINGS.value


def test_env_feeds_are_used_when_no_cli_feed(write_app, feed, tmp_path, monkeypatch):
    created = feed(PACKAGES)
    monkeypatch.setenv(Constants.ENV_FEEDS, "https://env-a.test/flat/;https://env-b.test/flat/")
    app_dir = _app(write_app, [_lib()])

    assert run(parse_args([app_dir, "--cache-root", str(tmp_path / "c"), "-q"])) == 0
    assert created[0].feed_urls == ["https://env-a.test/flat/", "https://env-b.test/flat/"]


def test_refresh_ignores_lockfile(write_app, feed, tmp_path):
    created = feed(PACKAGES)
    app_dir = _app(write_app, [_lib()])
    base = [app_dir, "-s", FEED_URL, "--cache-root", str(tmp_path / "c"), "-q"]

    assert run(parse_args(base)) == 0
    assert run(parse_args(base)) == 0
    assert run(parse_args(base + ["--refresh"])) == 0

    assert created[1].request_count == 0
    assert len(created[2].downloads) == 2


def test_main_exits_with_run_code(write_app, feed, tmp_path):
    feed(PACKAGES)
    app_dir = _app(write_app, [_lib()])
    root = logging.getLogger()
    saved_level, saved_handlers = root.level, list(root.handlers)
    try:
        with pytest.raises(SystemExit) as exc_info:
            main([app_dir, "-s", FEED_URL, "--cache-root", str(tmp_path / "c"), "-q",
                  "--loglevel", "WARNING"])
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
    assert exc_info.value.code == 0


def test_malformed_config_file_is_a_file_error(write_app, feed, tmp_path, caplog):
    feed(PACKAGES)
    app_dir = _app(write_app, [_lib()])
    cfg = tmp_path / "broken.yml"
    cfg.write_text("feeds: [unclosed\n", encoding="utf-8")

    code = run(parse_args([app_dir, "-c", str(cfg), "--cache-root", str(tmp_path / "c"), "-q"]))

    assert code == ExitCodes.FILE_ERROR.value
    assert "broken.yml" in caplog.text
