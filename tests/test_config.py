from __future__ import annotations

import pytest

from asset_manifest.config import Settings
from asset_manifest.remote_resolver import RemoteBuildResolver
from asset_manifest.resolvers import DirectoryResolver

ENV_VARS = (
    "MANIFEST_PATH",
    "SOURCE_DIR",
    "RESOLVER_URL",
    "KEEP_BACKUPS",
    "HTTP_TIMEOUT",
    "HTTP_MAX_RETRIES",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    settings = Settings.from_sources()

    assert settings.manifest_path == (tmp_path / "public" / "assets").resolve()
    assert settings.source_dir is None
    assert settings.resolver_url is None
    assert settings.keep == 2
    assert settings.http_timeout == 60
    assert settings.http_max_retries == 5


def test_cli_values_take_precedence_over_env(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MANIFEST_PATH", str(tmp_path / "env"))
    monkeypatch.setenv("KEEP_BACKUPS", "7")

    settings = Settings.from_sources(cli_manifest=str(tmp_path / "cli"), cli_keep=0)

    assert settings.manifest_path == (tmp_path / "cli").resolve()
    assert settings.keep == 0


def test_env_values_are_read(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SOURCE_DIR", str(tmp_path / "src"))
    monkeypatch.setenv("KEEP_BACKUPS", "4")
    monkeypatch.setenv("HTTP_TIMEOUT", "9")

    settings = Settings.from_sources()

    assert settings.source_dir == (tmp_path / "src").resolve()
    assert settings.keep == 4
    assert settings.http_timeout == 9


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("KEEP_BACKUPS", "-1"),
        ("HTTP_TIMEOUT", "0"),
        ("HTTP_MAX_RETRIES", "-2"),
        ("HTTP_TIMEOUT", "soon"),
    ],
)
def test_invalid_values_raise(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        Settings.from_sources()


def test_source_dir_and_resolver_url_are_exclusive(tmp_path) -> None:
    with pytest.raises(ValueError):
        Settings.from_sources(cli_source_dir=str(tmp_path), cli_resolver_url="http://x")


def test_build_resolver(tmp_path) -> None:
    assert isinstance(
        Settings.from_sources(cli_source_dir=str(tmp_path)).build_resolver(), DirectoryResolver
    )
    assert isinstance(
        Settings.from_sources(cli_resolver_url="http://build:8080").build_resolver(),
        RemoteBuildResolver,
    )
    with pytest.raises(ValueError):
        Settings.from_sources().build_resolver()
