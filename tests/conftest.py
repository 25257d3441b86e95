"""Shared pytest fixtures and test helpers for propbind tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from propbind.domain.properties import Properties


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def props() -> Properties:
    """A small property store shaped like a typical service config."""
    return Properties(
        {
            "Server.Host": "example.org",
            "server.port": "9090",
            "server.debug": "true",
            "server.timeout": "1m30s",
            "server.tags": "alpha beta gamma",
            "db.url": "postgres://localhost/app",
            "db.pool.size": "10",
        }
    )


@pytest.fixture
def _isolated_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to an empty temp directory with no propbind.toml above it.

    Use via ``@pytest.mark.usefixtures("_isolated_dir")`` on command test
    classes so config walk-up never escapes into the real filesystem.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PROPBIND_CONFIG", str(tmp_path / "propbind.toml"))


# ---------------------------------------------------------------------------
# Importable bind targets (for ``module:Class`` resolution)
# ---------------------------------------------------------------------------

SAMPLE_MODULE = "pb_sample_targets"

_SAMPLE_SOURCE = '''\
from dataclasses import dataclass, field
from datetime import timedelta

from pydantic import BaseModel, Field

from propbind import value


@dataclass
class Endpoint:
    name: str = value("${name}", default="")
    port: int = value("${port:=80}", default=0)


@dataclass
class ServerConfig:
    host: str = value("${host:=localhost}", default="")
    port: int = value("${port:=8080}", default=0)
    timeout: timedelta = value("${timeout:=30s}", default=timedelta(0))
    endpoints: list[Endpoint] = value("${endpoints:=}", default_factory=list)


@dataclass
class Secrets:
    _token: str = value("${token}", default="")


class DbModel(BaseModel):
    url: str = Field(default="", json_schema_extra={"value": "${url}"})
    pool: int = Field(default=1, json_schema_extra={"value": "${pool:=5}"})


NOT_A_STRUCT = 42
'''


@pytest.fixture
def sample_module(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> str:
    """Write an importable module of bind targets and put it on ``sys.path``."""
    root = tmp_path_factory.mktemp("targets")
    (root / f"{SAMPLE_MODULE}.py").write_text(_SAMPLE_SOURCE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(root))
    return SAMPLE_MODULE
