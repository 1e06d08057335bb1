from __future__ import annotations

import sys
from pathlib import Path

import pytest
import respx
from typer.testing import CliRunner


# Ensure the repository-local ``src`` directory is importable when the project is
# not installed as a package.
SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture
def token_getter():
    return lambda: "dummy-token"


@pytest.fixture
def respx_mock():
    with respx.mock(assert_all_called=False) as respx_mgr:
        yield respx_mgr


@pytest.fixture
def isolated_home(monkeypatch, tmp_path):
    """Point the profile store at an empty temporary directory."""

    import fedx.config as config_module

    monkeypatch.setenv("FEDX_HOME", str(tmp_path))
    monkeypatch.delenv("FEDX_CONFIG_ENCRYPTION_KEY", raising=False)
    monkeypatch.setattr(config_module, "FEDX_DIR", str(tmp_path), raising=False)
    monkeypatch.setattr(config_module, "CONFIG_PATH", str(tmp_path / "config.json"), raising=False)
    monkeypatch.setattr(config_module, "_cached_cipher", None, raising=False)
    monkeypatch.setattr(config_module, "_cached_cipher_key", None, raising=False)
    return tmp_path


@pytest.fixture
def cli_runner(monkeypatch, isolated_home):
    """Provide a CLI runner with dummy tokens for every audience."""

    monkeypatch.setenv("FEDX_GRAPH_TOKEN", "graph-token")
    monkeypatch.setenv("FEDX_ARM_TOKEN", "arm-token")
    monkeypatch.setenv("FEDX_KEYCLOAK_TOKEN", "keycloak-token")
    return CliRunner()
