"""Shared test fixtures for virt-toolkit.

Fixtures defined here are available to all tests in the suite without
needing an explicit import. Add project-wide fixtures here; keep
domain-specific fixtures close to the tests that use them.
"""
from __future__ import annotations

import os
import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from virt.config import reset_config_cache

ENV_VARS = (
    "VIRT_ENV",
    "VIRT_LOG_LEVEL",
    "API_URL",
    "PROJECTS_DIR",
    "OPENSEARCH_URL",
    "OPENSEARCH_USER",
    "OPENSEARCH_PASSWORD",
    "MONGO_URL",
    "MONGO_DB",
    "PG_MODE",
    "POSTGRES_MODE",
    "POSTGRES_SERVICE",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "PG_PASSWORD",
    "POSTGRES_HOST",
    "PG_HOST",
    "POSTGRES_PORT",
    "PG_PORT",
    "POSTGRES_ADMIN_DB",
    "POSTGRES_SSL",
    "COMPOSE_DIR",
    "SEED_FILE",
    "SEED_INDEX",
    "PORT",
    "HOST",
    "SWAGGER_ENABLED",
    "VIRTUAL_RESOURCES_DIR",
    "VIRTUAL_RELOAD",
    "VIRTUAL_RELOAD_INTERVAL_MS",
    "VIRTUAL_ASSETS_DIR",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Run every test in an empty working directory with no virt env vars.

    Commands export variables such as ``API_URL`` into ``os.environ``; the
    whole environment is restored afterwards.
    """
    saved = dict(os.environ)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config_cache()
    yield tmp_path
    reset_config_cache()
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture()
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Return a helper that writes dedented text under ``tmp_path``."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def expected_version() -> str:
    """Return the current expected version string.

    Update this fixture when cutting a release so that the version
    test immediately catches stale ``__version__`` values.
    """
    return "0.1.0"
