"""Unit tests for virt.config: file discovery, placeholder expansion,
environment resolution and coercion of the typed blocks.
"""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from virt.config import (
    PostgresConfig,
    apply_environment,
    expand_placeholders,
    get_config_source_path,
    load_env_files,
    reset_config_cache,
    resolve_environment,
)
from virt.config.environment import find_config_path, sanitize_variables
from virt.config.models import coerce_mongo_config, coerce_opensearch_config, coerce_postgres_config
from virt.errors import ConfigError

CONFIG = """
default: local
variables:
  host: db.internal
environments:
  local:
    apiUrl: http://localhost:4000
    variables:
      pg_password: secret
    paths:
      projectsDir: ./projects-local
    postgres:
      mode: direct
      host: ${HOST}
      port: "5433"
      password: ${PG_PASSWORD}
      ssl: "true"
    databases:
      wallet:
        user: wallet_user
        adminDb: admin
    opensearch:
      url: http://search:9200
      user: admin
    mongo:
      url: mongodb://mongo:27017
      db: virtual_local
  staging:
    apiUrl: https://staging.example.com
"""


# ===========================================================================
# Discovery
# ===========================================================================


class TestConfigDiscovery:
    def test_no_config_file_resolves_from_env(self) -> None:
        result = resolve_environment()
        assert result.source == "env"
        assert result.env_name == "default"
        assert result.env is None

    def test_first_matching_file_wins(self, write_file) -> None:
        write_file(".virt.yaml", "default: a\n")
        write_file("virt.config.yml", "default: b\n")
        assert find_config_path() == Path.cwd() / "virt.config.yml"

    def test_source_path_reported(self, write_file) -> None:
        path = write_file("virt.config.yaml", CONFIG)
        resolve_environment()
        assert get_config_source_path() == path

    def test_config_is_cached_until_reset(self, write_file) -> None:
        path = write_file("virt.config.yaml", CONFIG)
        assert resolve_environment().env_name == "local"
        path.write_text("default: staging\nenvironments:\n  staging: {}\n", encoding="utf-8")
        assert resolve_environment().env_name == "local"
        reset_config_cache()
        assert resolve_environment().env_name == "staging"

    def test_invalid_yaml_raises_config_error(self, write_file) -> None:
        write_file("virt.config.yaml", "environments: [unclosed\n")
        with pytest.raises(ConfigError):
            resolve_environment()


# ===========================================================================
# Placeholders and variables
# ===========================================================================


class TestPlaceholders:
    def test_variables_take_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NAME", "from-env")
        assert expand_placeholders("${name}", {"NAME": "vars"}, {"NAME": "global"}) == "vars"

    def test_fallback_then_process_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OTHER", "from-env")
        assert expand_placeholders("${ NAME }-${OTHER}", None, {"NAME": "global"}) == "global-from-env"

    def test_unknown_placeholder_left_verbatim(self) -> None:
        assert expand_placeholders("x-${MISSING_KEY_XYZ}") == "x-${MISSING_KEY_XYZ}"

    def test_sanitize_variables_uppercases_and_drops_blanks(self) -> None:
        assert sanitize_variables({" host ": "h", "empty": "  ", "num": 3}) == {"HOST": "h"}

    def test_sanitize_variables_empty_is_none(self) -> None:
        assert sanitize_variables({"a": ""}) is None
        assert sanitize_variables(["a"]) is None


# ===========================================================================
# Resolution
# ===========================================================================


class TestResolveEnvironment:
    def test_default_environment_is_expanded(self, write_file) -> None:
        write_file("virt.config.yaml", CONFIG)
        result = resolve_environment()
        env = result.env
        assert result.source == "yaml"
        assert env is not None
        assert env.name == "local"
        assert env.api_url == "http://localhost:4000"
        assert env.projects_dir == "./projects-local"
        assert env.postgres == PostgresConfig(
            mode="direct", host="db.internal", port=5433, password="secret", ssl=True
        )
        assert env.databases == {"wallet": PostgresConfig(user="wallet_user", admin_db="admin")}
        assert env.opensearch is not None and env.opensearch.url == "http://search:9200"
        assert env.mongo is not None and env.mongo.db == "virtual_local"

    def test_explicit_name_beats_virt_env(self, write_file, monkeypatch: pytest.MonkeyPatch) -> None:
        write_file("virt.config.yaml", CONFIG)
        monkeypatch.setenv("VIRT_ENV", "local")
        assert resolve_environment("staging").env_name == "staging"

    def test_virt_env_beats_default(self, write_file, monkeypatch: pytest.MonkeyPatch) -> None:
        write_file("virt.config.yaml", CONFIG)
        monkeypatch.setenv("VIRT_ENV", "staging")
        assert resolve_environment().env.api_url == "https://staging.example.com"

    def test_first_environment_when_no_default(self, write_file) -> None:
        write_file("virt.config.yaml", "environments:\n  first: {}\n  second: {}\n")
        assert resolve_environment().env_name == "first"

    def test_unknown_environment(self, write_file) -> None:
        write_file("virt.config.yaml", CONFIG)
        result = resolve_environment("nope")
        assert result.source == "yaml"
        assert result.env is None

    def test_apply_environment_exports_unset_variables(self, write_file) -> None:
        write_file("virt.config.yaml", CONFIG)
        apply_environment("local")
        assert os.environ["VIRT_ENV"] == "local"
        assert os.environ["API_URL"] == "http://localhost:4000"
        assert os.environ["PROJECTS_DIR"] == "./projects-local"

    def test_apply_environment_keeps_existing_api_url(self, write_file, monkeypatch: pytest.MonkeyPatch) -> None:
        write_file("virt.config.yaml", CONFIG)
        monkeypatch.setenv("API_URL", "http://override")
        apply_environment()
        assert os.environ["API_URL"] == "http://override"


# ===========================================================================
# Coercion
# ===========================================================================


class TestCoercion:
    def test_postgres_mode_defaults_to_compose(self) -> None:
        assert coerce_postgres_config({"mode": "weird"}).mode == "compose"

    def test_postgres_invalid_port_ignored(self) -> None:
        assert coerce_postgres_config({"port": "abc", "user": "u"}) == PostgresConfig(user="u")

    def test_postgres_bool_port_ignored(self) -> None:
        assert coerce_postgres_config({"port": True}) is None

    def test_empty_blocks_are_none(self) -> None:
        assert coerce_postgres_config({}) is None
        assert coerce_opensearch_config({"url": 1}) is None
        assert coerce_mongo_config("mongodb://x") is None


class TestEnvFiles:
    def test_cwd_env_file_loaded_without_override(self, write_file, monkeypatch: pytest.MonkeyPatch) -> None:
        write_file(".env", "API_URL=http://from-file\nMONGO_DB=from-file\n")
        monkeypatch.setenv("MONGO_DB", "kept")
        loaded = load_env_files()
        assert loaded == Path.cwd() / ".env"
        assert os.environ["API_URL"] == "http://from-file"
        assert os.environ["MONGO_DB"] == "kept"

    def test_package_env_file_is_fallback(self, tmp_path: Path) -> None:
        package_dir = tmp_path / "pkg"
        package_dir.mkdir()
        (package_dir / ".env").write_text("OPENSEARCH_URL=http://pkg\n", encoding="utf-8")
        assert load_env_files(package_dir) == package_dir / ".env"
        assert os.environ["OPENSEARCH_URL"] == "http://pkg"

    def test_no_env_file(self) -> None:
        assert load_env_files() is None
