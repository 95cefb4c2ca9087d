"""Unit tests for virt.postgres.seed.templates: seed-data entry rendering."""
from __future__ import annotations

import random

import pytest

from virt.errors import SeedError
from virt.postgres.seed import SeedEntryRenderer, render_seed_entry
from virt.postgres.seed.templates import DEFAULT_PASSWORD_HASH, pick_entry, sql_json_value, sql_value

SEED_DATA = """
security_users:
  - email: ana@example.com
    username: ana
    canLogin: false
  - {}
wallet_operations:
  - party: {identifier: party-1, name: "O'Hara"}
    account: {identifier: acct-1, balances: {available: 50}}
    operation: {amount: 0}
"""


def _renderer() -> SeedEntryRenderer:
    return SeedEntryRenderer(new_id=lambda: "11111111-2222-3333-4444-555555555555", rng=random.Random(7))


class TestLiterals:
    def test_sql_value(self) -> None:
        assert sql_value(None) == "NULL"
        assert sql_value(False) == "false"
        assert sql_value(0.01) == "0.01"
        assert sql_value("it's") == "'it''s'"

    def test_sql_json_value(self) -> None:
        assert sql_json_value({"a": "b"}) == "'{\"a\":\"b\"}'::jsonb"
        assert sql_json_value(None) == "NULL"


class TestPickEntry:
    def test_unknown_kind(self) -> None:
        with pytest.raises(SeedError, match="Unknown seed entry"):
            pick_entry({}, "nope", 0)

    def test_missing_list(self) -> None:
        with pytest.raises(SeedError, match="No entries found for security_users in seed file"):
            pick_entry({}, "security-users", 0)

    def test_index_out_of_range(self) -> None:
        with pytest.raises(SeedError, match="No entry at index 3 for security_users"):
            pick_entry({"security_users": [{"a": 1}]}, "security-users", 3)


class TestSecurityUser:
    def test_explicit_fields(self) -> None:
        sql = _renderer().security_user({"email": "ana@example.com", "username": "ana", "canLogin": False})
        assert sql.startswith('INSERT INTO "User" (')
        assert "'ana@example.com'" in sql
        assert sql.rstrip().endswith("ON CONFLICT (email) DO NOTHING;")
        assert "  false\n)" in sql

    def test_defaults_are_generated(self) -> None:
        sql = _renderer().security_user({})
        assert "'user_111111112222'" in sql
        assert "'user_111111112222@email.com'" in sql
        assert f"'{DEFAULT_PASSWORD_HASH}'" in sql
        assert "now(),\n  now()" in sql
        assert '"chain":"chain_111111112222"' in sql


class TestWalletOperation:
    def test_uses_entry_values(self) -> None:
        entry = {
            "party": {"identifier": "party-1", "name": "O'Hara"},
            "account": {"identifier": "acct-1", "balances": {"available": 50}},
            "operation": {"amount": 0},
        }
        sql = _renderer().wallet_operation(entry)
        assert 'INSERT INTO "Currency"' in sql
        assert "'O''Hara'" in sql
        assert "WHERE identifier = 'party-1' LIMIT 1" in sql
        assert "WHERE identifier = 'acct-1' LIMIT 1" in sql
        assert "    50,\n" in sql
        assert "SELECT\n  0,\n  'deposit'" in sql

    def test_random_amount_when_missing(self) -> None:
        expected = random.Random(7).randint(1, 10000)
        sql = _renderer().wallet_operation({})
        assert f"SELECT\n  {expected},\n" in sql


class TestRenderSeedEntry:
    def test_reads_file_and_index(self, write_file) -> None:
        write_file("seed-data.yml", SEED_DATA)
        sql = render_seed_entry("security-users", "seed-data.yml", 0, _renderer())
        assert "'ana@example.com'" in sql
        assert sql.endswith(";\n")

    def test_env_defaults(self, write_file, monkeypatch: pytest.MonkeyPatch) -> None:
        write_file("data/custom.yml", SEED_DATA)
        monkeypatch.setenv("SEED_FILE", "data/custom.yml")
        monkeypatch.setenv("SEED_INDEX", "0")
        assert "'party-1'" in render_seed_entry("wallet-operations", renderer=_renderer())

    def test_empty_entry_rejected(self, write_file) -> None:
        write_file("seed-data.yml", SEED_DATA)
        with pytest.raises(SeedError, match="No entry at index 1"):
            render_seed_entry("security-users", "seed-data.yml", 1)

    def test_missing_file(self) -> None:
        with pytest.raises(SeedError, match="Seed file not found"):
            render_seed_entry("security-users", "nope.yml")
