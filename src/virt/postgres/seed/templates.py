"""Ready-made seed SQL for single entries of a ``seed-data.yml`` document.

The document holds lists of entries keyed by kind::

    security_users:
      - email: admin@example.com
        status: ACTIVE
    wallet_operations:
      - currency: {id: EUR, name: Euro, symbol: "€", decimalPrecision: 0.01, type: fiat}
        operation: {amount: 500}

:func:`render_seed_entry` picks one entry and renders the SQL for it,
filling every missing field with a random but consistent value.
"""
from __future__ import annotations

import json
import os
import random
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from virt.errors import SeedError
from virt.files import read_text, resolve_path

DEFAULT_SEED_FILE = "seed-data.yml"
DEFAULT_PASSWORD_HASH = "$2a$10$40SJnt2xBh9KAesy8qGH5umpGqxFJdIWw8m3KaiKT9NXgMd2PAlpi"

ENTRY_KEYS = {
    "security-users": "security_users",
    "wallet-operations": "wallet_operations",
}


def default_seed_file() -> Path:
    return resolve_path(os.environ.get("SEED_FILE") or DEFAULT_SEED_FILE)


def default_seed_index() -> int:
    raw = os.environ.get("SEED_INDEX") or "0"
    try:
        return int(raw)
    except ValueError:
        return 0


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def _escape(value: Any) -> str:
    return str(value).replace("'", "''")


def sql_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return f"'{_escape(value)}'"


def sql_json_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, str):
        return f"'{_escape(value)}'::jsonb"
    return f"'{_escape(json.dumps(value, separators=(',', ':'), default=str))}'::jsonb"


def _default(value: Any, fallback: Any) -> Any:
    """``value or fallback`` for text-ish fields."""
    return value if value else fallback


def _coalesce(value: Any, fallback: Any) -> Any:
    """``fallback`` only when ``value`` is missing; keeps ``False`` and ``0``."""
    return fallback if value is None else value


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


class SeedEntryRenderer:
    """Render entry SQL with injectable randomness.

    Parameters
    ----------
    new_id:
        Returns a fresh identifier (UUID string).
    rng:
        Random source for generated amounts.
    """

    def __init__(
        self,
        new_id: Callable[[], str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._new_id = new_id or (lambda: str(uuid.uuid4()))
        self._rng = rng or random.Random()

    def suffix(self) -> str:
        return self._new_id().replace("-", "")[:12]

    def render(self, kind: str, entry: dict[str, Any]) -> str:
        if kind == "security-users":
            return self.security_user(entry)
        if kind == "wallet-operations":
            return self.wallet_operation(entry)
        raise SeedError(f'Unknown seed entry "{kind}". Use security-users or wallet-operations.')

    def security_user(self, entry: dict[str, Any]) -> str:
        suffix = self.suffix()
        identifier = _default(entry.get("identifier"), None) or self._new_id()
        party_id = _default(entry.get("partyId"), None) or self._new_id()
        username = _default(entry.get("username"), f"user_{suffix}")
        metadata = _default(
            entry.get("metadata"),
            {
                "type": "person",
                "chain": f"chain_{suffix}",
                "status": "ACTIVE",
                "partyId": party_id,
                "partyType": "person",
            },
        )
        created_at = sql_value(entry["createdAt"]) if entry.get("createdAt") else "now()"
        updated_at = sql_value(entry["updatedAt"]) if entry.get("updatedAt") else "now()"
        values = ",\n  ".join(
            [
                sql_value(identifier),
                sql_value(_default(entry.get("name"), f"user {suffix}")),
                sql_value(username),
                sql_value(_default(entry.get("email"), f"{username}@email.com")),
                sql_value(_default(entry.get("password"), DEFAULT_PASSWORD_HASH)),
                sql_value(party_id),
                created_at,
                updated_at,
                sql_value(_default(entry.get("status"), "ACTIVE")),
                sql_json_value(metadata),
                sql_value(entry.get("algorithm")),
                sql_value(_coalesce(entry.get("canLogin"), True)),
            ]
        )
        return (
            'INSERT INTO "User" (\n'
            '  identifier, name, username, email, password, "partyId",\n'
            '  "createdAt", "updatedAt", status, metadata, algorithm, "canLogin"\n'
            ") VALUES (\n"
            f"  {values}\n"
            ")\n"
            "ON CONFLICT (email) DO NOTHING;"
        )

    def wallet_operation(self, entry: dict[str, Any]) -> str:
        suffix = self.suffix()
        currency = _default(
            entry.get("currency"),
            {"id": "USD", "name": "US Dollar", "symbol": "$", "decimalPrecision": 0.01, "type": "fiat"},
        )
        party = entry.get("party") or {}
        account = entry.get("account") or {}
        operation = entry.get("operation") or {}
        balances = account.get("balances") or {}

        party_identifier = _default(party.get("identifier"), None) or self._new_id()
        party_type = _default(party.get("type"), "person")
        party_metadata = _default(
            party.get("metadata"),
            {"type": party_type, "email": f"user_{suffix}@email.com", "userName": f"user_{suffix}"},
        )
        account_identifier = _default(account.get("identifier"), None) or self._new_id()
        amount = _coalesce(operation.get("amount"), self._rng.randint(1, 10000))

        def balance(name: str) -> str:
            return sql_value(_coalesce(balances.get(name), 0))

        return f"""INSERT INTO "Currency" (id, name, symbol, "decimalPrecision", type)
VALUES (
  {sql_value(currency.get("id"))},
  {sql_value(currency.get("name"))},
  {sql_value(currency.get("symbol"))},
  {sql_value(currency.get("decimalPrecision"))},
  {sql_value(currency.get("type"))}
)
ON CONFLICT (id) DO NOTHING;

WITH upsert_party AS (
  INSERT INTO "Party" (
    name, identifier, type, chain, status, visible, metadata, "createdAt", "updatedAt"
  ) VALUES (
    {sql_value(_default(party.get("name"), f"user_{suffix}"))},
    {sql_value(party_identifier)},
    {sql_value(party_type)},
    {sql_value(_default(party.get("chain"), f"chain_{suffix}"))},
    {sql_value(_default(party.get("status"), "ACTIVE"))},
    {sql_value(_coalesce(party.get("visible"), True))},
    {sql_json_value(party_metadata)},
    now(),
    now()
  )
  ON CONFLICT (identifier) DO UPDATE SET "updatedAt" = now()
  RETURNING id, chain
),
party_row AS (
  SELECT id, chain FROM upsert_party
  UNION ALL
  SELECT id, chain FROM "Party" WHERE identifier = {sql_value(party_identifier)} LIMIT 1
),
upsert_account AS (
  INSERT INTO "Account" (
    name, "currencyId", status, chain, "partyId", identifier,
    "availableBalance", "depositBalance", "payoutBalance", "bonusBalance",
    "pendingBalance", "blockedBalance",
    "createdAt", "updatedAt"
  )
  SELECT
    {sql_value(_default(account.get("name"), f"acct_{suffix}"))},
    {sql_value(_default(account.get("currencyId"), currency.get("id")))},
    {sql_value(_default(account.get("status"), "active"))},
    p.chain,
    p.id,
    {sql_value(account_identifier)},
    {balance("available")},
    {balance("deposit")},
    {balance("payout")},
    {balance("bonus")},
    {balance("pending")},
    {balance("blocked")},
    now(),
    now()
  FROM party_row p
  ON CONFLICT (identifier) DO UPDATE SET "updatedAt" = now()
  RETURNING id, chain
),
account_row AS (
  SELECT id, chain FROM upsert_account
  UNION ALL
  SELECT id, chain FROM "Account" WHERE identifier = {sql_value(account_identifier)} LIMIT 1
)
INSERT INTO "Operation" (
  amount, "operationType", subtype, status, timestamp, "destinationAccountId", chain, "createdBy", "createdAt", "updatedAt"
)
SELECT
  {sql_value(amount)},
  {sql_value(_default(operation.get("operationType"), "deposit"))},
  {sql_value(_default(operation.get("subtype"), "seed"))},
  {sql_value(_default(operation.get("status"), "CREATED"))},
  now(),
  a.id,
  a.chain,
  NULL,
  now(),
  now()
FROM account_row a;"""


# ---------------------------------------------------------------------------
# Entry selection
# ---------------------------------------------------------------------------


def load_seed_data(path: str | os.PathLike[str]) -> dict[str, Any]:
    resolved = resolve_path(path)
    if not resolved.exists():
        raise SeedError(f"Seed file not found: {resolved}")
    try:
        data = yaml.safe_load(read_text(resolved))
    except yaml.YAMLError as exc:
        raise SeedError(f"Invalid seed YAML: {exc}") from exc
    return data if isinstance(data, dict) else {}


def pick_entry(data: dict[str, Any], kind: str, index: int, source: str = "seed file") -> dict[str, Any]:
    """Return entry ``index`` of the list for ``kind``.

    Raises
    ------
    SeedError
        If ``kind`` is unknown, the list is empty, or ``index`` is out of range.
    """
    key = ENTRY_KEYS.get(kind)
    if key is None:
        raise SeedError(f'Unknown seed entry "{kind}". Use security-users or wallet-operations.')
    entries = data.get(key)
    if not isinstance(entries, list) or not entries:
        raise SeedError(f"No entries found for {key} in {source}")
    if index < 0 or index >= len(entries) or not entries[index]:
        raise SeedError(f"No entry at index {index} for {key} in {source}")
    entry = entries[index]
    if not isinstance(entry, dict):
        raise SeedError(f"Entry {index} of {key} in {source} must be an object.")
    return entry


def render_seed_entry(
    kind: str,
    seed_file: str | os.PathLike[str] | None = None,
    index: int | None = None,
    renderer: SeedEntryRenderer | None = None,
) -> str:
    """Load ``seed_file`` and render SQL for one entry of ``kind``."""
    path = resolve_path(seed_file) if seed_file else default_seed_file()
    data = load_seed_data(path)
    entry = pick_entry(data, kind, default_seed_index() if index is None else index, str(path))
    return (renderer or SeedEntryRenderer()).render(kind, entry) + "\n"
