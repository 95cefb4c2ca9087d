"""CLI tests for ``shell-virtual mongo``; the database is a MagicMock."""
from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import yaml
from bson import Decimal128, ObjectId
from click.testing import CliRunner

from virt.cli.main import cli

OID = "64b7f0c2a1b2c3d4e5f60718"


@pytest.fixture()
def database(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    db = MagicMock()
    targets: list[object] = []

    @contextmanager
    def fake_database(target):
        targets.append(target)
        yield db

    monkeypatch.setattr("virt.mongo.mongo_database", fake_database)
    db.targets = targets
    return db


def _run(*args: str, **kwargs: object):
    return CliRunner().invoke(cli, ["mongo", *args], **kwargs)


class TestMongoCli:
    def test_list_collections(self, database: MagicMock) -> None:
        database.list_collections.return_value = [{"name": "parties", "type": "collection"}]
        result = _run("list-collections", "--uri", "mongodb://m.test", "--db", "app")
        assert result.exit_code == 0, result.output
        assert "parties" in result.output
        target = database.targets[0]
        assert (target.uri, target.db) == ("mongodb://m.test", "app")

    def test_insert_single(self, write_file, database: MagicMock) -> None:
        write_file("doc.json", '{"name": "Acme"}')
        database["parties"].insert_one.return_value.inserted_id = "abc"
        result = _run("insert", "parties", "doc.json")
        assert result.exit_code == 0, result.output
        assert 'Inserted 1 document into "parties" (id: abc).' in result.output

    def test_insert_many(self, write_file, database: MagicMock) -> None:
        write_file("docs.yaml", "- {name: a}\n- {name: b}\n")
        database["parties"].insert_many.return_value.inserted_ids = [1, 2]
        result = _run("insert", "parties", "docs.yaml")
        assert 'Inserted 2 document(s) into "parties".' in result.output

    def test_insert_yaml_date(self, write_file, database: MagicMock) -> None:
        write_file("doc.yaml", "name: Acme\ncreated: 2024-01-01\n")
        database["parties"].insert_one.return_value.inserted_id = "abc"
        result = _run("insert", "parties", "doc.yaml")
        assert result.exit_code == 0, result.output
        database["parties"].insert_one.assert_called_once_with({"name": "Acme", "created": datetime(2024, 1, 1)})

    def test_find_with_filter_sort_and_limit(self, write_file, database: MagicMock) -> None:
        write_file("filter.yaml", "status: ACTIVE\n")
        cursor = database["parties"].find.return_value
        cursor.sort.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([{"_id": ObjectId(OID), "name": "Acme"}])

        result = _run("find", "parties", "-f", "filter.yaml", "--sort", '{"name": 1}', "--limit", "3")

        assert result.exit_code == 0, result.output
        database["parties"].find.assert_called_with({"status": "ACTIVE"})
        cursor.sort.assert_called_once_with([("name", 1)])
        cursor.limit.assert_called_once_with(3)
        assert json.loads(result.output) == [{"_id": OID, "name": "Acme"}]

    def test_find_invalid_sort(self, database: MagicMock) -> None:
        result = _run("find", "parties", "--sort", "{bad")
        assert result.exit_code == 1
        assert "Invalid --sort JSON" in result.output

    def test_filter_must_be_object(self, write_file, database: MagicMock) -> None:
        write_file("filter.json", "[1]")
        result = _run("find", "parties", "-f", "filter.json")
        assert result.exit_code == 1
        assert "Filter must be a JSON/YAML object." in result.output

    def test_delete_by_object_id(self, database: MagicMock) -> None:
        database["parties"].delete_one.return_value.deleted_count = 1
        result = _run("delete", "parties", OID, "-y")
        assert result.exit_code == 0, result.output
        database["parties"].delete_one.assert_called_once_with({"_id": ObjectId(OID)})
        assert 'Deleted 1 document(s) from "parties".' in result.output

    def test_delete_by_filter(self, write_file, database: MagicMock) -> None:
        write_file("filter.json", '{"status": "CLOSED"}')
        database["parties"].delete_many.return_value.deleted_count = 4
        result = _run("delete", "parties", "--filter", "filter.json", "--yes")
        database["parties"].delete_many.assert_called_once_with({"status": "CLOSED"})
        assert 'Deleted 4 document(s) from "parties".' in result.output

    def test_delete_needs_id_or_filter(self, database: MagicMock) -> None:
        result = _run("delete", "parties", "-y")
        assert result.exit_code == 1
        assert "Provide an id or a filter to delete." in result.output

    def test_delete_declined(self, database: MagicMock) -> None:
        result = _run("delete", "parties", "x1", input="n\n")
        assert result.exit_code == 0
        assert "Aborted." in result.output
        database["parties"].delete_one.assert_not_called()

    def test_export_yaml_with_decimal(self, database: MagicMock, tmp_path) -> None:
        cursor = database["parties"].find.return_value
        cursor.__iter__.return_value = iter([{"_id": ObjectId(OID), "balance": Decimal128(Decimal("10.25"))}])
        result = _run("export", "parties", "-t", "yaml", "-o", "out.yaml")
        assert result.exit_code == 0, result.output
        exported = yaml.safe_load((tmp_path / "out.yaml").read_text(encoding="utf-8"))
        assert exported == [{"_id": OID, "balance": "10.25"}]

    def test_export_yaml_file(self, database: MagicMock, tmp_path) -> None:
        cursor = database["parties"].find.return_value
        cursor.__iter__.return_value = iter([{"_id": ObjectId(OID), "name": "Acme"}])
        result = _run("export", "parties", "-t", "yaml", "-o", "out.yaml")
        assert result.exit_code == 0, result.output
        assert "Exported 1 document(s) to" in result.output
        assert yaml.safe_load((tmp_path / "out.yaml").read_text(encoding="utf-8")) == [{"_id": OID, "name": "Acme"}]
