"""CLI tests for ``shell-virtual opensearch``.

``OpensearchClient`` is swapped for one bound to an ``httpx.MockTransport``
so every request is recorded instead of sent.
"""
from __future__ import annotations

import json
from collections.abc import Iterator

import httpx
import pytest
import yaml
from click.testing import CliRunner

from virt.cli.main import cli
from virt.opensearch import OpensearchClient

MAPPINGS = {"parties": {"mappings": {"properties": {"name": {"type": "text"}}}}}
SETTINGS = {"parties": {"settings": {"index": {"number_of_shards": "1"}}}}


class FakeOpensearch:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.endpoints: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/_bulk":
            return httpx.Response(200, json={"took": 3, "errors": False, "items": []})
        if path.endswith("/_mapping"):
            return httpx.Response(200, json=MAPPINGS)
        if path.endswith("/_settings"):
            return httpx.Response(200, json=SETTINGS)
        if path.endswith("/_search"):
            hits = [{"_id": "1", "_source": {"name": "Acme", "type": "ORG"}}]
            return httpx.Response(200, json={"hits": {"total": {"value": 1}, "hits": hits}})
        if path == "/_cat/indices":
            return httpx.Response(200, json=[{"index": "parties", "docs.count": "3"}])
        if path.endswith("/_delete_by_query"):
            return httpx.Response(200, json={"deleted": 3, "failures": []})
        if request.method == "PUT" and path == "/broken":
            return httpx.Response(400, json={"error": "resource_already_exists_exception"})
        return httpx.Response(200, json={"result": "ok"})

    def factory(self, endpoint: str, auth=None) -> OpensearchClient:
        self.endpoints.append(endpoint)
        return OpensearchClient(endpoint, auth=auth, transport=httpx.MockTransport(self))


@pytest.fixture()
def fake(monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeOpensearch]:
    server = FakeOpensearch()
    monkeypatch.setattr("virt.opensearch.OpensearchClient", server.factory)
    yield server


def _run(*args: str):
    return CliRunner().invoke(cli, ["opensearch", *args])


class TestLoad:
    def test_dry_run_prints_payload(self, write_file, fake: FakeOpensearch) -> None:
        write_file("docs.yaml", "- {name: a}\n- {name: b}\n")
        result = _run("load", "docs.yaml", "--index", "parties", "--dry-run")
        assert result.exit_code == 0, result.output
        assert "Bulk payload ready (2 docs)." in result.output
        assert '{"index":{"_index":"parties"}}' in result.output
        assert fake.requests == []

    def test_sends_ndjson(self, write_file, fake: FakeOpensearch) -> None:
        write_file("docs.ndjson", '{"index":{"_index":"p"}}\n{"name":"a"}')
        result = _run("load", "docs.ndjson", "-e", "http://search.test:9200/")
        assert result.exit_code == 0, result.output
        assert "Loaded 1 document(s) into OpenSearch." in result.output
        request = fake.requests[0]
        assert str(request.url) == "http://search.test:9200/_bulk"
        assert request.headers["content-type"] == "application/x-ndjson"
        assert request.content.endswith(b"\n")

    def test_missing_index_fails(self, write_file, fake: FakeOpensearch) -> None:
        write_file("docs.json", '[{"a": 1}]')
        result = _run("load", "docs.json")
        assert result.exit_code == 1
        assert "Missing required --index" in result.output

    def test_endpoint_from_environment(self, write_file, fake: FakeOpensearch, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENSEARCH_URL", "http://env-search.test:9200")
        write_file("docs.json", '{"a": 1}')
        assert _run("load", "docs.json", "-i", "p").exit_code == 0
        assert fake.endpoints == ["http://env-search.test:9200"]


class TestIndexCommands:
    def test_create_index_with_body(self, write_file, fake: FakeOpensearch) -> None:
        write_file("body.yaml", "settings: {number_of_shards: 1}\n")
        result = _run("create-index", "parties", "--body", "body.yaml")
        assert result.exit_code == 0, result.output
        assert 'Index "parties" created.' in result.output
        assert json.loads(fake.requests[0].content) == {"settings": {"number_of_shards": 1}}

    def test_create_index_http_error(self, fake: FakeOpensearch) -> None:
        result = _run("create-index", "broken")
        assert result.exit_code == 1
        assert "Error while creating OpenSearch index" in result.output

    def test_insert_with_id(self, write_file, fake: FakeOpensearch) -> None:
        write_file("doc.yaml", "name: Acme\n")
        result = _run("insert", "parties", "doc.yaml", "--id", "p-1")
        assert result.exit_code == 0, result.output
        assert 'Inserted document into "parties".' in result.output
        assert fake.requests[0].method == "PUT"
        assert fake.requests[0].url.path == "/parties/_doc/p-1"
        assert json.loads(fake.requests[0].content) == {"name": "Acme"}

    def test_insert_yaml_date_as_string(self, write_file, fake: FakeOpensearch) -> None:
        write_file("doc.yaml", "name: Acme\ncreated: 2024-01-01\n")
        result = _run("insert", "parties", "doc.yaml")
        assert result.exit_code == 0, result.output
        assert fake.requests[0].headers["content-type"] == "application/json"
        assert json.loads(fake.requests[0].content) == {"name": "Acme", "created": "2024-01-01"}

    def test_insert_rejects_list(self, write_file, fake: FakeOpensearch) -> None:
        write_file("docs.json", "[1, 2]")
        result = _run("insert", "parties", "docs.json")
        assert result.exit_code == 1
        assert fake.requests == []

    def test_describe_unwrap_compact(self, fake: FakeOpensearch) -> None:
        result = _run("describe-index", "parties", "--mappings", "--unwrap", "--format", "compact")
        assert result.exit_code == 0, result.output
        assert 'Index "parties" mappings:' in result.output
        assert '{"properties":{"name":{"type":"text"}}}' in result.output
        assert len(fake.requests) == 1

    def test_describe_both_kinds(self, fake: FakeOpensearch) -> None:
        result = _run("describe-index", "parties")
        assert 'Index "parties" mappings:' in result.output
        assert 'Index "parties" settings:' in result.output

    def test_describe_mapping_table(self, fake: FakeOpensearch) -> None:
        result = _run("describe-index", "parties", "--mappings", "--table")
        assert result.exit_code == 0, result.output
        assert "name" in result.output
        assert "text" in result.output

    def test_list_indices_json(self, fake: FakeOpensearch) -> None:
        result = _run("list-indices", "--format", "json")
        assert json.loads(result.output) == [{"index": "parties", "docs.count": "3"}]
        assert fake.requests[0].url.params["format"] == "json"

    def test_export_to_yaml_file(self, fake: FakeOpensearch, tmp_path) -> None:
        result = _run("export-index", "parties", "--format", "yaml", "-o", "out.yaml")
        assert result.exit_code == 0, result.output
        exported = yaml.safe_load((tmp_path / "out.yaml").read_text(encoding="utf-8"))
        assert exported == {
            "mappings": {"properties": {"name": {"type": "text"}}},
            "settings": {"index": {"number_of_shards": "1"}},
        }


class TestSearchAndDelete:
    def test_query_string_search(self, fake: FakeOpensearch) -> None:
        result = _run("search", "parties", "-q", "name:Acme", "--size", "5", "--from", "10")
        assert result.exit_code == 0, result.output
        assert json.loads(fake.requests[0].content) == {
            "query": {"query_string": {"query": "name:Acme"}},
            "size": 5,
            "from": 10,
        }

    def test_search_table(self, fake: FakeOpensearch) -> None:
        result = _run("search", "parties", "--table", "--fields", "name")
        assert result.exit_code == 0, result.output
        assert "Acme" in result.output

    def test_delete_requires_confirmation(self, fake: FakeOpensearch) -> None:
        result = CliRunner().invoke(cli, ["opensearch", "delete", "parties", "1"], input="n\n")
        assert result.exit_code == 0
        assert "Aborted." in result.output
        assert fake.requests == []

    def test_delete_with_yes(self, fake: FakeOpensearch) -> None:
        result = _run("delete", "parties", "a b", "-y")
        assert result.exit_code == 0, result.output
        assert fake.requests[0].method == "DELETE"
        assert fake.requests[0].url.raw_path == b"/parties/_doc/a%20b"

    def test_delete_all(self, fake: FakeOpensearch) -> None:
        result = _run("delete-all", "parties", "--yes")
        assert result.exit_code == 0, result.output
        assert 'Deleted all documents from "parties".' in result.output
        assert json.loads(fake.requests[0].content) == {"query": {"match_all": {}}}
