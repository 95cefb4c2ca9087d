"""Unit tests for virt.files."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from virt.errors import InputFileError
from virt.files import (
    dump_structured,
    encode_json,
    load_object_file,
    load_structured_file,
    read_party_file,
    read_simulation_file,
    resolve_path,
    resolve_project_file,
    write_output,
)


class TestLoadStructuredFile:
    def test_json(self, write_file) -> None:
        write_file("doc.json", '{"a": 1}')
        assert load_structured_file("doc.json") == {"a": 1}

    def test_yaml(self, write_file) -> None:
        write_file("doc.yml", "a: [1, 2]\n")
        assert load_structured_file("doc.yml") == {"a": [1, 2]}

    def test_unsupported_extension(self, write_file) -> None:
        write_file("doc.txt", "x")
        with pytest.raises(InputFileError, match="Unsupported file type"):
            load_structured_file("doc.txt")

    def test_missing_file(self) -> None:
        with pytest.raises(InputFileError, match="File not found"):
            load_structured_file("missing.json")

    def test_malformed_json(self, write_file) -> None:
        write_file("bad.json", "{nope")
        with pytest.raises(InputFileError, match="Invalid json"):
            load_structured_file("bad.json")

    def test_object_required(self, write_file) -> None:
        write_file("list.json", "[1]")
        with pytest.raises(InputFileError, match="Filter must be a JSON/YAML object"):
            load_object_file("list.json", "Filter")


class TestDocumentReaders:
    def test_simulation_requires_name(self, write_file) -> None:
        write_file("sim.yaml", "parties: [{name: a}]\n")
        with pytest.raises(InputFileError, match='"name"'):
            read_simulation_file("sim.yaml")

    def test_simulation_requires_parties(self, write_file) -> None:
        write_file("sim.yaml", "name: run\nparties: []\n")
        with pytest.raises(InputFileError, match='"parties"'):
            read_simulation_file("sim.yaml")

    def test_party_file(self, write_file) -> None:
        write_file("parties.yaml", "parties:\n  - name: Org\n    type: ORGANIZATION\n")
        assert read_party_file("parties.yaml")["parties"][0]["name"] == "Org"

    def test_empty_yaml_rejected(self, write_file) -> None:
        write_file("empty.yaml", "")
        with pytest.raises(InputFileError, match="valid object"):
            read_party_file("empty.yaml")

    def test_malformed_yaml_rejected(self, write_file) -> None:
        write_file("sim.yaml", "name: x\nparties: [a, b\n")
        with pytest.raises(InputFileError, match="Invalid yaml content"):
            read_simulation_file("sim.yaml")


class TestPaths:
    def test_relative_path_anchored_at_cwd(self) -> None:
        assert resolve_path("a/b.json") == Path.cwd() / "a/b.json"

    def test_absolute_path_unchanged(self, tmp_path: Path) -> None:
        assert resolve_path(tmp_path / "x") == tmp_path / "x"

    def test_project_file_uses_projects_dir(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PROJECTS_DIR", "workspace")
        expected = (Path.cwd() / "workspace" / "demo" / "parties.yaml").resolve()
        assert resolve_project_file("demo", "parties.yaml") == expected

    def test_project_file_default_dir(self) -> None:
        assert resolve_project_file("demo", "a.yaml").parent.parent.name == "projects"


class TestDump:
    def test_json_two_space_indent(self) -> None:
        assert dump_structured({"a": 1}) == json.dumps({"a": 1}, indent=2)

    def test_yaml_keeps_key_order(self) -> None:
        text = dump_structured({"b": 1, "a": 2}, "yaml")
        assert text.index("b:") < text.index("a:")
        assert yaml.safe_load(text) == {"b": 1, "a": 2}

    def test_encode_json_stringifies_dates(self, write_file) -> None:
        write_file("sim.yaml", "name: x\nstartDate: 2024-01-01\nparties: [{type: PLAYER}]\n")
        body = encode_json(read_simulation_file("sim.yaml"))
        assert json.loads(body)["startDate"] == "2024-01-01"

    def test_write_output(self) -> None:
        destination = write_output("out.json", "{}")
        assert destination == Path.cwd() / "out.json"
        assert destination.read_text(encoding="utf-8") == "{}"
