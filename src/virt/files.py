"""File helpers shared by the CLI commands.

Inputs may be JSON or YAML; the extension decides the parser.  Paths are
resolved relative to the current working directory.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from virt.errors import InputFileError

JSON_EXTENSIONS = frozenset({".json"})
YAML_EXTENSIONS = frozenset({".yaml", ".yml"})
NDJSON_EXTENSIONS = frozenset({".ndjson", ".jsonl"})


def resolve_path(path: str | os.PathLike[str]) -> Path:
    """Return ``path`` as an absolute path, anchored at the CWD if relative."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return Path.cwd() / candidate


def read_text(path: str | os.PathLike[str]) -> str:
    absolute = resolve_path(path)
    try:
        return absolute.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise InputFileError(f"File not found: {absolute}") from None
    except OSError as exc:
        raise InputFileError(f"Cannot read {absolute}: {exc}") from exc


def parse_structured(raw: str, extension: str) -> Any:
    """Parse ``raw`` as JSON or YAML according to ``extension``."""
    ext = extension.lower()
    try:
        if ext in JSON_EXTENSIONS:
            return json.loads(raw)
        if ext in YAML_EXTENSIONS:
            return yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InputFileError(f"Invalid {ext.lstrip('.')} content: {exc}") from exc
    raise InputFileError("Unsupported file type. Use .json, .yaml, or .yml.")


def load_structured_file(path: str | os.PathLike[str]) -> Any:
    """Load a ``.json``, ``.yaml`` or ``.yml`` file.

    Raises
    ------
    InputFileError
        If the file is missing, unreadable, malformed or has another extension.
    """
    absolute = resolve_path(path)
    if absolute.suffix.lower() not in JSON_EXTENSIONS | YAML_EXTENSIONS:
        raise InputFileError("Unsupported file type. Use .json, .yaml, or .yml.")
    return parse_structured(read_text(absolute), absolute.suffix)


def load_object_file(path: str | os.PathLike[str], label: str = "Document") -> dict[str, Any]:
    """Load a structured file that must contain a single mapping."""
    data = load_structured_file(path)
    if not isinstance(data, dict):
        raise InputFileError(f"{label} must be a JSON/YAML object.")
    return data


def read_yaml_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read a YAML file whose top level is a mapping."""
    try:
        parsed = yaml.safe_load(read_text(path))
    except yaml.YAMLError as exc:
        raise InputFileError(f"Invalid yaml content: {exc}") from exc
    if not parsed or not isinstance(parsed, dict):
        raise InputFileError("YAML file does not contain a valid object.")
    return parsed


def read_simulation_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    parsed = read_yaml_file(path)
    if not parsed.get("name"):
        raise InputFileError('Simulation file must include a "name" field.')
    parties = parsed.get("parties")
    if not isinstance(parties, list) or not parties:
        raise InputFileError('Simulation file must define at least one entry in "parties".')
    return parsed


def read_party_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    parsed = read_yaml_file(path)
    parties = parsed.get("parties")
    if not isinstance(parties, list) or not parties:
        raise InputFileError('Party file must define at least one entry in "parties".')
    return parsed


def resolve_project_file(project: str, filename: str) -> Path:
    """Return ``<cwd>/<PROJECTS_DIR>/<project>/<filename>``."""
    projects_root = os.environ.get("PROJECTS_DIR") or "projects"
    return (Path.cwd() / projects_root / project / filename).resolve()


def dump_structured(data: Any, fmt: str = "json") -> str:
    """Serialize ``data`` as pretty JSON or block-style YAML."""
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def encode_json(data: Any) -> bytes:
    """Encode a request body; YAML dates and other non-JSON scalars become strings."""
    return json.dumps(data, ensure_ascii=False, default=str).encode("utf-8")


def write_output(path: str | os.PathLike[str], content: str) -> Path:
    """Write ``content`` to ``path`` and return the absolute destination."""
    absolute = resolve_path(path)
    absolute.write_text(content, encoding="utf-8")
    return absolute
