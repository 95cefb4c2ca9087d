"""Load virtual API definitions from a resources directory.

Layout::

    resources/
      config.yaml              # optional, {resources: {...}}
      apis/
        <id>/
          openapi.yaml         # or openapi.yml
          handlers.yaml        # or handlers.yml

``handlers.yaml``::

    api:
      name: Wallet
      basePath: /wallet
      description: Wallet mock
    routes:
      - method: GET
        path: /accounts/{accountId}
        response:
          status: 200
          headers: {x-mock: "true"}
          bodyTemplate: {id: "{{ params.accountId }}", at: "{{ meta.now }}"}
      - method: GET
        path: /netwin
        handler: netwin
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

from virt.errors import VirtualApiError

logger = logging.getLogger(__name__)

OPENAPI_FILES = ("openapi.yaml", "openapi.yml")
HANDLER_FILES = ("handlers.yaml", "handlers.yml")
_PATH_PARAM = re.compile(r"{(.*?)}")
_MISSING = object()


@dataclass(frozen=True)
class ResponseSpec:
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    body_template: Any = _MISSING
    delay_ms: int = 0

    @property
    def has_template(self) -> bool:
        return self.body_template is not _MISSING


@dataclass(frozen=True)
class RouteDefinition:
    """One mocked operation.

    ``path`` uses OpenAPI ``{param}`` syntax.  Exactly one of ``response``
    or ``handler`` drives the reply; a route with neither answers
    ``{"ok": true}``.
    """

    method: str
    path: str
    response: ResponseSpec = field(default_factory=ResponseSpec)
    handler: str | None = None
    operation_id: str | None = None
    summary: str | None = None
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)
    param_names: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        pattern, names = compile_path(self.path)
        object.__setattr__(self, "pattern", pattern)
        object.__setattr__(self, "param_names", names)

    def match(self, method: str, path: str) -> dict[str, str] | None:
        """Return path params when ``method``/``path`` hit this route."""
        if method.upper() != self.method:
            return None
        found = self.pattern.match(path)
        if found is None:
            return None
        return dict(zip(self.param_names, found.groups()))


@dataclass(frozen=True)
class VirtualApi:
    id: str
    name: str
    base_path: str
    openapi_path: Path
    openapi: dict[str, Any]
    routes: tuple[RouteDefinition, ...]
    description: str | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "basePath": self.base_path,
            "operations": len(self.routes),
        }


@dataclass(frozen=True)
class VirtualState:
    """Everything the server serves; replaced as a whole on reload."""

    root: Path
    apis: tuple[VirtualApi, ...] = ()
    resources: dict[str, Any] = field(default_factory=dict)


def compile_path(path: str) -> tuple[re.Pattern[str], tuple[str, ...]]:
    """Compile an OpenAPI path template into a regex; a trailing slash is optional."""
    names: list[str] = []
    parts: list[str] = []
    last = 0
    for found in _PATH_PARAM.finditer(path):
        parts.append(re.escape(path[last:found.start()]))
        parts.append("([^/]+)")
        names.append(found.group(1))
        last = found.end()
    parts.append(re.escape(path[last:].rstrip("/")))
    return re.compile("^" + "".join(parts) + "/?$"), tuple(names)


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise VirtualApiError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise VirtualApiError(f"Cannot read {path}: {exc}") from exc


def _first_existing(directory: Path, candidates: tuple[str, ...]) -> Path | None:
    for candidate in candidates:
        full = directory / candidate
        if full.exists():
            return full
    return None


def load_resources_config(root: Path) -> dict[str, Any]:
    """Return the shared ``resources`` mapping of ``<root>/config.yaml``."""
    config_path = root / "config.yaml"
    if not config_path.exists():
        return {}
    parsed = _load_yaml(config_path) or {}
    if not isinstance(parsed, dict):
        raise VirtualApiError(f"{config_path} must contain a YAML object.")
    resources = parsed.get("resources") or {}
    if not isinstance(resources, dict):
        raise VirtualApiError(f'"resources" in {config_path} must be an object.')
    return resources


def resolve_base_path(api_id: str, explicit: str | None, openapi: Any) -> str:
    """``api.basePath``, then the first OpenAPI server URL, then ``/<id>``.

    Absolute server URLs contribute only their path.
    """
    if explicit:
        return "/" + str(explicit).strip("/") if str(explicit).strip("/") else "/"
    servers = openapi.get("servers") if isinstance(openapi, dict) else None
    if isinstance(servers, list) and servers and isinstance(servers[0], dict) and servers[0].get("url"):
        url = str(servers[0]["url"])
        path = urlsplit(url).path if "://" in url else url
        path = path.rstrip("/")
        if path:
            return path if path.startswith("/") else f"/{path}"
    return f"/{api_id}"


def parse_response(raw: Any, label: str) -> ResponseSpec:
    if raw is None:
        return ResponseSpec()
    if not isinstance(raw, dict):
        raise VirtualApiError(f"{label}: response must be an object.")
    headers = raw.get("headers") or {}
    if not isinstance(headers, dict):
        raise VirtualApiError(f"{label}: response headers must be an object.")
    return ResponseSpec(
        status=int(raw.get("status") or 200),
        headers={str(key): str(value) for key, value in headers.items()},
        body=raw.get("body"),
        body_template=raw["bodyTemplate"] if "bodyTemplate" in raw else _MISSING,
        delay_ms=int(raw.get("delayMs") or 0),
    )


def parse_routes(raw_routes: Any, source: Path) -> tuple[RouteDefinition, ...]:
    if raw_routes is None:
        return ()
    if not isinstance(raw_routes, list):
        raise VirtualApiError(f'"routes" in {source} must be a list.')
    routes: list[RouteDefinition] = []
    for index, raw in enumerate(raw_routes):
        label = f"{source} route #{index + 1}"
        if not isinstance(raw, dict) or not raw.get("method") or not raw.get("path"):
            raise VirtualApiError(f'{label} requires "method" and "path".')
        routes.append(
            RouteDefinition(
                method=str(raw["method"]).upper(),
                path=str(raw["path"]),
                response=parse_response(raw.get("response"), label),
                handler=raw.get("handler"),
                operation_id=raw.get("operationId"),
                summary=raw.get("summary"),
            )
        )
    return tuple(routes)


def load_virtual_api(api_dir: Path) -> VirtualApi:
    api_id = api_dir.name
    openapi_path = _first_existing(api_dir, OPENAPI_FILES)
    if openapi_path is None:
        raise VirtualApiError(f"Missing openapi.yaml in {api_dir}")
    handlers_path = _first_existing(api_dir, HANDLER_FILES)
    if handlers_path is None:
        raise VirtualApiError(f"Missing handlers.yaml in {api_dir}")

    openapi = _load_yaml(openapi_path) or {}
    if not isinstance(openapi, dict):
        raise VirtualApiError(f"{openapi_path} must contain a YAML object.")
    handlers_file = _load_yaml(handlers_path) or {}
    if not isinstance(handlers_file, dict):
        raise VirtualApiError(f"{handlers_path} must contain a YAML object.")
    meta = handlers_file.get("api") or {}
    info = openapi.get("info") or {}

    return VirtualApi(
        id=api_id,
        name=meta.get("name") or info.get("title") or f"Virtual API {api_id}",
        description=meta.get("description") or info.get("description"),
        base_path=resolve_base_path(api_id, meta.get("basePath"), openapi),
        openapi_path=openapi_path,
        openapi=openapi,
        routes=parse_routes(handlers_file.get("routes"), handlers_path),
    )


def load_virtual_apis(root: Path) -> tuple[VirtualApi, ...]:
    apis_dir = root / "apis"
    if not apis_dir.is_dir():
        return ()
    apis = tuple(
        load_virtual_api(entry)
        for entry in sorted(apis_dir.iterdir(), key=lambda entry: entry.name)
        if entry.is_dir()
    )
    for api in apis:
        logger.debug("Loaded API %s at %s with %d route(s)", api.id, api.base_path, len(api.routes))
    return apis


def load_state(root: Path) -> VirtualState:
    """Load shared resources and every API under ``root``.

    Raises
    ------
    VirtualApiError
        If any API directory or YAML file is invalid.
    """
    return VirtualState(root=root, apis=load_virtual_apis(root), resources=load_resources_config(root))
