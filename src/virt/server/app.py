"""FastAPI application serving the virtual APIs.

Fixed endpoints live under ``/virtual``; every other request goes through
a single dispatcher that matches it against the current
:class:`~virt.server.loader.VirtualState`.  Dispatching at request time
lets a hot reload replace every API at once.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from jinja2 import Environment, PackageLoader, select_autoescape

from virt.server.handlers import HandlerContext, HandlerNotFoundError, coerce_result, handler_registry
from virt.server.loader import RouteDefinition, VirtualApi, VirtualState
from virt.server.reload import ResourceWatcher, StateHolder
from virt.server.settings import ServerSettings
from virt.server.templating import apply_template, build_meta

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("virt.server.access")

NOT_FOUND_MESSAGE = "Not found in api-virtual"
FAVICON_URL = "/assets/logo.svg"
CATALOG_PATH = "/virtual/apis/ui"
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


def not_found() -> JSONResponse:
    return JSONResponse({"message": NOT_FOUND_MESSAGE}, status_code=404)


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def query_dict(request: Request) -> dict[str, Any]:
    """Query parameters; keys repeated in the URL map to lists."""
    result: dict[str, Any] = {}
    for key in dict.fromkeys(request.query_params.keys()):
        values = request.query_params.getlist(key)
        result[key] = values[0] if len(values) == 1 else values
    return result


async def read_json_body(request: Request) -> Any:
    """Decode a JSON body; other content types and empty bodies yield ``{}``.

    Raises
    ------
    ValueError
        If the body claims to be JSON but cannot be decoded.
    """
    raw = await request.body()
    if not raw or "json" not in request.headers.get("content-type", ""):
        return {}
    return json.loads(raw)


def strip_base_path(base_path: str, path: str) -> str | None:
    """Return ``path`` relative to ``base_path``, or ``None`` if outside it."""
    if base_path in ("", "/"):
        return path
    if path == base_path:
        return "/"
    if path.startswith(base_path + "/"):
        return path[len(base_path):]
    return None


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

_templates = Environment(
    loader=PackageLoader("virt.server", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_catalog(state: VirtualState, swagger_enabled: bool) -> str:
    """Render the HTML catalogue of every loaded API; values are autoescaped."""
    return _templates.get_template("catalog.html").render(
        apis=state.apis,
        resources=list(state.resources),
        swagger_enabled=swagger_enabled,
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _meta_response(api: VirtualApi, sub_path: str, swagger_enabled: bool) -> Response | None:
    relative = sub_path.rstrip("/") or "/"
    if relative == "/__meta/openapi":
        return Response(api.openapi_path.read_text(encoding="utf-8"), media_type="application/yaml")
    if relative == "/__meta/info":
        return JSONResponse(api.summary())
    if relative == "/docs" and swagger_enabled:
        return get_swagger_ui_html(
            openapi_url=f"{api.base_path.rstrip('/')}/__meta/openapi",
            title=f"{api.name} docs",
            swagger_favicon_url=FAVICON_URL,
        )
    return None


async def respond(route: RouteDefinition, ctx: HandlerContext) -> Response:
    """Build the reply for a matched route."""
    spec = route.response
    if spec.delay_ms > 0:
        await asyncio.sleep(spec.delay_ms / 1000.0)

    if route.handler:
        try:
            handler = handler_registry.resolve(route.handler)
        except HandlerNotFoundError as exc:
            logger.error("Route %s %s: %s", route.method, route.path, exc)
            return JSONResponse({"message": str(exc.args[0])}, status_code=500)
        try:
            outcome = handler(ctx)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            result = coerce_result(outcome)
        except Exception as exc:
            logger.exception("Handler %r failed", route.handler)
            return JSONResponse({"message": f"Handler {route.handler} failed: {exc}"}, status_code=500)
        headers = {**spec.headers, **result.headers}
        return JSONResponse(result.body, status_code=result.status, headers=headers)

    if spec.has_template:
        payload = apply_template(spec.body_template, ctx.template_context())
    elif spec.body is not None:
        payload = spec.body
    else:
        payload = {"ok": True}
    return JSONResponse(payload, status_code=spec.status, headers=spec.headers)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: ServerSettings | None = None, holder: StateHolder | None = None) -> FastAPI:
    """Build the api-virtual application.

    Parameters
    ----------
    settings:
        Server settings; read from the environment when omitted.
    holder:
        Pre-built state holder; tests pass one to control loading.

    Raises
    ------
    VirtualApiError
        If the resources directory cannot be loaded at startup.
    """
    settings = settings or ServerSettings.from_env()
    holder = holder or StateHolder(settings.resources_dir)
    handler_registry.load_entrypoints()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        watcher: ResourceWatcher | None = None
        if settings.reload:
            watcher = ResourceWatcher(holder, settings.reload_interval_ms)
            _app.state.watcher = watcher
            await asyncio.to_thread(watcher.start)
        try:
            yield
        finally:
            if watcher is not None:
                await asyncio.to_thread(watcher.stop)

    app = FastAPI(
        title="api-virtual",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.holder = holder

    @app.middleware("http")
    async def access_log(request: Request, call_next: Any) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        access_logger.info(
            "%s %s %d %.1f ms", request.method, request.url.path, response.status_code, elapsed
        )
        return response

    if settings.assets_dir is not None and settings.assets_dir.is_dir():
        app.mount("/assets", StaticFiles(directory=str(settings.assets_dir)), name="assets")

    # ------------------------------------------------------------------
    # Catalogue
    # ------------------------------------------------------------------

    @app.get("/virtual/apis")
    async def list_apis() -> dict[str, Any]:
        state = holder.state
        return {
            "apis": [api.summary() for api in state.apis],
            "resources": list(state.resources),
            "swaggerEnabled": settings.swagger_enabled,
        }

    @app.get(CATALOG_PATH, response_class=HTMLResponse)
    async def catalog() -> HTMLResponse:
        return HTMLResponse(render_catalog(holder.state, settings.swagger_enabled))

    def _swagger_available() -> bool:
        return settings.swagger_enabled and bool(holder.state.apis)

    @app.get("/virtual/swagger")
    @app.get("/virtual/swagger/ui")
    async def swagger_redirect() -> Response:
        if not _swagger_available():
            return not_found()
        return RedirectResponse(CATALOG_PATH, status_code=302)

    @app.get("/virtual/swagger/ui/index.html")
    async def swagger_all() -> Response:
        if not _swagger_available():
            return not_found()
        urls = [
            {"url": f"{api.base_path.rstrip('/')}/__meta/openapi", "name": api.name}
            for api in holder.state.apis
        ]
        return get_swagger_ui_html(
            openapi_url=urls[0]["url"],
            title="api-virtual swagger",
            swagger_favicon_url=FAVICON_URL,
            swagger_ui_parameters={"urls": urls},
        )

    # ------------------------------------------------------------------
    # Virtual routes
    # ------------------------------------------------------------------

    @app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def dispatch(request: Request, full_path: str) -> Response:
        state = holder.state
        path = request.url.path
        for api in state.apis:
            sub_path = strip_base_path(api.base_path, path)
            if sub_path is None:
                continue
            if request.method == "GET":
                meta = _meta_response(api, sub_path, settings.swagger_enabled)
                if meta is not None:
                    return meta
            for route in api.routes:
                params = route.match(request.method, sub_path)
                if params is None:
                    continue
                try:
                    body = await read_json_body(request)
                except ValueError:
                    return JSONResponse({"message": "Invalid JSON body"}, status_code=400)
                ctx = HandlerContext(
                    params=params,
                    query=query_dict(request),
                    body=body,
                    resources=state.resources,
                    meta=build_meta(request.headers.get("x-request-id")),
                    request=request,
                )
                return await respond(route, ctx)
        return not_found()

    logger.info(
        "Serving %d API(s) from %s on port %d",
        len(holder.state.apis),
        settings.resources_dir,
        settings.port,
    )
    return app
