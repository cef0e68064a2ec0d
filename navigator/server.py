"""Home Server Navigator — HTTP API and UI host.

Exposes:
  GET   /api/health               — liveness + catalog size
  GET   /api/services             — list (q, group, status, include_hidden)
  POST  /api/services             — create a manual entry
  GET   /api/services/{id}        — fetch one entry
  PATCH /api/services/{id}        — partial update (auto-locks edited fields)
  POST  /api/discovery/run        — run a discovery pass now
  GET   /api/discovery/status     — summary of the last pass
  GET   /  and  /{path}           — built UI assets (or a fallback page)

Start with::

    python -m navigator
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, Response

from navigator import __version__
from navigator.catalog import CatalogService, ServiceValidationError
from navigator.config import NavigatorConfig
from navigator.discovery import DiscoveryEngine, DiscoveryError, ProtocolDetector
from navigator.discovery.scanner import SsPortScanner, SystemctlUnitLister
from navigator.models import (
    CreateServiceRequest,
    ServiceQuery,
    ServiceStatus,
    UpdateServiceRequest,
    utcnow,
)
from navigator.store import CatalogStore, CatalogStoreError

logger = logging.getLogger(__name__)

FALLBACK_INDEX_HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>Home Server Navigator</title>
  <style>
    :root { color-scheme: dark; font-family: Inter, ui-sans-serif, system-ui; }
    body { margin: 0; background: #0f1220; color: #eef2ff; }
    .wrap { max-width: 920px; margin: 0 auto; padding: 24px; }
    .card { background: #171d35; border: 1px solid #2a3357; border-radius: 12px; padding: 16px; margin-top: 16px; }
    code { background: #212a48; padding: 2px 8px; border-radius: 6px; }
    a { color: #89b4ff; }
  </style>
</head>
<body>
  <main class="wrap">
    <h1>Home Server Navigator</h1>
    <p>The server is running, but no built UI assets were found.</p>
    <section class="card">
      <p>Build the frontend and point <code>NAVIGATOR_STATIC_DIR</code> at its output directory.</p>
      <p>API: <a href="/api/health">/api/health</a>, <a href="/api/services">/api/services</a></p>
    </section>
  </main>
</body>
</html>
"""


# ──────────────────────────────────────────────────────────────────
# API
# ──────────────────────────────────────────────────────────────────

router = APIRouter(prefix="/api", tags=["services"])


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


@router.get("/health")
async def health(catalog: CatalogService = Depends(get_catalog)):
    return {
        "status": "ok",
        "service_count": await catalog.count(),
        "now": utcnow().isoformat(),
        "version": __version__,
    }


@router.get("/services")
async def list_services(
    q: str | None = None,
    group: str | None = None,
    status: ServiceStatus | None = None,
    include_hidden: bool = Query(False),
    catalog: CatalogService = Depends(get_catalog),
):
    query = ServiceQuery(q=q, group=group, status=status, include_hidden=include_hidden)
    return [entry.to_api() for entry in await catalog.list(query)]


@router.post("/services")
async def create_service(
    req: CreateServiceRequest,
    catalog: CatalogService = Depends(get_catalog),
):
    try:
        entry = await catalog.create(req)
    except ServiceValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CatalogStoreError as exc:
        raise HTTPException(status_code=400, detail=f"failed to create service: {exc}") from exc
    return entry.to_api()


@router.get("/services/{service_id}")
async def get_service(service_id: str, catalog: CatalogService = Depends(get_catalog)):
    entry = await catalog.get(service_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return entry.to_api()


@router.patch("/services/{service_id}")
async def update_service(
    service_id: str,
    req: UpdateServiceRequest,
    catalog: CatalogService = Depends(get_catalog),
):
    try:
        entry = await catalog.update(service_id, req)
    except ServiceValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CatalogStoreError as exc:
        raise HTTPException(status_code=400, detail=f"failed to update service: {exc}") from exc
    if entry is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return entry.to_api()


@router.post("/discovery/run")
async def run_discovery(catalog: CatalogService = Depends(get_catalog)):
    try:
        summary = await catalog.run_discovery()
    except (DiscoveryError, CatalogStoreError) as exc:
        raise HTTPException(status_code=400, detail=f"failed to run discovery: {exc}") from exc
    return {"summary": summary.model_dump(mode="json")}


@router.get("/discovery/status")
async def discovery_status(catalog: CatalogService = Depends(get_catalog)):
    return (await catalog.discovery_status()).model_dump(mode="json")


# ──────────────────────────────────────────────────────────────────
# UI assets
# ──────────────────────────────────────────────────────────────────

def _asset_router(static_dir: str | None) -> APIRouter:
    assets = APIRouter()
    root = Path(static_dir).resolve() if static_dir else None

    def _index() -> Response:
        if root is not None and (root / "index.html").is_file():
            return FileResponse(root / "index.html")
        return HTMLResponse(FALLBACK_INDEX_HTML)

    @assets.get("/", include_in_schema=False)
    async def index():
        return _index()

    @assets.get("/{path:path}", include_in_schema=False)
    async def asset_or_index(path: str):
        if path.startswith("api/"):
            raise HTTPException(status_code=404, detail="Not found")
        if root is not None:
            candidate = (root / path).resolve()
            if candidate.is_relative_to(root) and candidate.is_file():
                return FileResponse(candidate)
        return _index()

    return assets


# ──────────────────────────────────────────────────────────────────
# App factory
# ──────────────────────────────────────────────────────────────────

def build_catalog_parts(config: NavigatorConfig) -> tuple[CatalogStore, DiscoveryEngine]:
    store = CatalogStore(config.data_path)
    engine = DiscoveryEngine(
        default_host=config.default_host,
        unit_lister=SystemctlUnitLister(timeout=config.command_timeout),
        port_scanner=SsPortScanner(timeout=config.command_timeout),
        detector=ProtocolDetector(
            timeout=config.probe_timeout,
            concurrency=config.probe_concurrency,
        ),
    )
    return store, engine


def create_app(
    config: NavigatorConfig | None = None,
    catalog: CatalogService | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        config:  Settings (default: from environment).
        catalog: Pre-built catalog service; when omitted one is loaded from
                 ``config.data_file`` at startup.
    """
    config = config or NavigatorConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "catalog", None) is None:
            store, engine = build_catalog_parts(config)
            app.state.catalog = await CatalogService.open(store, engine, config.default_host)
        if config.discover_on_start:
            try:
                await app.state.catalog.run_discovery()
            except (DiscoveryError, CatalogStoreError):
                logger.exception("Startup discovery failed")
        yield

    app = FastAPI(title="Home Server Navigator", version=__version__, lifespan=lifespan)
    app.state.catalog = catalog
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.include_router(_asset_router(config.static_dir))
    return app


def main(config: NavigatorConfig | None = None) -> None:
    import uvicorn

    config = config or NavigatorConfig.from_env()
    logger.info("Starting Home Server Navigator on %s:%d", config.host, config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port, reload=False)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
