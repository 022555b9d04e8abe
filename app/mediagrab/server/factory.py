from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

import certifi
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

from ..api import register_event_routes, register_http_routes
from ..config import API_PREFIX, ServerEnvironmentConfig, get_server_environment
from ..core.metadata import MetadataFetcher
from ..download import DownloadManager
from ..download.worker import Spawner
from ..log_config import verbose_log


class FrontendFiles(StaticFiles):
    """Built front-end; unknown non-API paths get ``index.html`` for client routing."""

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            request_path: str = scope["path"]
            is_api = request_path == API_PREFIX or request_path.startswith(f"{API_PREFIX}/")
            if exc.status_code != 404 or is_api:
                raise
            return await super().get_response("index.html", scope)


def _configure_certificates() -> None:
    cert_path = certifi.where()
    os.environ.setdefault("SSL_CERT_FILE", cert_path)
    os.environ.setdefault("REQUESTS_CA_BUNDLE", cert_path)


def create_app(
    settings: Optional[ServerEnvironmentConfig] = None,
    *,
    spawner: Optional[Spawner] = None,
    passthrough_spawner: Optional[Spawner] = None,
    fetcher: Optional[MetadataFetcher] = None,
) -> Tuple[Starlette, DownloadManager]:
    """Instantiate the Starlette app along with its download manager."""

    _configure_certificates()
    config = settings or get_server_environment()
    manager = DownloadManager(
        config,
        spawner=spawner,
        passthrough_spawner=passthrough_spawner,
        fetcher=fetcher,
    )

    @asynccontextmanager
    async def lifespan(_: Starlette) -> AsyncIterator[None]:
        manager.purge_stale_artifacts()
        verbose_log(
            "server_started",
            {"temp_dir": str(config.temp_dir), "worker": list(config.worker_command)},
        )
        try:
            yield
        finally:
            await manager.shutdown()
            verbose_log("server_stopped", {"jobs": len(manager.registry)})

    app = Starlette(lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    register_http_routes(app, manager)
    register_event_routes(app, manager)
    if config.static_dir.is_dir():
        app.mount(
            "/", FrontendFiles(directory=config.static_dir, html=True), name="static"
        )
    app.state.download_manager = manager
    return app, manager


__all__ = ["create_app"]
