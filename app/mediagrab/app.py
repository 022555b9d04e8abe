"""Application bootstrap for the Mediagrab backend."""

from __future__ import annotations

from starlette.applications import Starlette

from .download import DownloadManager
from .server import create_app

app: Starlette
manager: DownloadManager
app, manager = create_app()


__all__ = ["app", "create_app", "manager"]
