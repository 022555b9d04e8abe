"""Application entrypoint for running the Mediagrab backend locally."""

from __future__ import annotations

from .config import get_server_environment


def run(
    host: str | None = None,
    port: int | None = None,
    log_level: str | None = None,
) -> None:
    """Run the ASGI application using Uvicorn."""

    import uvicorn

    from .app import app

    settings = get_server_environment()
    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_level=log_level or settings.log_level,
    )


if __name__ == "__main__":
    run()
