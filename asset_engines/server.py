"""App factory for the trigger ingress."""
from __future__ import annotations

from fastapi import FastAPI

from asset_engines.triggers.routes import router as triggers_router


def create_app() -> FastAPI:
    app = FastAPI(title="asset-lifecycle-engines")
    app.include_router(triggers_router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app


app = create_app()
