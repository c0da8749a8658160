from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memberportal.core.settings import S
from memberportal.metrics import METRICS_ENABLED, metrics_endpoint, metrics_middleware, set_app_info
from memberportal.routers.checkout import router as checkout_router
from memberportal.routers.fees import router as fees_router
from memberportal.routers.members import router as members_router


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, S.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Member portal", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if METRICS_ENABLED:
        app.middleware("http")(metrics_middleware)
        set_app_info(app.title, app.version)
        app.get("/metrics")(metrics_endpoint)

    app.include_router(members_router)
    app.include_router(fees_router)
    app.include_router(checkout_router)

    return app


app = create_app()
