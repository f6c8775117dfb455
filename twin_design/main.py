from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from twin_design import __version__
from twin_design.config import get_settings
from twin_design.routes.designs import router as designs_router

settings = get_settings()
LOG_LEVEL = settings.log_level

# keep uvicorn's loggers on the same level as the app
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("uvicorn").setLevel(LOG_LEVEL)
logging.getLogger("uvicorn.error").setLevel(LOG_LEVEL)
logging.getLogger("uvicorn.access").setLevel(LOG_LEVEL)

log = logging.getLogger("twin-design")

app = FastAPI(title="Twin Design API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials="*" not in settings.allowed_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
app.include_router(designs_router)


@app.get("/", include_in_schema=False)
def root() -> dict[str, Any]:
    return {"service": "twin-design", "ok": True}


@app.head("/", include_in_schema=False)
def root_head() -> Response:
    return Response(status_code=200)


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "ok": True,
        "provider_configured": settings.homedesigns.is_configured,
        "storage_configured": settings.storage.is_configured,
    }


log.info(
    "Twin design service ready",
    extra={"environment": settings.environment, "allowed_origins": settings.allowed_origins},
)
