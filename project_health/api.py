"""
Project Health Engine - FastAPI application.

Mounts the module routers; run with ``python -m project_health.run_server``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .settings import HealthConfig
from .snapshot.api import router as snapshot_router

logging.basicConfig(
    level=HealthConfig.get_config().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Project Health Engine", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(snapshot_router)


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok", "version": __version__}
