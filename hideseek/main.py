from __future__ import annotations

import logging

from fastapi import FastAPI

from hideseek.api.routes import router
from hideseek.config import load_settings

settings = load_settings()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="hideseek", version="0.1.0")
app.include_router(router)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "hideseek", "version": "0.1.0"}
