from __future__ import annotations

import logging

from fastapi import FastAPI

from alttext.config import get_settings
from alttext.handlers import alt_text_handler, attachment_handler, settings_handler

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Alt Text API")

app.include_router(alt_text_handler.router)
app.include_router(attachment_handler.router)
app.include_router(settings_handler.router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
