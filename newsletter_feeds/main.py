from __future__ import annotations

from fastapi import FastAPI

from newsletter_feeds.core.config import settings
from newsletter_feeds.core.db import init_models
from newsletter_feeds.core.log import configure_logging
from newsletter_feeds.api.sources import router as sources_router
from newsletter_feeds.api.articles import router as articles_router

app = FastAPI(title="Newsletter Feeds API", version="1.0.0")

app.include_router(sources_router)
app.include_router(articles_router)

@app.on_event("startup")
async def on_startup():
    configure_logging(settings.log_level)
    # Create tables (simple, no migration tool needed)
    await init_models()
