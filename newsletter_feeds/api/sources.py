from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsletter_feeds.core.db import get_session_factory
from newsletter_feeds.core.errors import InvalidSourceError, SourceNotFoundError
from newsletter_feeds.core.security import require_service_token
from newsletter_feeds.models import FeedSource
from newsletter_feeds.services.fetcher import Fetcher, get_fetcher
from newsletter_feeds.services.sources import add_source, list_sources, remove_source

router = APIRouter(prefix="/v1", tags=["sources"], dependencies=[Depends(require_service_token)])

class SourceCreate(BaseModel):
    owner_id: str = Field(min_length=1)
    url: str = Field(min_length=1)

def _source_dict(s: FeedSource) -> dict:
    return {
        "id": s.id,
        "owner_id": s.owner_id,
        "url": s.url,
        "title": s.title,
        "description": s.description,
        "link": s.link,
        "image_url": s.image_url,
        "language": s.language,
        "last_fetched_at": s.last_fetched_at.isoformat() if s.last_fetched_at else None,
    }

@router.get("/sources")
async def get_sources(
    owner_id: str = Query(min_length=1),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async with session_factory() as session:
        sources = await list_sources(session, owner_id)
    return [
        {
            "id": s.id,
            "url": s.url,
            "title": s.title,
            "description": s.description,
            "link": s.link,
            "image_url": s.image_url,
            "language": s.language,
            "created_at": s.created_at.isoformat() if s.created_at else None,
            "last_fetched_at": s.last_fetched_at.isoformat() if s.last_fetched_at else None,
            "article_count": s.article_count,
        }
        for s in sources
    ]

@router.post("/sources", status_code=201)
async def create_source(
    payload: SourceCreate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    fetcher: Fetcher = Depends(get_fetcher),
):
    try:
        result = await add_source(session_factory, payload.owner_id, payload.url, fetcher)
    except InvalidSourceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    body = {
        "source": _source_dict(result.source),
        "articles_created": result.created,
        "articles_skipped": result.skipped,
    }
    if result.warning:
        body["warning"] = result.warning
    return body

@router.delete("/sources/{source_id}")
async def delete_source(
    source_id: int,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async with session_factory() as session:
        try:
            result = await remove_source(session, source_id)
        except SourceNotFoundError:
            raise HTTPException(status_code=404, detail="Feed not found")
    return {
        "ok": True,
        "articles_detached": result.articles_detached,
        "articles_deleted": result.articles_deleted,
    }
