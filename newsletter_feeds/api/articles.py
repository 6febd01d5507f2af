from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsletter_feeds.core.db import get_session_factory
from newsletter_feeds.core.errors import NoContentError
from newsletter_feeds.core.security import require_service_token
from newsletter_feeds.services.fetcher import Fetcher, get_fetcher
from newsletter_feeds.services.refresh import prepare_articles

router = APIRouter(prefix="/v1", tags=["articles"], dependencies=[Depends(require_service_token)])

class PrepareRequest(BaseModel):
    source_ids: list[int] = Field(min_length=1)
    start_date: dt.datetime
    end_date: dt.datetime

def _as_utc(value: dt.datetime) -> dt.datetime:
    # Naive datetimes from clients are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value

@router.post("/articles/prepare")
async def prepare(
    payload: PrepareRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    fetcher: Fetcher = Depends(get_fetcher),
):
    start, end = _as_utc(payload.start_date), _as_utc(payload.end_date)
    if start > end:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    try:
        articles = await prepare_articles(session_factory, payload.source_ids, start, end, fetcher)
    except NoContentError as e:
        raise HTTPException(status_code=404, detail=str(e))

    items = []
    for a in articles:
        items.append(
            {
                "guid": a.guid,
                "feed_id": a.feed_id,
                "source_feed_ids": a.source_feed_ids,
                "source_count": a.source_count,
                "title": a.title,
                "link": a.link,
                "content": a.content,
                "summary": a.summary,
                "pub_date": a.pub_date.isoformat(),
                "author": a.author,
                "categories": a.categories,
                "image_url": a.image_url,
            }
        )
    return {"items": items}
