from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsletter_feeds.core.errors import (
    FeedFetchError,
    InvalidSourceError,
    SourceNotFoundError,
    StoreError,
    store_operation,
)
from newsletter_feeds.models import Article, ArticleSource, FeedSource
from newsletter_feeds.services.fetcher import Fetcher
from newsletter_feeds.services.normalize import normalize_feed_url
from newsletter_feeds.services.refresh import refresh_source

logger = logging.getLogger(__name__)

INITIAL_FETCH_WARNING = "Feed created but initial fetch failed"

@dataclass
class AddSourceResult:
    source: FeedSource
    created: int = 0
    skipped: int = 0
    warning: Optional[str] = None

@dataclass
class RemoveSourceResult:
    articles_detached: int = 0
    articles_deleted: int = 0

@dataclass
class SourceSummary:
    id: int
    url: str
    title: Optional[str]
    description: Optional[str]
    link: Optional[str]
    image_url: Optional[str]
    language: Optional[str]
    created_at: dt.datetime
    last_fetched_at: Optional[dt.datetime]
    article_count: int

async def add_source(
    session_factory: async_sessionmaker[AsyncSession],
    owner_id: str,
    url: str,
    fetcher: Fetcher,
) -> AddSourceResult:
    """Validate ``url`` as a feed, create the owner's source and run a first refresh.

    Raises ``InvalidSourceError`` before anything is written if the URL does
    not yield a feed. A failing first refresh only produces a warning.
    """
    url = normalize_feed_url(url)
    try:
        await fetcher.fetch_and_parse(url)
    except FeedFetchError as e:
        logger.info(f"Rejected feed URL {url}: {e.reason}")
        raise InvalidSourceError(url, e.reason) from e

    async with session_factory() as session:
        source = FeedSource(owner_id=owner_id, url=url)
        async with store_operation(session, "add RSS feed"):
            session.add(source)
            await session.commit()
    logger.info(f"Created feed {source.id} for owner {owner_id}: {url}")

    try:
        result = await refresh_source(session_factory, source.id, fetcher)
    except (FeedFetchError, SourceNotFoundError, StoreError) as e:
        logger.warning(f"Failed to fetch initial articles for feed {source.id}: {e}")
        return AddSourceResult(source=source, warning=INITIAL_FETCH_WARNING)

    async with session_factory() as session:
        async with store_operation(session, "add RSS feed"):
            source = await session.get(FeedSource, source.id)

    return AddSourceResult(source=source, created=result.created, skipped=result.skipped)

async def remove_source(session: AsyncSession, source_id: int) -> RemoveSourceResult:
    """Delete a source, detaching it from its articles and deleting articles no source references.

    All three steps share one transaction, so no article is ever left pointing
    at a missing source and none is deleted while another source holds it.
    """
    async with store_operation(session, "delete RSS feed"):
        source = await session.get(FeedSource, source_id)
        if source is None:
            raise SourceNotFoundError(source_id)

        # Plain DELETEs; rowcounts feed the result
        no_sync = {"synchronize_session": False}
        detached = await session.execute(
            delete(ArticleSource).where(ArticleSource.source_id == source_id), execution_options=no_sync
        )
        deleted = await session.execute(delete(Article).where(~Article.source_links.any()), execution_options=no_sync)

        await session.delete(source)
        await session.commit()

    result = RemoveSourceResult(articles_detached=detached.rowcount, articles_deleted=deleted.rowcount)
    logger.info(
        f"Deleted feed {source_id}: detached {result.articles_detached} articles, deleted {result.articles_deleted}"
    )
    return result

async def list_sources(session: AsyncSession, owner_id: str) -> list[SourceSummary]:
    """An owner's sources, newest first, with how many articles each one references."""
    counts = (
        select(ArticleSource.source_id, func.count().label("n"))
        .group_by(ArticleSource.source_id)
        .subquery()
    )
    stmt = (
        select(FeedSource, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.source_id == FeedSource.id)
        .where(FeedSource.owner_id == owner_id)
        .order_by(desc(FeedSource.created_at), desc(FeedSource.id))
    )
    async with store_operation(session, "fetch RSS feeds"):
        rows = (await session.execute(stmt)).all()

    return [
        SourceSummary(
            id=s.id,
            url=s.url,
            title=s.title,
            description=s.description,
            link=s.link,
            image_url=s.image_url,
            language=s.language,
            created_at=s.created_at,
            last_fetched_at=s.last_fetched_at,
            article_count=n,
        )
        for s, n in rows
    ]
