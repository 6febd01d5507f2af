from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsletter_feeds.core.config import settings
from newsletter_feeds.core.db import utc_now
from newsletter_feeds.core.errors import NoContentError, SourceNotFoundError, store_operation
from newsletter_feeds.models import Article, FeedSource
from newsletter_feeds.services.articles import get_articles_for_sources, record_articles
from newsletter_feeds.services.fetcher import Fetcher
from newsletter_feeds.services.parser import FeedMetadata
from newsletter_feeds.services.staleness import classify_staleness

logger = logging.getLogger(__name__)

@dataclass
class RefreshResult:
    source_id: int
    metadata: FeedMetadata
    created: int = 0
    skipped: int = 0
    errors: int = 0

@dataclass
class RefreshReport:
    requested: int = 0
    succeeded: list[RefreshResult] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

def _apply_metadata(source: FeedSource, metadata: FeedMetadata) -> None:
    source.title = metadata.title
    source.description = metadata.description
    source.link = metadata.link
    source.image_url = metadata.image_url
    source.language = metadata.language

async def refresh_source(
    session_factory: async_sessionmaker[AsyncSession],
    source_id: int,
    fetcher: Fetcher,
) -> RefreshResult:
    """Fetch one source, merge its items and stamp ``last_fetched_at``.

    Raises ``FeedFetchError`` if the feed cannot be fetched; the source row is
    left untouched in that case.
    """
    # No session may stay open across the network fetch: it would pin a pooled connection
    async with session_factory() as session:
        async with store_operation(session, "fetch feed"):
            source = await session.get(FeedSource, source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        url = source.url

    parsed = await fetcher.fetch_and_parse(url)

    async with session_factory() as session:
        bulk = await record_articles(session, source_id, parsed.items)

        fetched_at = utc_now()
        async with store_operation(session, "update feed last fetched"):
            source = await session.get(FeedSource, source_id, populate_existing=True)
            if source is None:
                raise SourceNotFoundError(source_id)
            _apply_metadata(source, parsed.metadata)
            # Never move backwards if a concurrent refresh already stamped a later time
            if source.last_fetched_at is None or fetched_at > source.last_fetched_at:
                source.last_fetched_at = fetched_at
            await session.commit()

    logger.info(
        f"Refreshed feed {source_id} ({url}): {bulk.created} created, {bulk.skipped} skipped, {bulk.errors} errors"
    )
    return RefreshResult(
        source_id=source_id,
        metadata=parsed.metadata,
        created=bulk.created,
        skipped=bulk.skipped,
        errors=bulk.errors,
    )

async def refresh_sources(
    session_factory: async_sessionmaker[AsyncSession],
    source_ids: Sequence[int],
    fetcher: Fetcher,
) -> RefreshReport:
    """Refresh every source concurrently. One failure never cancels or fails the others."""
    report = RefreshReport(requested=len(source_ids))
    if not source_ids:
        return report

    outcomes = await asyncio.gather(
        *(refresh_source(session_factory, sid, fetcher) for sid in source_ids),
        return_exceptions=True,
    )
    for sid, outcome in zip(source_ids, outcomes):
        if isinstance(outcome, BaseException):
            report.failed[sid] = f"{type(outcome).__name__}: {outcome}"
            logger.warning(f"Failed to refresh feed {sid}: {report.failed[sid]}")
        else:
            report.succeeded.append(outcome)

    logger.info(f"Feed refresh complete: {len(report.succeeded)} successful, {len(report.failed)} failed")
    return report

async def prepare_articles(
    session_factory: async_sessionmaker[AsyncSession],
    source_ids: Sequence[int],
    start_date: dt.datetime,
    end_date: dt.datetime,
    fetcher: Fetcher,
    limit: Optional[int] = None,
) -> list[Article]:
    """Bring stale sources up to date and return the articles for a newsletter.

    Sources whose URL was fetched by anyone within the cache window are not
    fetched again. Raises ``NoContentError`` when nothing falls in the range.
    """
    window = dt.timedelta(hours=settings.cache_window_hours)
    async with session_factory() as session:
        stale = await classify_staleness(session, source_ids, window=window)

    if stale:
        logger.info(f"Refreshing {len(stale)} stale feeds (out of {len(source_ids)} total)...")
        await refresh_sources(session_factory, stale, fetcher)
    else:
        logger.info(f"All {len(source_ids)} feeds are fresh, skipping refresh")

    async with session_factory() as session:
        articles = await get_articles_for_sources(
            session, source_ids, start_date, end_date, limit=limit or settings.article_limit
        )

    if not articles:
        raise NoContentError()
    return articles
