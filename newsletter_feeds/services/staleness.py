from __future__ import annotations

import datetime as dt
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_feeds.core.db import utc_now
from newsletter_feeds.core.errors import store_operation
from newsletter_feeds.models import FeedSource

CACHE_WINDOW = dt.timedelta(hours=3)

async def classify_staleness(
    session: AsyncSession,
    source_ids: Sequence[int],
    now: Optional[dt.datetime] = None,
    window: dt.timedelta = CACHE_WINDOW,
) -> list[int]:
    """Return the ids among ``source_ids`` whose feed needs a network fetch.

    Freshness is decided per URL, not per source: if any source row with the
    same URL, whoever owns it, was fetched within ``window``, every source on
    that URL counts as fresh. Unknown ids are ignored.
    """
    if not source_ids:
        return []
    threshold = (now or utc_now()) - window

    async with store_operation(session, "check feed freshness"):
        rows = (
            await session.execute(
                select(FeedSource.id, FeedSource.url).where(FeedSource.id.in_(list(source_ids)))
            )
        ).all()
        urls = {url for _, url in rows}
        if not urls:
            return []

        recent = (
            select(FeedSource.url)
            .where(FeedSource.url.in_(urls))
            .group_by(FeedSource.url)
            .having(func.max(FeedSource.last_fetched_at) >= threshold)
        )
        recently_fetched = set((await session.execute(recent)).scalars().all())

    return [source_id for source_id, url in rows if url not in recently_fetched]
