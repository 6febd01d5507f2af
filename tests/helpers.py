from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_feeds.core.errors import FeedUnreachableError
from newsletter_feeds.models import FeedSource
from newsletter_feeds.services.parser import FeedItem, FeedMetadata, ParsedFeed

UTC = dt.timezone.utc


class StubFetcher:
    """Serves canned feeds by URL. A list value is consumed one response per call."""

    def __init__(self, feeds: Optional[dict] = None) -> None:
        self.feeds = dict(feeds or {})
        self.calls: list[str] = []

    async def fetch_and_parse(self, url: str) -> ParsedFeed:
        self.calls.append(url)
        result = self.feeds.get(url)
        if isinstance(result, list):
            result = result.pop(0)
        if result is None:
            raise FeedUnreachableError(url, "HTTP 404")
        if isinstance(result, Exception):
            raise result
        return result


def make_item(title: str, guid: Optional[str] = None, published: Optional[dt.datetime] = None, **kwargs) -> FeedItem:
    return FeedItem(
        guid=guid if guid is not None else f"guid-{title}",
        title=title,
        link=kwargs.pop("link", f"https://example.com/{title}"),
        published=published,
        **kwargs,
    )


def make_feed(title: str, items: list[FeedItem]) -> ParsedFeed:
    return ParsedFeed(metadata=FeedMetadata(title=title, language="en"), items=items)


async def create_source(
    session: AsyncSession,
    url: str,
    owner_id: str = "owner-1",
    last_fetched_at: Optional[dt.datetime] = None,
) -> FeedSource:
    source = FeedSource(owner_id=owner_id, url=url, last_fetched_at=last_fetched_at)
    session.add(source)
    await session.commit()
    return source
