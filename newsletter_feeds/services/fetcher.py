from __future__ import annotations

import asyncio

import httpx
import feedparser

from newsletter_feeds.core.config import settings
from newsletter_feeds.core.errors import FeedParseError, FeedUnreachableError
from newsletter_feeds.services.parser import ParsedFeed, extract_feed_items, extract_feed_metadata

class Fetcher:
    def __init__(self, user_agent: str, timeout_s: float, transport: httpx.AsyncBaseTransport | None = None):
        self._headers = {"User-Agent": user_agent}
        self._timeout_s = timeout_s
        self._timeout = httpx.Timeout(timeout_s)
        self._transport = transport

    async def _get(self, url: str) -> bytes:
        async with httpx.AsyncClient(
            headers=self._headers, timeout=self._timeout, follow_redirects=True, transport=self._transport
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.content

    async def fetch_rss(self, url: str) -> bytes:
        # httpx timeouts apply per read, so a trickling server needs an overall deadline too
        try:
            return await asyncio.wait_for(self._get(url), timeout=self._timeout_s)
        except asyncio.TimeoutError as e:
            raise FeedUnreachableError(url, f"timed out after {self._timeout_s:g}s") from e
        except httpx.HTTPStatusError as e:
            raise FeedUnreachableError(url, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FeedUnreachableError(url, f"{type(e).__name__}: {e}") from e

    async def fetch_and_parse(self, url: str) -> ParsedFeed:
        body = await self.fetch_rss(url)
        parsed = feedparser.parse(body)
        # feedparser is lenient: bozo feeds with entries are still usable,
        # but no version and no entries means this was not a feed at all
        if not parsed.get("version") and not parsed.entries:
            reason = parsed.get("bozo_exception") or "not an RSS or Atom document"
            raise FeedParseError(url, str(reason))
        return ParsedFeed(metadata=extract_feed_metadata(parsed), items=extract_feed_items(parsed))

def get_fetcher() -> Fetcher:
    return Fetcher(settings.user_agent, settings.request_timeout_seconds)
