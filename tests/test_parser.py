from __future__ import annotations

import asyncio
import datetime as dt
import time

import feedparser
import httpx
import pytest

from newsletter_feeds.core.errors import FeedParseError, FeedUnreachableError
from newsletter_feeds.services.articles import normalize_categories
from newsletter_feeds.services.fetcher import Fetcher
from newsletter_feeds.services.normalize import normalize_feed_url
from newsletter_feeds.services.parser import extract_feed_items, extract_feed_metadata, html_to_text

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Example News</title>
    <link>https://news.example.com/</link>
    <description>Everything that happened</description>
    <language>en-us</language>
    <item>
      <title>First story</title>
      <link>https://news.example.com/first</link>
      <guid isPermaLink="false">story-1</guid>
      <description>A &lt;b&gt;short&lt;/b&gt; teaser</description>
      <content:encoded><![CDATA[<p>The <em>full</em> story.</p>]]></content:encoded>
      <dc:creator>Jane Doe</dc:creator>
      <category>Tech</category>
      <category domain="https://news.example.com/tags">AI</category>
      <pubDate>Tue, 04 Jun 2024 08:30:00 GMT</pubDate>
      <enclosure url="https://news.example.com/first.jpg" type="image/jpeg" length="1234"/>
    </item>
    <item>
      <title>Second story</title>
      <link>https://news.example.com/second</link>
    </item>
  </channel>
</rss>
"""


def _fetcher(handler) -> Fetcher:
    return Fetcher("test-agent", 5, transport=httpx.MockTransport(handler))


def test_extracts_metadata_and_items():
    parsed = feedparser.parse(RSS)

    meta = extract_feed_metadata(parsed)
    items = extract_feed_items(parsed)

    assert meta.title == "Example News"
    assert meta.language == "en-us"
    assert len(items) == 2

    first = items[0]
    assert first.guid == "story-1"
    assert first.link == "https://news.example.com/first"
    assert "full" in first.content_encoded
    assert first.content_snippet == "The full story."
    assert first.creator == "Jane Doe"
    assert first.published == dt.datetime(2024, 6, 4, 8, 30, tzinfo=dt.timezone.utc)
    assert normalize_categories(first.categories) == ["Tech", "AI"]
    assert first.enclosure.url == "https://news.example.com/first.jpg"
    assert first.enclosure.mime_type == "image/jpeg"

    second = items[1]
    assert second.published is None
    assert second.enclosure is None
    assert second.categories == []


def test_html_to_text():
    assert html_to_text("<p>Hello <b>world</b></p>") == "Hello world"
    assert html_to_text("") is None
    assert html_to_text(None) is None


def test_normalize_feed_url():
    assert normalize_feed_url(" example.com/feed ") == "https://example.com/feed"
    assert normalize_feed_url("http://example.com/feed?utm_source=x&id=3#frag") == "http://example.com/feed?id=3"


async def test_fetch_and_parse_ok():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers["User-Agent"]
        return httpx.Response(200, content=RSS)

    parsed = await _fetcher(handler).fetch_and_parse("https://news.example.com/rss")

    assert seen["ua"] == "test-agent"
    assert parsed.metadata.title == "Example News"
    assert [i.title for i in parsed.items] == ["First story", "Second story"]


async def test_fetch_http_error_is_unreachable():
    fetcher = _fetcher(lambda request: httpx.Response(404))

    with pytest.raises(FeedUnreachableError) as exc:
        await fetcher.fetch_and_parse("https://news.example.com/missing")
    assert "404" in exc.value.reason


async def test_fetch_transport_error_is_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FeedUnreachableError):
        await _fetcher(handler).fetch_and_parse("https://down.example.com/rss")


async def test_fetch_html_page_is_parse_error():
    fetcher = _fetcher(lambda request: httpx.Response(200, content=b"<html><body><p>Just a page</p></body></html>"))

    with pytest.raises(FeedParseError):
        await fetcher.fetch_and_parse("https://example.com/")


async def test_fetch_trickling_body_is_bounded_by_timeout():
    async def trickle(reader, writer):
        await reader.readuntil(b"\r\n\r\n")
        writer.write(b"HTTP/1.1 200 OK\r\nContent-Type: application/rss+xml\r\nContent-Length: 1000\r\n\r\n")
        try:
            # each chunk arrives well inside the read timeout, the whole body never does
            for _ in range(1000):
                if writer.is_closing():
                    break
                writer.write(b" ")
                await writer.drain()
                await asyncio.sleep(0.05)
        except ConnectionError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(trickle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    fetcher = Fetcher("test-agent", 0.3)

    started = time.monotonic()
    async with server:
        with pytest.raises(FeedUnreachableError) as exc:
            await fetcher.fetch_and_parse(f"http://127.0.0.1:{port}/rss")

    assert time.monotonic() - started < 2
    assert "timed out" in exc.value.reason
