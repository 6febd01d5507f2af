from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Optional

from bs4 import BeautifulSoup

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

@dataclass
class Enclosure:
    url: str
    mime_type: Optional[str] = None

@dataclass
class FeedItem:
    """One feed entry as delivered by the feed, before any fallbacks are applied."""

    guid: Optional[str] = None
    title: Optional[str] = None
    link: Optional[str] = None
    content: Optional[str] = None
    content_encoded: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    content_snippet: Optional[str] = None
    published: Optional[dt.datetime] = None
    creator: Optional[str] = None
    author: Optional[str] = None
    # Plain strings or {"text": ..., "attributes": {...}} wrappers
    categories: list[Any] = field(default_factory=list)
    enclosure: Optional[Enclosure] = None

@dataclass
class FeedMetadata:
    title: str
    description: Optional[str] = None
    link: Optional[str] = None
    image_url: Optional[str] = None
    language: Optional[str] = None

@dataclass
class ParsedFeed:
    metadata: FeedMetadata
    items: list[FeedItem]

def html_to_text(html: str | None) -> Optional[str]:
    if not html:
        return None
    text = BeautifulSoup(html, "lxml").get_text(" ", strip=True)
    return text or None

def _parse_entry_datetime(entry) -> Optional[dt.datetime]:
    # feedparser exposes: published_parsed / updated_parsed as time.struct_time
    for key in ("published_parsed", "updated_parsed"):
        t = entry.get(key)
        if t:
            try:
                return dt.datetime(*t[:6], tzinfo=dt.timezone.utc)
            except (TypeError, ValueError):
                pass
    return None

def _split_content(entry) -> tuple[Optional[str], Optional[str]]:
    # feedparser folds <content:encoded> and Atom <content> into entry.content
    plain = None
    encoded = None
    for c in entry.get("content") or []:
        val = c.get("value")
        if not val:
            continue
        if c.get("type") in HTML_CONTENT_TYPES:
            encoded = encoded or val
        else:
            plain = plain or val
    return plain, encoded

def _categories(entry) -> list[Any]:
    out: list[Any] = []
    for tag in entry.get("tags") or []:
        term = tag.get("term")
        if not term:
            continue
        scheme = tag.get("scheme")
        if scheme:
            out.append({"text": term, "attributes": {"domain": scheme}})
        else:
            out.append(term)
    return out

def _enclosure(entry) -> Optional[Enclosure]:
    encl = entry.get("enclosures")
    if encl and isinstance(encl, list):
        url = encl[0].get("href") or encl[0].get("url")
        if url:
            return Enclosure(url=url, mime_type=encl[0].get("type"))
    return None

def extract_feed_metadata(parsed) -> FeedMetadata:
    feed = parsed.feed
    image = feed.get("image") or {}
    return FeedMetadata(
        title=feed.get("title") or "Untitled Feed",
        description=feed.get("subtitle") or feed.get("description"),
        link=feed.get("link"),
        image_url=image.get("href") or image.get("url"),
        language=feed.get("language"),
    )

def extract_feed_items(parsed) -> list[FeedItem]:
    items = []
    for entry in parsed.entries or []:
        content, encoded = _split_content(entry)
        author_detail = entry.get("author_detail") or {}
        items.append(
            FeedItem(
                guid=entry.get("id"),
                title=entry.get("title"),
                link=entry.get("link"),
                content=content,
                content_encoded=encoded,
                description=entry.get("description"),
                summary=entry.get("summary"),
                content_snippet=html_to_text(encoded or content or entry.get("summary")),
                published=_parse_entry_datetime(entry),
                creator=entry.get("author"),
                author=author_detail.get("name"),
                categories=_categories(entry),
                enclosure=_enclosure(entry),
            )
        )
    return items
