"""Article identity and multi-source merge.

An article is identified by its feed guid, else its link, else
``"<source id>:<title>"``. The same identity seen through several sources is
stored once; each source that has yielded it is recorded in the article's
source-set (``article_sources``). The first sighting decides the content,
later sightings only add their source id.

Both writes are single ``INSERT ... ON CONFLICT DO NOTHING`` statements, so
two refreshes merging the same article at the same time cannot lose an append
or produce a duplicate entry.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import desc, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_feeds.core.db import utc_now
from newsletter_feeds.core.errors import ConstraintViolationError, store_operation
from newsletter_feeds.models import Article, ArticleSource
from newsletter_feeds.services.parser import FeedItem

logger = logging.getLogger(__name__)

ARTICLE_LIMIT = 100

@dataclass
class MergeOutcome:
    article: Article
    created: bool
    appended: bool

@dataclass
class BulkResult:
    created: int = 0
    skipped: int = 0
    errors: int = 0

def article_identity(source_id: int, item: FeedItem) -> str:
    # Blank values fall through, but non-blank keys are used exactly as the feed sent them
    if item.guid and item.guid.strip():
        return item.guid
    if item.link and item.link.strip():
        return item.link
    return f"{source_id}:{item.title or ''}"

def normalize_categories(raw: Optional[Iterable[Any]]) -> list[str]:
    """Flatten plain strings and ``{"text": ..., "attributes": ...}`` wrappers."""
    if not raw:
        return []
    out = []
    for cat in raw:
        if isinstance(cat, str):
            text = cat
        elif isinstance(cat, dict):
            # "_" is the xml2js spelling of the text node
            text = cat.get("text") if cat.get("text") is not None else cat.get("_")
        else:
            text = None
        if not isinstance(text, str):
            logger.warning(f"Unexpected category format: {cat!r}")
            continue
        text = text.strip()
        if text:
            out.append(text)
    return out

def _image_url(item: FeedItem) -> Optional[str]:
    encl = item.enclosure
    if encl and encl.url and (encl.mime_type or "").startswith("image/"):
        return encl.url
    return None

def article_fields(source_id: int, item: FeedItem) -> dict[str, Any]:
    return {
        "guid": article_identity(source_id, item),
        "feed_id": source_id,
        "title": item.title or "Untitled",
        "link": item.link or "",
        "content": item.content or item.content_encoded or item.description or item.summary,
        "summary": item.content_snippet or item.description,
        "pub_date": item.published or utc_now(),
        "author": item.creator or item.author,
        "categories": normalize_categories(item.categories),
        "image_url": _image_url(item),
    }

async def _load_article(session: AsyncSession, guid: str) -> Article:
    stmt = select(Article).where(Article.guid == guid).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one()

async def merge_article(session: AsyncSession, source_id: int, item: FeedItem) -> MergeOutcome:
    fields = article_fields(source_id, item)
    guid = fields["guid"]

    async with store_operation(session, "create RSS article"):
        ins = sqlite_insert(Article.__table__).values(**fields).on_conflict_do_nothing(index_elements=["guid"])
        created = (await session.execute(ins)).rowcount == 1

        link = (
            sqlite_insert(ArticleSource.__table__)
            .values(article_guid=guid, source_id=source_id)
            .on_conflict_do_nothing(index_elements=["article_guid", "source_id"])
        )
        appended = (await session.execute(link)).rowcount == 1
        await session.commit()

        article = await _load_article(session, guid)

    return MergeOutcome(article=article, created=created, appended=appended and not created)

async def record_article(session: AsyncSession, source_id: int, item: FeedItem) -> Article:
    return (await merge_article(session, source_id, item)).article

async def record_articles(session: AsyncSession, source_id: int, items: Sequence[FeedItem]) -> BulkResult:
    result = BulkResult()
    for item in items:
        try:
            outcome = await merge_article(session, source_id, item)
        except ConstraintViolationError as e:
            result.skipped += 1
            logger.debug(f"Skipped article from source {source_id}: {e}")
            continue
        except Exception as e:
            await session.rollback()
            result.errors += 1
            logger.error(f"Failed to create article {article_identity(source_id, item)!r}: {type(e).__name__}: {e}")
            continue
        if outcome.created:
            result.created += 1
        else:
            result.skipped += 1
    return result

async def get_articles_for_sources(
    session: AsyncSession,
    source_ids: Sequence[int],
    start_date: dt.datetime,
    end_date: dt.datetime,
    limit: int = ARTICLE_LIMIT,
) -> list[Article]:
    """Articles any of ``source_ids`` has yielded, published in [start_date, end_date]."""
    if not source_ids:
        return []
    stmt = (
        select(Article)
        .where(Article.source_links.any(ArticleSource.source_id.in_(list(source_ids))))
        .where(Article.pub_date.between(start_date, end_date))
        .order_by(desc(Article.pub_date))
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    async with store_operation(session, "fetch articles by feeds and date range"):
        return list((await session.execute(stmt)).scalars().all())
