from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, String, Integer, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from newsletter_feeds.core.db import Base, UTCDateTime, utc_now

class ArticleSource(Base):
    """One row per (article, source) pair: the article's source-set."""

    __tablename__ = "article_sources"

    article_guid: Mapped[str] = mapped_column(
        String, ForeignKey("articles.guid", ondelete="CASCADE"), primary_key=True
    )
    # No cascade: a source may only go away once its links are cleaned up
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("feed_sources.id"), primary_key=True, index=True)

class Article(Base):
    __tablename__ = "articles"

    # Identity key: guid, else link, else "<source id>:<title>"
    guid: Mapped[str] = mapped_column(String, primary_key=True)

    # Source through which the article was first seen. Plain column, the
    # article outlives it while other sources still reference it.
    feed_id: Mapped[int] = mapped_column(Integer, nullable=False)

    source_links: Mapped[list[ArticleSource]] = relationship(
        ArticleSource, lazy="selectin", passive_deletes=True
    )

    title: Mapped[str] = mapped_column(String, nullable=False)
    link: Mapped[str] = mapped_column(String, nullable=False, default="")
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    pub_date: Mapped[dt.datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    author: Mapped[str | None] = mapped_column(String, nullable=True)
    categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)

    @property
    def source_feed_ids(self) -> list[int]:
        return sorted(link.source_id for link in self.source_links)

    @property
    def source_count(self) -> int:
        # More sources carrying the same story means it matters more downstream
        return len(self.source_links)
