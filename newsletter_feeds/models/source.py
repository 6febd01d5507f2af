from __future__ import annotations

import datetime as dt

from sqlalchemy import String, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from newsletter_feeds.core.db import Base, UTCDateTime, utc_now

class FeedSource(Base):
    __tablename__ = "feed_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    # Not unique: several owners may subscribe to the same feed
    url: Mapped[str] = mapped_column(String, nullable=False, index=True)

    # Filled in from the feed itself after a successful fetch
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    link: Mapped[str | None] = mapped_column(String, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    language: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
    last_fetched_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)
