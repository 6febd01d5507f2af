from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class FeedCoreError(Exception):
    """Base class for every error raised by this package."""


class FeedFetchError(FeedCoreError):
    """A feed could not be fetched or parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class FeedUnreachableError(FeedFetchError):
    pass


class FeedParseError(FeedFetchError):
    pass


class InvalidSourceError(FeedCoreError):
    def __init__(self, url: str, reason: str | None = None):
        msg = "Invalid RSS feed URL or unable to fetch feed"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.url = url


class NoContentError(FeedCoreError):
    def __init__(self, message: str = "No articles found for the selected feeds and date range"):
        super().__init__(message)


class SourceNotFoundError(FeedCoreError):
    def __init__(self, source_id: int):
        super().__init__(f"Feed with ID {source_id} not found")
        self.source_id = source_id


class StoreError(FeedCoreError):
    pass


class ConstraintViolationError(StoreError):
    pass


class DuplicateIdentityError(ConstraintViolationError):
    pass


@asynccontextmanager
async def store_operation(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Roll back and re-raise store failures as ``StoreError`` with context.

    Unique-key collisions become ``DuplicateIdentityError``; any other integrity
    failure (foreign keys, NOT NULL) becomes ``ConstraintViolationError``.
    """
    try:
        yield
    except IntegrityError as e:
        await session.rollback()
        if "UNIQUE" in str(e.orig).upper():
            raise DuplicateIdentityError(f"Failed to {operation}: Duplicate entry found") from e
        raise ConstraintViolationError(f"Failed to {operation}: Constraint failed ({e.orig})") from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to {operation}: {type(e).__name__}: {e}")
        raise StoreError(f"Failed to {operation}: {e}") from e
