from __future__ import annotations

import os
import tempfile

# Settings are read at import time
os.environ.setdefault("SERVICE_TOKEN", "test-token")
os.environ.setdefault("DB_PATH", os.path.join(tempfile.gettempdir(), "newsletter-feeds-unused.db"))

import pytest

from newsletter_feeds.core.db import init_models, make_engine, make_session_factory
from tests.helpers import StubFetcher


@pytest.fixture
async def engine(tmp_path):
    eng = make_engine(str(tmp_path / "test.db"))
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher()
