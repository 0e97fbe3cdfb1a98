"""Shared fixtures: a throwaway SQLite store and an in-memory feed fetcher."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marketfeed.analysis.asset_classifier import AssetClassifier
from marketfeed.analysis.taxonomy import Taxonomy
from marketfeed.crawler.base_crawler import BaseFetcher, FeedFetchError, RawItem
from marketfeed.db.models import Base
from marketfeed.db.store import ArticleStore
from marketfeed.utils.config import Settings

SMALL_TAXONOMY = {
    "crypto": {
        "BTCUSD": ["bitcoin", "btc"],
        "ETHUSD": ["ethereum"],
    },
    "forex": {
        "EURUSD": ["eurusd", "eur/usd"],
        "GBPUSD": ["gbpusd", "gbp/usd"],
        "USDJPY": ["usdjpy", "usd/jpy"],
    },
    "stocks": {
        "AAPL": ["apple"],
        "TSLA": ["tesla"],
    },
}


class FakeFetcher(BaseFetcher):
    """Serves canned items per URL; an exception value is raised instead."""

    def __init__(self, feeds: dict[str, list[RawItem] | Exception] | None = None) -> None:
        self.feeds = feeds or {}
        self.calls: list[str] = []

    async def fetch(self, url: str) -> list[RawItem]:
        self.calls.append(url)
        outcome = self.feeds.get(url, [])
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


def make_item(title: str, link: str, content: str = "", **kwargs) -> RawItem:
    kwargs.setdefault("published_at", datetime.now(tz=timezone.utc))
    return RawItem(title=title, link=link, content=content, description=content[:50], **kwargs)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketfeed_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> ArticleStore:
    return ArticleStore(session_factory)


@pytest.fixture
def settings() -> Settings:
    return Settings(batch_size=3, batch_delay_seconds=0.0, retention_days=30)


@pytest.fixture
def taxonomy() -> Taxonomy:
    return Taxonomy(SMALL_TAXONOMY)


@pytest.fixture
def classifier(taxonomy) -> AssetClassifier:
    return AssetClassifier(taxonomy)


@pytest.fixture
def fetch_error():
    def _make(url: str, message: str = "HTTP 503") -> FeedFetchError:
        return FeedFetchError(url, message)
    return _make
