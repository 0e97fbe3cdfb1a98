"""Tests for the MarketFeedSystem facade."""

import pytest
from conftest import FakeFetcher, make_item

from marketfeed.crawler.feed_config import FeedConfigError, FeedConfigSource
from marketfeed.main import MarketFeedSystem
from marketfeed.orchestration.scheduler import AlreadyRunningError

FX_URL = "https://fx.example.com/rss"
COIN_URL = "https://coin.example.com/rss"


@pytest.fixture
def feeds_csv(tmp_path):
    path = tmp_path / "feeds.csv"
    path.write_text(
        "Category,Name,RSS URL\n"
        f"Forex,FX Daily,{FX_URL}\n"
        f"Crypto,Coin Wire,{COIN_URL}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
async def system(engine, settings, taxonomy, feeds_csv):
    fetcher = FakeFetcher({
        FX_URL: [
            make_item("EUR/USD and GBP/USD climb", "https://fx.example.com/1"),
            make_item("Yen slips", "https://fx.example.com/2", "usd/jpy higher"),
        ],
        COIN_URL: [make_item("Bitcoin record", "https://coin.example.com/1")],
    })
    system = MarketFeedSystem(settings=settings, engine=engine, fetcher=fetcher, taxonomy=taxonomy)
    await system.initialize(FeedConfigSource(feeds_csv))
    yield system
    await system.shutdown()


class TestMarketFeedSystem:
    async def test_initialize_loads_feeds(self, system) -> None:
        feeds = await system.list_feeds()

        assert [f["name"] for f in feeds] == ["Coin Wire", "FX Daily"]

    async def test_initialize_without_feed_list_fails(self, engine, settings, tmp_path) -> None:
        system = MarketFeedSystem(settings=settings, engine=engine, fetcher=FakeFetcher())

        with pytest.raises(FeedConfigError):
            await system.initialize(FeedConfigSource(tmp_path / "missing.csv"))

    async def test_manual_processing_then_queries(self, system) -> None:
        assert await system.trigger_manual_processing() == {"processed": 2, "errors": 0}

        eurusd = await system.get_articles_by_asset("eurusd")
        assert [a["link"] for a in eurusd] == ["https://fx.example.com/1"]

        recent = await system.get_recent_asset_news("USDJPY")
        assert [a["title"] for a in recent] == ["Yen slips"]

        crypto = await system.get_articles_by_category("crypto")
        assert [a["title"] for a in crypto] == ["Bitcoin record"]

        stats = await system.get_asset_statistics("24h")
        assert stats.total_articles == 3

        trending = await system.get_trending_assets()
        assert {t.asset for t in trending} == {"EURUSD", "GBPUSD", "USDJPY", "BTCUSD"}

    async def test_manual_processing_rejected_while_running(self, system) -> None:
        assert system.scheduler._guard.try_acquire()
        try:
            with pytest.raises(AlreadyRunningError):
                await system.trigger_manual_processing()
        finally:
            system.scheduler._guard.release()

    async def test_scheduling_status(self, system) -> None:
        await system.start_scheduling()
        assert system.get_scheduler_status()["active_jobs"] == 3

        await system.stop_scheduling()
        assert system.get_scheduler_status()["active_jobs"] == 0

    async def test_asset_catalog(self, system) -> None:
        catalog = system.get_asset_catalog()

        assert [c["category"] for c in catalog["categories"]] == ["crypto", "forex", "stocks"]
        assert catalog["total_assets"] == 7
