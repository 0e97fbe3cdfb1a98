"""Tests for retention cleanup and the daily report."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from marketfeed.analysis.statistics import StatisticsAggregator
from marketfeed.orchestration.maintenance import Maintenance


async def _seed(store):
    feed = await store.add_feed("FX", "https://fx.example.com/rss", "forex")
    now = datetime.now(tz=timezone.utc)
    ages = {"fresh": timedelta(hours=2), "week": timedelta(days=3), "stale": timedelta(days=31)}
    for n, (title, age) in enumerate(ages.items()):
        await store.create_article({
            "title": title,
            "link": f"https://fx.example.com/{n}",
            "feed_id": feed.id,
            "published_at": now - age,
            "markets": ["forex"],
            "instruments": ["EURUSD"],
        })
    return feed


class TestCleanup:
    async def test_removes_only_articles_past_retention(self, store, settings) -> None:
        await _seed(store)
        maintenance = Maintenance(store, StatisticsAggregator(store), settings)

        assert await maintenance.cleanup_old_articles() == 1

        remaining = await store.find_articles_since(datetime(2000, 1, 1, tzinfo=timezone.utc))
        assert sorted(a.title for a in remaining) == ["fresh", "week"]


class TestDailyReport:
    async def test_report_shape_and_storage(self, store, settings) -> None:
        await _seed(store)
        maintenance = Maintenance(store, StatisticsAggregator(store), settings)

        with patch.object(store, "save_report", wraps=store.save_report) as save:
            report = await maintenance.generate_daily_report()

        assert report["date"] == datetime.now(tz=timezone.utc).date().isoformat()
        summary = report["summary"]
        assert summary["articles_24h"] == 1
        assert summary["articles_7d"] == 2
        assert summary["top_assets_24h"][0]["asset"] == "EURUSD"
        assert summary["top_categories_24h"] == [{"category": "forex", "mentions": 1}]
        save.assert_awaited_once()

    async def test_top_lists_are_truncated(self, store, settings) -> None:
        feed = await store.add_feed("Mixed", "https://mixed.example.com/rss", "forex")
        for n in range(12):
            await store.create_article({
                "title": f"Story {n}",
                "link": f"https://mixed.example.com/{n}",
                "feed_id": feed.id,
                "published_at": datetime.now(tz=timezone.utc),
                "markets": [f"market{n}"],
                "instruments": [f"ASSET{n}"],
            })

        report = await Maintenance(store, StatisticsAggregator(store), settings).generate_daily_report()

        assert len(report["summary"]["top_assets_24h"]) == 10
        assert len(report["summary"]["top_categories_24h"]) == 5

    async def test_storage_failure_is_not_raised(self, store, settings) -> None:
        maintenance = Maintenance(store, StatisticsAggregator(store), settings)

        with patch.object(store, "save_report", AsyncMock(side_effect=RuntimeError("read-only"))):
            report = await maintenance.generate_daily_report()

        assert report["summary"]["articles_24h"] == 0


class TestRunDaily:
    async def test_cleanup_then_report(self, store, settings) -> None:
        await _seed(store)

        result = await Maintenance(store, StatisticsAggregator(store), settings).run_daily()

        assert result["deleted"] == 1
        assert result["report"]["summary"]["articles_7d"] == 2
