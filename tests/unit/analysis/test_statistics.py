"""Tests for mention and sentiment rollups."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from marketfeed.analysis.statistics import StatisticsAggregator, build_statistics, window_start


def _article(instruments, markets=("forex",), label=None, score=None, processed=False):
    return SimpleNamespace(
        instruments=list(instruments),
        markets=list(markets),
        sentiment_label=label,
        sentiment_score=score,
        is_processed=processed,
    )


async def _store_article(store, feed_id, n, hours_ago, instruments, **extra):
    data = {
        "title": f"Article {n}",
        "link": f"https://example.com/{n}",
        "feed_id": feed_id,
        "published_at": datetime.now(tz=timezone.utc) - timedelta(hours=hours_ago),
        "markets": ["forex"],
        "instruments": instruments,
    }
    data.update(extra)
    return await store.create_article(data)


class TestWindowStart:
    def test_known_timeframes(self) -> None:
        now = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)

        assert window_start("24h", now) == now - timedelta(hours=24)
        assert window_start("7d", now) == now - timedelta(days=7)
        assert window_start("30d", now) == now - timedelta(days=30)

    def test_unknown_timeframe_raises(self) -> None:
        with pytest.raises(ValueError):
            window_start("1y")


class TestBuildStatistics:
    def test_counts_each_article_once_per_instrument(self) -> None:
        result = build_statistics([_article(["EURUSD", "EURUSD"])], "24h")

        assert result.total_articles == 1
        assert result.top_assets[0].asset == "EURUSD"
        assert result.top_assets[0].mentions == 1

    def test_sorted_descending_with_stable_ties(self) -> None:
        articles = [
            _article(["GBPUSD"]),
            _article(["EURUSD"]),
            _article(["EURUSD", "USDJPY"]),
            _article(["USDJPY"]),
        ]

        result = build_statistics(articles, "24h")

        assert [(a.asset, a.mentions) for a in result.top_assets] == [
            ("EURUSD", 2),
            ("USDJPY", 2),
            ("GBPUSD", 1),
        ]

    def test_top_assets_capped_at_twenty(self) -> None:
        articles = [_article([f"ASSET{i:02d}"]) for i in range(25)]

        result = build_statistics(articles, "7d")

        assert len(result.top_assets) == 20
        assert result.total_articles == 25

    def test_sentiment_tally_ignores_unknown_labels(self) -> None:
        articles = [
            _article(["BTCUSD"], label="positive"),
            _article(["BTCUSD"], label="negative"),
            _article(["BTCUSD"], label="positive"),
            _article(["BTCUSD"], label="bullish"),
            _article(["BTCUSD"]),
        ]

        sentiment = build_statistics(articles, "24h").top_assets[0].sentiment

        assert (sentiment.positive, sentiment.negative, sentiment.neutral) == (2, 1, 0)

    def test_category_mentions(self) -> None:
        articles = [
            _article([], markets=["forex", "crypto"]),
            _article([], markets=["crypto"]),
        ]

        result = build_statistics(articles, "24h")

        assert [(c.category, c.mentions) for c in result.top_categories] == [
            ("crypto", 2),
            ("forex", 1),
        ]


class TestStatisticsAggregator:
    async def test_24h_window_excludes_older_articles(self, store) -> None:
        feed = await store.add_feed("FX", "https://fx.example.com/rss", "forex")
        await _store_article(store, feed.id, 1, 1, ["EURUSD"])
        await _store_article(store, feed.id, 2, 23, ["EURUSD", "GBPUSD"])
        await _store_article(store, feed.id, 3, 30, ["USDJPY"])

        result = await StatisticsAggregator(store).get_statistics("24h")

        assert result.total_articles == 2
        assert [(a.asset, a.mentions) for a in result.top_assets] == [
            ("EURUSD", 2),
            ("GBPUSD", 1),
        ]

    async def test_7d_window_includes_older_articles(self, store) -> None:
        feed = await store.add_feed("FX", "https://fx.example.com/rss", "forex")
        await _store_article(store, feed.id, 1, 1, ["EURUSD"])
        await _store_article(store, feed.id, 2, 30, ["USDJPY"])

        result = await StatisticsAggregator(store).get_statistics("7d")

        assert result.total_articles == 2

    async def test_refresh_caches_last_result(self, store) -> None:
        aggregator = StatisticsAggregator(store)
        assert aggregator.last_result is None

        result = await aggregator.refresh()

        assert aggregator.last_result is result
        assert result.timeframe == "24h"

    async def test_unknown_timeframe_raises(self, store) -> None:
        with pytest.raises(ValueError):
            await StatisticsAggregator(store).get_statistics("90m")

    async def test_trending_assets_rank_and_change(self, store) -> None:
        feed = await store.add_feed("FX", "https://fx.example.com/rss", "forex")
        await _store_article(store, feed.id, 1, 1, ["EURUSD", "GBPUSD"])
        await _store_article(store, feed.id, 2, 2, ["EURUSD"])
        await _store_article(store, feed.id, 3, 3, ["EURUSD"])

        trending = await StatisticsAggregator(store).get_trending_assets("24h", limit=5)

        assert [(t.rank, t.asset, t.mentions, t.change) for t in trending] == [
            (1, "EURUSD", 3, 0),
            (2, "GBPUSD", 1, 2),
        ]

    async def test_sentiment_stats_only_processed(self, store) -> None:
        feed = await store.add_feed("FX", "https://fx.example.com/rss", "forex")
        await _store_article(
            store, feed.id, 1, 1, ["EURUSD"],
            is_processed=True, sentiment_label="positive", sentiment_score=0.8,
        )
        await _store_article(
            store, feed.id, 2, 2, ["EURUSD"],
            is_processed=True, sentiment_label="positive", sentiment_score=0.4,
        )
        await _store_article(
            store, feed.id, 3, 3, ["EURUSD"],
            is_processed=False, sentiment_label="negative", sentiment_score=-0.5,
        )

        stats = await StatisticsAggregator(store).get_sentiment_stats("24h")

        assert len(stats) == 1
        assert stats[0]["sentiment"] == "positive"
        assert stats[0]["count"] == 2
        assert stats[0]["average_score"] == pytest.approx(0.6)
