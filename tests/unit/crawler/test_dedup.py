"""Tests for the store-backed duplicate check."""

from datetime import datetime, timezone

from marketfeed.crawler.base_crawler import RawItem
from marketfeed.crawler.dedup import Deduplicator


async def _seed(store):
    feed = await store.add_feed("FX", "https://fx.example.com/rss", "forex")
    other = await store.add_feed("Coins", "https://coin.example.com/rss", "crypto")
    await store.create_article({
        "title": "Dollar slides",
        "link": "https://fx.example.com/dollar-slides",
        "feed_id": feed.id,
        "published_at": datetime.now(tz=timezone.utc),
    })
    return feed, other


class TestDeduplicator:
    async def test_same_link_is_duplicate(self, store) -> None:
        feed, other = await _seed(store)
        item = RawItem(title="Different title", link="https://fx.example.com/dollar-slides")

        assert await Deduplicator(store).exists(item, other.id) is True

    async def test_same_title_same_feed_is_duplicate(self, store) -> None:
        feed, _ = await _seed(store)
        item = RawItem(title="Dollar slides", link="https://fx.example.com/other-link")

        assert await Deduplicator(store).exists(item, feed.id) is True

    async def test_same_title_other_feed_is_new(self, store) -> None:
        _, other = await _seed(store)
        item = RawItem(title="Dollar slides", link="https://coin.example.com/dollar")

        assert await Deduplicator(store).exists(item, other.id) is False

    async def test_unseen_item_is_new(self, store) -> None:
        feed, _ = await _seed(store)
        item = RawItem(title="Yen steadies", link="https://fx.example.com/yen")

        assert await Deduplicator(store).exists(item, feed.id) is False
