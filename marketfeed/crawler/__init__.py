"""
Crawler subsystem: feed fetching, feed list configuration, deduplication
and the ingestion pipeline that ties them to the article store.
"""

from marketfeed.crawler.base_crawler import BaseFetcher, FeedFetchError, RawItem
from marketfeed.crawler.dedup import Deduplicator
from marketfeed.crawler.feed_config import FeedConfig, FeedConfigError, FeedConfigSource
from marketfeed.crawler.ingestion import BatchResult, FeedResult, IngestionPipeline
from marketfeed.crawler.rss_crawler import RSSFetcher

__all__ = [
    "BaseFetcher",
    "BatchResult",
    "Deduplicator",
    "FeedConfig",
    "FeedConfigError",
    "FeedConfigSource",
    "FeedFetchError",
    "FeedResult",
    "IngestionPipeline",
    "RSSFetcher",
    "RawItem",
]
