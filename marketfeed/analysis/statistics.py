"""
Mention and sentiment rollups over stored articles.

An article mentions an instrument when the instrument is in its tagged
set; each article counts once per instrument no matter how often the
instrument appears in the text.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from pydantic import BaseModel, Field

from marketfeed.db.models import Article
from marketfeed.db.store import ArticleStore
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

TIMEFRAMES: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

SENTIMENT_LABELS: tuple[str, ...] = ("positive", "negative", "neutral")

_TOP_ASSETS_LIMIT = 20
_TRENDING_DEFAULT_LIMIT = 10


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------

class SentimentTally(BaseModel):
    """Per-instrument sentiment counts."""

    positive: int = 0
    negative: int = 0
    neutral: int = 0


class AssetMentions(BaseModel):
    asset: str
    mentions: int
    sentiment: SentimentTally = Field(default_factory=SentimentTally)


class CategoryMentions(BaseModel):
    category: str
    mentions: int


class StatisticsResult(BaseModel):
    """Rollup for one timeframe."""

    timeframe: str
    total_articles: int
    top_assets: list[AssetMentions]
    top_categories: list[CategoryMentions]
    last_updated: datetime


class TrendingAsset(BaseModel):
    rank: int
    asset: str
    mentions: int
    sentiment: SentimentTally
    change: int


def window_start(timeframe: str, now: datetime | None = None) -> datetime:
    """Return the inclusive lower bound of ``timeframe`` ending at ``now``.

    Raises:
        ValueError: ``timeframe`` is not one of ``TIMEFRAMES``.
    """
    if timeframe not in TIMEFRAMES:
        raise ValueError(
            f"Unsupported timeframe '{timeframe}', expected one of {list(TIMEFRAMES)}"
        )
    now = now or datetime.now(tz=timezone.utc)
    return now - TIMEFRAMES[timeframe]


def _sort_desc(counts: dict[str, int]) -> list[tuple[str, int]]:
    # sorted() is stable with reverse=True, so ties keep first-seen order
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def build_statistics(
    articles: Iterable[Article], timeframe: str, now: datetime | None = None
) -> StatisticsResult:
    """Aggregate mention and sentiment counts for an already-selected set of articles."""
    asset_mentions: dict[str, int] = {}
    category_mentions: dict[str, int] = {}
    sentiment_by_asset: dict[str, SentimentTally] = {}
    total = 0

    for article in articles:
        total += 1
        label = article.sentiment_label
        for instrument in dict.fromkeys(article.instruments or []):
            asset_mentions[instrument] = asset_mentions.get(instrument, 0) + 1
            tally = sentiment_by_asset.setdefault(instrument, SentimentTally())
            if label in SENTIMENT_LABELS:
                setattr(tally, label, getattr(tally, label) + 1)
        for market in dict.fromkeys(article.markets or []):
            category_mentions[market] = category_mentions.get(market, 0) + 1

    top_assets = [
        AssetMentions(asset=asset, mentions=count, sentiment=sentiment_by_asset[asset])
        for asset, count in _sort_desc(asset_mentions)[:_TOP_ASSETS_LIMIT]
    ]
    top_categories = [
        CategoryMentions(category=category, mentions=count)
        for category, count in _sort_desc(category_mentions)
    ]

    return StatisticsResult(
        timeframe=timeframe,
        total_articles=total,
        top_assets=top_assets,
        top_categories=top_categories,
        last_updated=now or datetime.now(tz=timezone.utc),
    )


class StatisticsAggregator:
    """Computes asset and category rollups from the article store."""

    def __init__(self, store: ArticleStore) -> None:
        self._store = store
        self.last_result: StatisticsResult | None = None

    async def get_statistics(self, timeframe: str = "24h") -> StatisticsResult:
        """Return mention/sentiment rollups for articles published within ``timeframe``.

        Args:
            timeframe: One of ``"24h"``, ``"7d"``, ``"30d"``.

        Returns:
            ``StatisticsResult`` with at most 20 top assets, sorted by mentions.
        """
        now = datetime.now(tz=timezone.utc)
        since = window_start(timeframe, now)
        articles = await self._store.find_articles_since(since)
        result = build_statistics(articles, timeframe, now)
        logger.debug(
            "Statistics %s: %d articles, %d assets, %d categories",
            timeframe, result.total_articles,
            len(result.top_assets), len(result.top_categories),
        )
        return result

    async def refresh(self, timeframe: str = "24h") -> StatisticsResult:
        """Recompute ``timeframe`` statistics and keep them as ``last_result``."""
        self.last_result = await self.get_statistics(timeframe)
        return self.last_result

    async def get_trending_assets(
        self, timeframe: str = "24h", limit: int = _TRENDING_DEFAULT_LIMIT
    ) -> list[TrendingAsset]:
        """Top assets with rank and the mention gap to the asset ranked above."""
        stats = await self.get_statistics(timeframe)
        top = stats.top_assets[:limit]
        return [
            TrendingAsset(
                rank=index + 1,
                asset=item.asset,
                mentions=item.mentions,
                sentiment=item.sentiment,
                change=0 if index == 0 else top[index - 1].mentions - item.mentions,
            )
            for index, item in enumerate(top)
        ]

    async def get_sentiment_stats(self, timeframe: str = "24h") -> list[dict[str, Any]]:
        """Count and average score per sentiment label among processed articles."""
        since = window_start(timeframe)
        articles = await self._store.find_articles_since(since)

        counts: dict[str, int] = defaultdict(int)
        score_sums: dict[str, float] = defaultdict(float)
        scored: dict[str, int] = defaultdict(int)
        for article in articles:
            if not article.is_processed or article.sentiment_label is None:
                continue
            counts[article.sentiment_label] += 1
            if article.sentiment_score is not None:
                score_sums[article.sentiment_label] += article.sentiment_score
                scored[article.sentiment_label] += 1

        return [
            {
                "sentiment": label,
                "count": count,
                "average_score": score_sums[label] / scored[label] if scored[label] else None,
            }
            for label, count in counts.items()
        ]
