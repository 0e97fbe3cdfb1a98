"""
Feed list configuration.

Reads the configured feeds from a CSV file with the columns
``Category``, ``Name`` and ``RSS URL``. Rows missing any of the three
are ignored; categories are lower-cased.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path

from marketfeed.utils.config import get_settings
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

_CATEGORY_COLUMN = "Category"
_NAME_COLUMN = "Name"
_URL_COLUMN = "RSS URL"


class FeedConfigError(Exception):
    """The feed list could not be loaded."""


@dataclass(frozen=True)
class FeedConfig:
    category: str
    name: str
    url: str


class FeedConfigSource:
    """Loads and indexes the configured feed list."""

    def __init__(self, config_path: str | Path | None = None) -> None:
        self.config_path = Path(config_path or get_settings().feeds_config_path)
        self._feeds: list[FeedConfig] = []

    def load_feed_list(self) -> list[FeedConfig]:
        """Read the CSV file and return the feed list.

        Raises:
            FeedConfigError: The file is missing, unreadable or lacks the expected columns.
        """
        if not self.config_path.exists():
            logger.error("Feed config file not found at: %s", self.config_path)
            raise FeedConfigError(f"Feed config file not found: {self.config_path}")

        feeds: list[FeedConfig] = []
        try:
            with open(self.config_path, encoding="utf-8", newline="") as f:
                reader = csv.DictReader(f)
                missing = {_CATEGORY_COLUMN, _NAME_COLUMN, _URL_COLUMN} - set(reader.fieldnames or [])
                if missing:
                    raise FeedConfigError(
                        f"Feed config {self.config_path} is missing columns: {sorted(missing)}"
                    )
                for row in reader:
                    category = (row.get(_CATEGORY_COLUMN) or "").strip()
                    name = (row.get(_NAME_COLUMN) or "").strip()
                    url = (row.get(_URL_COLUMN) or "").strip()
                    if category and name and url:
                        feeds.append(FeedConfig(category=category.lower(), name=name, url=url))
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            logger.error("Error loading feed config %s: %s", self.config_path, e)
            raise FeedConfigError(f"Could not read feed config: {e}") from e

        self._feeds = feeds
        logger.info("Loaded %d feeds from configuration", len(feeds))
        return feeds

    def get_all_feeds(self) -> list[FeedConfig]:
        return list(self._feeds)

    def get_feeds_by_category(self, category: str) -> list[FeedConfig]:
        return [feed for feed in self._feeds if feed.category == category.lower()]

    def get_feeds_grouped_by_category(self) -> dict[str, list[FeedConfig]]:
        grouped: dict[str, list[FeedConfig]] = {}
        for feed in self._feeds:
            grouped.setdefault(feed.category, []).append(feed)
        return grouped

    def get_feed_stats(self) -> dict[str, int]:
        """Number of configured feeds per category."""
        return {category: len(feeds) for category, feeds in self.get_feeds_grouped_by_category().items()}
