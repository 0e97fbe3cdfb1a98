"""
Abstract base class for feed fetchers.

A fetcher turns a feed URL into an ordered, finite list of ``RawItem``.
Any failure to reach or parse the upstream source is raised as
``FeedFetchError`` so the caller can record it on the feed and move on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

import aiohttp

from marketfeed.utils.config import get_settings
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)


class FeedFetchError(Exception):
    """Network, HTTP or parse failure while fetching a feed.

    Attributes:
        url: The feed URL that failed.
    """

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


@dataclass
class RawItem:
    """One feed entry as fetched, before dedup and classification."""

    title: str
    link: str
    content: str = ""
    description: str = ""
    author: str | None = None
    published_at: datetime | None = None


class BaseFetcher(ABC):
    """Abstract base for all feed fetchers."""

    # Shared aiohttp session across all fetcher instances
    _shared_session: aiohttp.ClientSession | None = None

    @abstractmethod
    async def fetch(self, url: str) -> list[RawItem]:
        """Fetch ``url`` and return its items in feed order.

        Raises:
            FeedFetchError: The feed could not be fetched or parsed.
        """

    @classmethod
    async def get_session(cls) -> aiohttp.ClientSession:
        """Return shared aiohttp session, creating one if needed."""
        if cls._shared_session is None or cls._shared_session.closed:
            settings = get_settings()
            timeout = aiohttp.ClientTimeout(
                total=settings.fetch_timeout_seconds,
                connect=settings.fetch_connect_timeout_seconds,
            )
            cls._shared_session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": settings.user_agent},
            )
        return cls._shared_session

    @classmethod
    async def close_session(cls) -> None:
        """Close the shared aiohttp session."""
        if cls._shared_session is not None and not cls._shared_session.closed:
            await cls._shared_session.close()
            cls._shared_session = None
            logger.debug("Shared aiohttp session closed")
