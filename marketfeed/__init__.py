"""
MarketFeed: financial news feed ingestion, asset classification and scheduling.
"""

__version__ = "0.1.0"
