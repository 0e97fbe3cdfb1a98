"""
Orchestration package.

Background scheduling of ingestion, statistics and daily maintenance.
"""

from marketfeed.orchestration.maintenance import Maintenance
from marketfeed.orchestration.scheduler import (
    AlreadyRunningError,
    FeedScheduler,
    JobStatus,
    SingleFlightGuard,
)

__all__ = [
    "AlreadyRunningError",
    "FeedScheduler",
    "JobStatus",
    "Maintenance",
    "SingleFlightGuard",
]
