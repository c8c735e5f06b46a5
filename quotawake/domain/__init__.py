"""
Domain module - Business models

Contains:
- Accounts and their usage windows/snapshots
- Schedule entries and pass counters
- Monitor status
"""

from quotawake.domain.models import (
    Account,
    AggregateCounts,
    MonitorStatus,
    ProbeResponse,
    ScheduleEntry,
    UsageSnapshot,
    UsageWindow,
    WindowType,
)

__all__ = [
    "Account",
    "AggregateCounts",
    "MonitorStatus",
    "ProbeResponse",
    "ScheduleEntry",
    "UsageSnapshot",
    "UsageWindow",
    "WindowType",
]
