"""
Services module - Usage monitoring

Contains:
- Collaborator interfaces and their SQLite/HTTP implementations
- Window prober, update pass and interval planner
- The scheduling service tying them together
"""

from quotawake.services.interfaces import AccountStore, RelayClient, TokenProvider, UsageFetcher
from quotawake.services.monitor import UsageMonitorService, create_usage_monitor
from quotawake.services.persistence import SQLiteAccountStore, create_account_store
from quotawake.services.planner import IntervalPlanner
from quotawake.services.prober import WindowProber
from quotawake.services.provider import ProviderClient
from quotawake.services.timer import SingleShotTimer
from quotawake.services.update_pass import UpdatePass

__all__ = [
    "AccountStore",
    "RelayClient",
    "TokenProvider",
    "UsageFetcher",
    "UsageMonitorService",
    "create_usage_monitor",
    "SQLiteAccountStore",
    "create_account_store",
    "IntervalPlanner",
    "WindowProber",
    "ProviderClient",
    "SingleShotTimer",
    "UpdatePass",
]
