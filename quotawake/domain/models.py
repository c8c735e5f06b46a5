"""
Core data models for Quotawake.

All models use dataclass and provide to_dict() for JSON serialization.
Timestamps are aware UTC datetimes in memory and ISO-8601 strings on the wire.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Iterator, Optional

from quotawake.core.timeutil import parse_timestamp


class WindowType(str, Enum):
    """Named usage windows tracked per account."""
    FIVE_HOUR = "5h"
    SEVEN_DAY = "7d"


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


@dataclass(frozen=True)
class Account:
    """
    A tracked external account.

    Owned by the account store; read-only to the monitor.
    """
    id: str
    name: str
    is_active: bool = True
    scopes: frozenset[str] = frozenset()
    proxy_url: Optional[str] = None

    def is_tracked(self, required_scopes: Iterable[str]) -> bool:
        """True if the account carries every required capability scope."""
        return set(required_scopes).issubset(self.scopes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "scopes": sorted(self.scopes),
            "proxy_url": self.proxy_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        """
        Create from dict.

        ``is_active`` may be a bool or the string "true"; ``scopes`` may be a
        whitespace-separated string or a list.
        """
        active = data.get("is_active", True)
        if isinstance(active, str):
            active = active.strip().lower() == "true"

        scopes = data.get("scopes") or []
        if isinstance(scopes, str):
            scopes = scopes.split()

        return cls(
            id=str(data["id"]),
            name=data.get("name") or str(data["id"]),
            is_active=bool(active),
            scopes=frozenset(scopes),
            proxy_url=data.get("proxy_url"),
        )


@dataclass(frozen=True)
class UsageWindow:
    """
    One rolling quota window.

    ``resets_at`` absent means the window was never activated (dormant).
    """
    resets_at: Optional[datetime] = None
    utilization: float = 0.0

    def __post_init__(self) -> None:
        if self.resets_at is not None and not 0.0 <= self.utilization <= 1.0:
            raise ValueError(
                f"utilization must be within [0, 1], got {self.utilization}"
            )

    @property
    def is_dormant(self) -> bool:
        return self.resets_at is None

    @property
    def remaining_percent(self) -> int:
        """Remaining quota as a rounded percentage."""
        return round((1 - self.utilization) * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resets_at": _iso(self.resets_at),
            "utilization": self.utilization,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UsageWindow":
        return cls(
            resets_at=parse_timestamp(data.get("resets_at")),
            utilization=float(data.get("utilization") or 0.0),
        )


@dataclass(frozen=True)
class UsageSnapshot:
    """Last fetched usage state for one account."""
    five_hour: Optional[UsageWindow] = None
    seven_day: Optional[UsageWindow] = None
    fetched_at: Optional[datetime] = None

    def windows(self) -> Iterator[tuple[WindowType, UsageWindow]]:
        """Yield (window type, window) for every window present."""
        if self.five_hour is not None:
            yield WindowType.FIVE_HOUR, self.five_hour
        if self.seven_day is not None:
            yield WindowType.SEVEN_DAY, self.seven_day

    @property
    def is_empty(self) -> bool:
        return self.five_hour is None and self.seven_day is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "five_hour": self.five_hour.to_dict() if self.five_hour is not None else None,
            "seven_day": self.seven_day.to_dict() if self.seven_day is not None else None,
            "fetched_at": _iso(self.fetched_at),
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        fetched_at: Optional[datetime] = None,
    ) -> "UsageSnapshot":
        """
        Create from a stored snapshot or a raw provider response.

        Unknown keys in the provider payload are ignored.
        """
        five_hour = data.get("five_hour")
        seven_day = data.get("seven_day")
        return cls(
            five_hour=UsageWindow.from_dict(five_hour) if five_hour is not None else None,
            seven_day=UsageWindow.from_dict(seven_day) if seven_day is not None else None,
            fetched_at=parse_timestamp(data.get("fetched_at")) or fetched_at,
        )


@dataclass(frozen=True)
class ScheduleEntry:
    """A candidate wake-up, recomputed from snapshots every planning cycle."""
    account_name: str
    trigger_time: datetime
    window_type: WindowType


@dataclass(frozen=True)
class ProbeResponse:
    """Raw outcome of a probe request."""
    status_code: int
    body: str = ""


@dataclass
class AggregateCounts:
    """Counters produced by one update pass."""
    success: int = 0
    skipped: int = 0
    initialized: int = 0
    failed: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "success": self.success,
            "skipped": self.skipped,
            "initialized": self.initialized,
            "failed": self.failed,
            "total": self.total,
        }


@dataclass
class MonitorStatus:
    """Read-only view of the monitor service."""
    is_running: bool
    base_interval_minutes: float
    after_reset_minutes: float
    reset_threshold_minutes: float
    next_run_at: Optional[datetime] = None
    last_run_at: Optional[datetime] = None
    last_counts: Optional[AggregateCounts] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "base_interval_minutes": self.base_interval_minutes,
            "after_reset_minutes": self.after_reset_minutes,
            "reset_threshold_minutes": self.reset_threshold_minutes,
            "next_run_at": _iso(self.next_run_at),
            "last_run_at": _iso(self.last_run_at),
            "last_counts": self.last_counts.to_dict() if self.last_counts else None,
        }
