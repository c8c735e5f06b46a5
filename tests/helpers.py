"""Test doubles and builders."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from quotawake.domain.models import Account, UsageSnapshot, UsageWindow

NOW = datetime(2025, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

TRACKED_SCOPES = frozenset({"user:profile", "user:inference"})


class FakeTimer:
    """In-memory stand-in for SingleShotTimer."""

    def __init__(self):
        self.callback: Optional[Callable[[], None]] = None
        self.delays: list[timedelta] = []
        self.cancel_calls = 0
        self.shutdown_calls = 0

    def arm(self, delay: timedelta, callback: Callable[[], None]) -> datetime:
        self.delays.append(delay)
        self.callback = callback
        return NOW + delay

    def cancel(self) -> bool:
        self.cancel_calls += 1
        was_armed = self.callback is not None
        self.callback = None
        return was_armed

    @property
    def is_armed(self) -> bool:
        return self.callback is not None

    def fire(self) -> None:
        callback, self.callback = self.callback, None
        callback()

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self.callback = None


def make_account(
    account_id: str,
    *,
    active: bool = True,
    scopes: frozenset = TRACKED_SCOPES,
) -> Account:
    return Account(id=account_id, name=f"acct-{account_id}", is_active=active, scopes=scopes)


def active_snapshot(
    resets_in: timedelta = timedelta(hours=2),
    utilization: float = 0.25,
) -> UsageSnapshot:
    return UsageSnapshot(
        five_hour=UsageWindow(resets_at=NOW + resets_in, utilization=utilization),
        fetched_at=NOW,
    )


def dormant_snapshot() -> UsageSnapshot:
    return UsageSnapshot(five_hour=UsageWindow(resets_at=None, utilization=0.0), fetched_at=NOW)
