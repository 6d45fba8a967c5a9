"""Rules for which service dates can still be ordered or cancelled."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from canteen_ordering.domain.menu import SCHOOL_DAYS


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def week_start_for(service_date: date) -> date:
    """Return the Monday of the week containing ``service_date``."""
    return service_date - timedelta(days=service_date.weekday())


def day_name(service_date: date) -> str:
    """Return the English weekday name used as the weekly menu key."""
    return service_date.strftime("%A")


@dataclass
class ServiceCalendar:
    """School-local calendar deciding whether a service date is open."""

    timezone: str = "Asia/Manila"
    same_day_cutoff: time | None = time(hour=9)
    horizon_days: int = 28
    clock: Callable[[], datetime] = field(default=_utc_now)

    def local_now(self) -> datetime:
        """Return the current time in the school timezone."""
        return self.clock().astimezone(ZoneInfo(self.timezone))

    def closed_reason(self, service_date: date) -> str | None:
        """Return why ``service_date`` cannot be ordered, or None if it can."""
        if day_name(service_date) not in SCHOOL_DAYS:
            return f"{service_date.isoformat()} is not a school day"
        now = self.local_now()
        today = now.date()
        if service_date < today:
            return f"{service_date.isoformat()} is in the past"
        if service_date == today:
            if self.same_day_cutoff is None:
                return "Same-day orders are not accepted"
            if now.time() >= self.same_day_cutoff:
                cutoff = self.same_day_cutoff.strftime("%H:%M")
                return f"Same-day orders closed at {cutoff}"
        if service_date > today + timedelta(days=self.horizon_days):
            return (
                f"{service_date.isoformat()} is more than "
                f"{self.horizon_days} days ahead"
            )
        return None

    def is_orderable(self, service_date: date) -> bool:
        """Return True when orders for ``service_date`` are accepted."""
        return self.closed_reason(service_date) is None
