"""Weekly settlement scheduler.

Runs inside the API process as a background asyncio task:
sleep until the next weekly slot (default Sunday 23:59 UTC), then call
`SettlementJob.run(period=...)`. The job's own lock/lease and period marker
keep overlapping or repeated runs out, so several API replicas may all run a
scheduler.

Deployments that prefer an external cron can disable this
(`SETTLEMENT_ENABLED=false`) and call `scripts/settle_weekly.py` instead.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
import logging
from zoneinfo import ZoneInfo

from leaderboard.errors import SettlementInProgressError
from leaderboard.services.settlement import SettlementJob, SettlementReport

logger = logging.getLogger("uvicorn.error")


def _resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


@dataclass(frozen=True)
class WeeklySchedule:
    """A fixed weekly slot (weekday 0=Monday .. 6=Sunday)."""

    weekday: int = 6
    hour: int = 23
    minute: int = 59
    tz: tzinfo = timezone.utc

    @classmethod
    def from_names(cls, weekday: int, hour: int, minute: int, tz_name: str) -> "WeeklySchedule":
        return cls(weekday=weekday, hour=hour, minute=minute, tz=_resolve_timezone(tz_name))

    def next_run_after(self, now: datetime) -> datetime:
        """First slot strictly after `now` (aware datetime)."""
        local = now.astimezone(self.tz)
        days_ahead = (self.weekday - local.weekday()) % 7
        candidate = (local + timedelta(days=days_ahead)).replace(
            hour=self.hour, minute=self.minute, second=0, microsecond=0
        )
        if candidate <= local:
            candidate += timedelta(days=7)
        return candidate

    def period_of(self, when: datetime) -> str:
        """ISO week label of a slot, e.g. "2026-W42"."""
        year, week, _ = when.astimezone(self.tz).isocalendar()
        return f"{year}-W{week:02d}"


class SettlementScheduler:
    def __init__(
        self,
        job: SettlementJob,
        schedule: WeeklySchedule,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.job = job
        self.schedule = schedule
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="settlement-scheduler")
        logger.info(f"Settlement scheduler started, next run at {self.schedule.next_run_after(self._clock()).isoformat()}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Settlement scheduler stopped")

    async def run_slot(self, slot: datetime) -> SettlementReport | None:
        """Settle the period of `slot`. Never raises (the loop must survive)."""
        period = self.schedule.period_of(slot)
        try:
            return await self.job.run(period=period)
        except SettlementInProgressError:
            logger.info(f"Scheduled settlement for {period} skipped: another run is in progress")
        except Exception:
            logger.exception(f"Scheduled settlement for {period} failed")
        return None

    async def _loop(self) -> None:
        while True:
            now = self._clock()
            slot = self.schedule.next_run_after(now)
            await self._sleep(max((slot - now).total_seconds(), 0.0))
            await self.run_slot(slot)
