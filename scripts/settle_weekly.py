#!/usr/bin/env python3
"""Weekly settlement job for an external cron.

Schedule:
- Run once per week (Sunday 23:59 UTC, cron "59 23 * * 0").

Behavior:
- Same job as the in-process scheduler: drain the prize pool, reward the top
  100, reset the pool. Guarded by the shared Redis lease, and by the ISO-week
  marker unless SETTLE_FORCE=1.
- Set SETTLEMENT_ENABLED=false on the API when using this script instead of
  the in-process scheduler (both together are safe, just redundant).

Run:
  python -m scripts.settle_weekly

Optional env vars:
  SETTLE_FORCE=1    ignore the "already settled this week" marker
"""

import asyncio
from datetime import datetime, timezone
import os
import sys


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leaderboard.container import LeaderboardServices  # noqa: E402
from leaderboard.errors import SettlementInProgressError  # noqa: E402
from leaderboard.settings import get_settings  # noqa: E402


async def main() -> int:
    settings = get_settings()
    services = await LeaderboardServices.connect(settings)
    force = os.getenv("SETTLE_FORCE", "").strip().lower() in ("1", "true", "yes")

    try:
        period = None if force else services.scheduler.schedule.period_of(datetime.now(timezone.utc))
        try:
            report = await services.settlement.run(period=period)
        except SettlementInProgressError as e:
            print({"ok": False, "error": e.error_code, "message": e.message})
            return 1

        # Final output for cron logs (single JSON-ish blob)
        print(
            {
                "ok": True,
                "run_id": report.run_id,
                "status": report.status,
                "period": report.period,
                "pool": report.pool,
                "distributed": report.distributed,
                "residual": report.residual,
                "rewarded_players": len(report.rewards),
            }
        )
        return 0
    finally:
        await services.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
