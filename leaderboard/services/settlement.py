"""Settlement job: distribute the prize pool into the top of the leaderboard.

Steps (one run):
1. Drain the pool (GETSET 0). Earnings that arrive mid-run contribute to the
   next cycle instead of this one.
2. Read the top `top_n` (100) entries.
3. Ranks 1-3 get 20% / 15% / 10% of the drained balance.
4. Ranks 4-100 each get `tail_rate` (0.567%) of what is still unallocated, so
   tail rewards decay geometrically.
5. Rewards are ZINCRBY'd into the rank store: prizes re-enter the ranking as
   score, they are not paid out anywhere else.

The unallocated residual stays out of the pool (the pool is 0 after a run),
and so does the whole balance when nobody is ranked.

Runs are serialized: an in-process lock (Idle -> Running -> Idle) plus a Redis
lease shared by every process. A completed scheduled run also marks its period
(ISO week) so the same week is never settled twice by the scheduler.

Failure: any store error aborts the run. If nothing was applied yet the
drained balance is put back. Once rewards have been applied they stay applied
and the unapplied remainder is logged; a retry would pay the already-rewarded
entries again (no per-entry idempotency marker).
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import logging
from uuid import uuid4

import redis.asyncio as redis

from leaderboard.errors import LeaderboardError, SettlementInProgressError, StoreUnavailableError
from leaderboard.stores.prize_pool import PrizePool
from leaderboard.stores.rank import RankStore, ScoreEntry
from leaderboard.stores.redis import acquire_lock, get_period_run, mark_period_settled, release_lock

logger = logging.getLogger("uvicorn.error")

TIER_RATES = (0.20, 0.15, 0.10)
TAIL_RATE = 0.00567
SETTLEMENT_TOP_N = 100
LOCK_KEY = "settlement"


class SettlementState(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class Reward:
    rank: int  # 1-based
    player_id: str
    amount: float


@dataclass
class SettlementReport:
    run_id: str
    status: str  # "completed" | "skipped" | "empty"
    started_at: datetime
    pool: float = 0.0
    rewards: list[Reward] = field(default_factory=list)
    period: str | None = None

    @property
    def distributed(self) -> float:
        return sum(r.amount for r in self.rewards)

    @property
    def residual(self) -> float:
        return self.pool - self.distributed


def compute_rewards(
    pool: float,
    entries: Sequence[ScoreEntry],
    tier_rates: Sequence[float] = TIER_RATES,
    tail_rate: float = TAIL_RATE,
) -> list[Reward]:
    """Allocate `pool` across `entries` (already in rank order).

    Tiered ranks take a fixed share of the whole pool; every later rank takes
    `tail_rate` of the remainder left after all previous allocations.
    """
    if pool <= 0:
        return []

    rewards: list[Reward] = []
    remaining = pool
    for index, entry in enumerate(entries):
        if index < len(tier_rates):
            amount = pool * tier_rates[index]
        else:
            amount = remaining * tail_rate
        remaining -= amount
        rewards.append(Reward(rank=index + 1, player_id=entry.player_id, amount=amount))
    return rewards


class SettlementJob:
    def __init__(
        self,
        ranks: RankStore,
        pool: PrizePool,
        client: redis.Redis,
        *,
        top_n: int = SETTLEMENT_TOP_N,
        tier_rates: Sequence[float] = TIER_RATES,
        tail_rate: float = TAIL_RATE,
        lock_ttl: int = 900,
    ) -> None:
        self.ranks = ranks
        self.pool = pool
        self.client = client
        self.top_n = top_n
        self.tier_rates = tuple(tier_rates)
        self.tail_rate = tail_rate
        self.lock_ttl = lock_ttl
        self._lock = asyncio.Lock()
        self._state = SettlementState.IDLE

    @property
    def state(self) -> SettlementState:
        return self._state

    async def run(self, *, period: str | None = None) -> SettlementReport:
        """Run one settlement.

        Args:
            period: Schedule period being settled (e.g. "2026-W42"). When given,
                a period that was already settled is skipped.

        Raises:
            SettlementInProgressError: another run holds the lock/lease.
            StoreUnavailableError: a store failed; the run was aborted.
        """
        if self._lock.locked():
            raise SettlementInProgressError("Settlement already running in this process")

        async with self._lock:
            self._state = SettlementState.RUNNING
            run_id = uuid4().hex
            try:
                if not await acquire_lock(self.client, LOCK_KEY, run_id, self.lock_ttl):
                    raise SettlementInProgressError(
                        "Settlement already running in another process", lock=LOCK_KEY
                    )
                try:
                    return await self._settle(run_id, period)
                finally:
                    try:
                        await release_lock(self.client, LOCK_KEY, run_id)
                    except StoreUnavailableError:
                        logger.warning(f"Settlement {run_id}: lease release failed, it expires in {self.lock_ttl}s")
            finally:
                self._state = SettlementState.IDLE

    async def _settle(self, run_id: str, period: str | None) -> SettlementReport:
        report = SettlementReport(run_id=run_id, status="completed", started_at=datetime.now(timezone.utc), period=period)

        if period is not None:
            settled_by = await get_period_run(self.client, period)
            if settled_by:
                logger.info(f"Settlement {run_id}: period {period} already settled by {settled_by}, skipping")
                report.status = "skipped"
                return report

        logger.info(f"Settlement {run_id}: running (period={period})")
        balance = await self.pool.drain_to_zero()
        report.pool = balance

        try:
            entries = await self.ranks.top_range(0, self.top_n)
        except LeaderboardError:
            logger.exception(f"Settlement {run_id}: failed reading leaderboard, restoring pool {balance}")
            await self._restore(run_id, balance)
            raise

        rewards = compute_rewards(balance, entries, self.tier_rates, self.tail_rate)
        if not rewards:
            # Nobody to pay: the pool still resets, the drained balance is dropped.
            report.status = "empty"
            logger.warning(f"Settlement {run_id}: nothing distributed, dropped pool={balance} (entries={len(entries)})")
            await self._mark(run_id, period)
            return report

        for reward in rewards:
            try:
                await self.ranks.upsert(reward.player_id, reward.amount)
            except StoreUnavailableError:
                if not report.rewards:
                    logger.exception(f"Settlement {run_id}: first reward failed, restoring pool {balance}")
                    await self._restore(run_id, balance)
                else:
                    logger.exception(
                        f"Settlement {run_id}: aborted after {len(report.rewards)}/{len(rewards)} rewards; "
                        f"applied={report.distributed}, unapplied={balance - report.distributed}, "
                        f"next_rank={reward.rank}, next_player={reward.player_id}"
                    )
                raise
            report.rewards.append(reward)

        await self._mark(run_id, period)
        logger.info(
            f"Settlement {run_id}: distributed {report.distributed} of {balance} "
            f"to {len(report.rewards)} players (residual={report.residual})"
        )
        return report

    async def _restore(self, run_id: str, balance: float) -> None:
        try:
            await self.pool.add(balance)
        except StoreUnavailableError:
            logger.critical(f"Settlement {run_id}: could not restore drained pool balance {balance}")

    async def _mark(self, run_id: str, period: str | None) -> None:
        if period is None:
            return
        try:
            await mark_period_settled(self.client, period, run_id)
        except StoreUnavailableError:
            logger.warning(f"Settlement {run_id}: could not mark period {period} as settled")
