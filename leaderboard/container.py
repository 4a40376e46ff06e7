"""Service container: owns store clients and wires the services.

Usage:
    services = await LeaderboardServices.connect(settings)
    ...
    await services.close()

Tests build one from prebuilt clients with `LeaderboardServices.build(...)`.
"""

from dataclasses import dataclass
import logging

from fastapi import Request
import redis.asyncio as redis

from leaderboard.services.earnings import EarningsLedger
from leaderboard.services.players import PlayerService
from leaderboard.services.ranking import RankingQueryEngine
from leaderboard.services.scheduler import SettlementScheduler, WeeklySchedule
from leaderboard.services.settlement import SettlementJob
from leaderboard.settings import Settings
from leaderboard.stores.identity import IdentityStore
from leaderboard.stores.postgres import Database
from leaderboard.stores.prize_pool import PrizePool
from leaderboard.stores.rank import RankStore
from leaderboard.stores.redis import create_redis

logger = logging.getLogger("uvicorn.error")


@dataclass
class LeaderboardServices:
    settings: Settings
    db: Database
    redis: redis.Redis
    identity: IdentityStore
    ranks: RankStore
    pool: PrizePool
    players: PlayerService
    earnings: EarningsLedger
    queries: RankingQueryEngine
    settlement: SettlementJob
    scheduler: SettlementScheduler

    @classmethod
    def build(cls, settings: Settings, db: Database, client: redis.Redis) -> "LeaderboardServices":
        """Wire services around already-constructed clients."""
        identity = IdentityStore(db)
        ranks = RankStore(client, key=settings.leaderboard_key)
        pool = PrizePool(client, key=settings.prize_pool_key)
        settlement = SettlementJob(
            ranks,
            pool,
            client,
            top_n=settings.settlement_top_n,
            tier_rates=settings.settlement_tier_rates,
            tail_rate=settings.settlement_tail_rate,
            lock_ttl=settings.settlement_lock_ttl,
        )
        schedule = WeeklySchedule.from_names(
            settings.settlement_weekday,
            settings.settlement_hour,
            settings.settlement_minute,
            settings.settlement_timezone,
        )
        return cls(
            settings=settings,
            db=db,
            redis=client,
            identity=identity,
            ranks=ranks,
            pool=pool,
            players=PlayerService(identity, ranks),
            earnings=EarningsLedger(
                identity,
                ranks,
                pool,
                contribution_rate=settings.contribution_rate,
                allow_non_positive=settings.allow_non_positive_earnings,
            ),
            queries=RankingQueryEngine(
                identity,
                ranks,
                top_n=settings.top_n,
                search_limit=settings.search_limit,
                self_heal=settings.self_heal_missing_ranks,
            ),
            settlement=settlement,
            scheduler=SettlementScheduler(settlement, schedule),
        )

    @classmethod
    async def connect(cls, settings: Settings) -> "LeaderboardServices":
        """Open the Postgres pool and Redis client, then wire services."""
        db = Database.from_settings(settings)
        try:
            await db.ping()
            logger.info("Postgres connected")
        except Exception:
            logger.exception("Postgres init failed")

        client = await create_redis(settings, ping=False)
        try:
            await client.ping()
            logger.info("Redis connected")
        except Exception:
            logger.exception("Redis init failed")

        return cls.build(settings, db, client)

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.redis.aclose()
        await self.db.close()


def get_services(request: Request) -> LeaderboardServices:
    """FastAPI dependency returning the app's service container."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized. Start the app through its lifespan.")
    return services
