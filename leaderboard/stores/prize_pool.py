"""Prize pool accumulator: a single Redis float counter.

INCRBYFLOAT and GETSET are atomic on the server, so a concurrent `add` lands
either before a drain (and is returned by it) or after (and stays in the pool).
Totals are floating point sums: approximate to double precision, not exact
decimals.
"""

import redis.asyncio as redis

from leaderboard.stores.redis import translate_redis_errors

STORE = "prize_pool"


class PrizePool:
    """Undistributed settlement contributions."""

    def __init__(self, client: redis.Redis, key: str = "leaderboard_prize_pool") -> None:
        self.client = client
        self.key = key

    async def add(self, amount: float) -> float:
        """Atomically add `amount` and return the new balance."""
        with translate_redis_errors(STORE, "add"):
            balance = await self.client.incrbyfloat(self.key, amount)
        return float(balance)

    async def balance(self) -> float:
        """Current balance (0 when the counter was never written)."""
        with translate_redis_errors(STORE, "balance"):
            value = await self.client.get(self.key)
        return float(value) if value else 0.0

    async def drain_to_zero(self) -> float:
        """Atomically read the balance and reset it to 0.

        Returns:
            The balance before the reset.
        """
        with translate_redis_errors(STORE, "drain_to_zero"):
            previous = await self.client.getset(self.key, "0")
        return float(previous) if previous else 0.0
